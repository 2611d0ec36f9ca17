"""
This module implements the conversion of protobuf message definitions into JSON
Schema documents. A Converter is built once from the full set of input files
and can then convert any of the messages they declare.
"""

# Standard
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union
import copy

# Third Party
from google.protobuf import descriptor_pb2

# First Party
import alog

# Local
from .constraints import (
    FieldConstraints,
    NumericRules,
    RepeatedRules,
    StringRules,
    constraints_from_options,
)
from .errors import (
    ConversionError,
    CyclicTypeError,
    MalformedMapError,
    UnresolvedTypeError,
    UnsupportedFieldTypeError,
)
from .registry import PackageNode, PackageRegistry, ResolvedType
from .schema import (
    JSON_SCHEMA_VERSION,
    TYPE_ARRAY,
    TYPE_BOOLEAN,
    TYPE_INTEGER,
    TYPE_NULL,
    TYPE_NUMBER,
    TYPE_OBJECT,
    TYPE_STRING,
    SchemaNode,
    nullable,
    strip_null,
)
from .source_info import SourceInfo, format_description
from .utils import FileInputTypes, get_json_name, to_file_protos

log = alog.use_channel("P2JCVT")

_FD = descriptor_pb2.FieldDescriptorProto

# Constraints may be given pre-parsed or in their JSON form
_ConstraintsInput = Mapping[str, Union[FieldConstraints, Dict[str, Any]]]


## Interface ###################################################################


def proto_to_jsonschema(
    files: FileInputTypes,
    message_name: str,
    *,
    allow_null_values: bool = False,
    disallow_additional_properties: bool = False,
    disallow_big_ints_as_strings: bool = False,
    field_constraints: Optional[_ConstraintsInput] = None,
) -> Dict[str, Any]:
    """Convert a single protobuf message into a JSON Schema document.

    Args:
        files:  FileInputTypes
            The complete set of proto files needed to resolve the message and
            everything it references
        message_name:  str
            The fully-qualified name of the top-level message (e.g. foo.bar.Baz)

    Kwargs:
        allow_null_values:  bool
            Allow every field to be null in addition to its own type
        disallow_additional_properties:  bool
            Reject properties that are not declared in the message
        disallow_big_ints_as_strings:  bool
            Do not accept strings for 64-bit integer fields
        field_constraints:  Optional[Mapping[str, Union[FieldConstraints, dict]]]
            Constraints keyed by qualified field name (e.g. foo.bar.Baz.name).
            These take precedence over validate.rules field options.

    Returns:
        schema:  Dict[str, Any]
            The JSON Schema document for the message
    """
    return Converter(
        files,
        allow_null_values=allow_null_values,
        disallow_additional_properties=disallow_additional_properties,
        disallow_big_ints_as_strings=disallow_big_ints_as_strings,
        field_constraints=field_constraints,
    ).convert(message_name)


class Converter:
    __doc__ = __doc__

    def __init__(
        self,
        files: FileInputTypes,
        *,
        allow_null_values: bool = False,
        disallow_additional_properties: bool = False,
        disallow_big_ints_as_strings: bool = False,
        field_constraints: Optional[_ConstraintsInput] = None,
    ):
        """Build the package registry and the source comment index for the
        full set of input files

        Args:
            files (FileInputTypes)
                The complete set of proto files for this run
            allow_null_values (bool)
                Wrap every field as oneOf[null, <type>]
            disallow_additional_properties (bool)
                Set additionalProperties to false on message schemas
            disallow_big_ints_as_strings (bool)
                Omit the string alternative for 64-bit integer fields
            field_constraints (Optional[_ConstraintsInput])
                Explicit constraints keyed by qualified field name
        """
        self.allow_null_values = allow_null_values
        self.disallow_additional_properties = disallow_additional_properties
        self.disallow_big_ints_as_strings = disallow_big_ints_as_strings

        file_protos = to_file_protos(files)
        self.registry = PackageRegistry.from_files(file_protos)
        self.source_info = SourceInfo(file_protos)
        self.field_constraints = {
            _normalize_name(name): (
                rules
                if isinstance(rules, FieldConstraints)
                else FieldConstraints.from_dict(rules)
            )
            for name, rules in (field_constraints or {}).items()
        }

        # Finished message schemas by qualified name. Entries are only ever
        # added once fully built and are deep-copied on the way out.
        self._message_cache: Dict[str, SchemaNode] = {}

    ## Top Level ###############################################################

    def convert(self, message_name: str) -> Dict[str, Any]:
        """Convert the top-level message with the given qualified name

        Args:
            message_name (str)
                The fully-qualified message name, with or without a leading '.'

        Returns:
            schema (Dict[str, Any])
                The serialized JSON Schema document
        """
        resolved = self.registry.lookup_type(
            self.registry.root, _normalize_name(message_name)
        )
        if resolved is None:
            raise UnresolvedTypeError(f"No such message type named {message_name}")
        return self.convert_message(
            resolved.package, resolved.descriptor, full_name=resolved.full_name
        ).to_dict()

    def convert_file(
        self, file_proto: descriptor_pb2.FileDescriptorProto
    ) -> Dict[str, Dict[str, Any]]:
        """Convert every top-level message declared in the given file

        Args:
            file_proto (descriptor_pb2.FileDescriptorProto)
                One of the files this converter was built with

        Returns:
            schemas (Dict[str, Dict[str, Any]])
                Mapping from message name to its JSON Schema document
        """
        log.debug("Converting all messages in %s", file_proto.name)
        prefix = f"{file_proto.package}." if file_proto.package else ""
        return {
            message.name: self.convert(f"{prefix}{message.name}")
            for message in file_proto.message_type
        }

    ## Messages ################################################################

    def convert_message(
        self,
        package: PackageNode,
        message: descriptor_pb2.DescriptorProto,
        *,
        full_name: Optional[str] = None,
        visiting: FrozenSet[str] = frozenset(),
    ) -> SchemaNode:
        """Assemble the object schema for a message from its fields

        Args:
            package (PackageNode)
                The package the message was declared in
            message (descriptor_pb2.DescriptorProto)
                The message to convert
            full_name (Optional[str])
                The qualified name of the message. Defaults to the message name
                within the package, so it must be given for nested messages.
            visiting (FrozenSet[str])
                Qualified names of the messages currently being converted on
                this path

        Returns:
            schema (SchemaNode)
                The object schema for the message
        """
        full_name = full_name or f"{package.name}.{message.name}"
        if full_name in visiting:
            raise CyclicTypeError(f"Cyclic reference to message {full_name}")
        cached = self._message_cache.get(full_name)
        if cached is not None:
            log.debug2("Using cached schema for %s", full_name)
            return copy.deepcopy(cached)
        visiting = visiting | {full_name}

        schema = SchemaNode(
            schema_version=JSON_SCHEMA_VERSION,
            description=format_description(self.source_info.get_message(full_name)),
            properties={},
            additional_properties=not self.disallow_additional_properties,
        )
        if self.allow_null_values:
            schema.one_of = [SchemaNode(type=TYPE_NULL), SchemaNode(type=TYPE_OBJECT)]
        else:
            schema.type = TYPE_OBJECT

        log.debug2("Converting message %s", full_name)
        log.debug4("Full message definition:\n%s", message)
        for field in message.field:
            try:
                field_schema, required = self.convert_field(
                    package, field, message, message_name=full_name, visiting=visiting
                )
            except ConversionError as err:
                if err.field_name is None:
                    err.field_name = field.name
                    err.message_name = full_name
                log.error(
                    "Failed to convert field %s of %s: %s", field.name, full_name, err
                )
                raise
            json_name = get_json_name(field)
            log.debug3("Converted field %s.%s", full_name, json_name)
            schema.properties[json_name] = field_schema
            if required:
                schema.required.append(json_name)

        self._message_cache[full_name] = schema
        return copy.deepcopy(schema)

    ## Fields ##################################################################

    def get_field_constraints(
        self, field: descriptor_pb2.FieldDescriptorProto, field_full_name: str
    ) -> Optional[FieldConstraints]:
        """Get the constraints for a field, preferring explicitly configured
        constraints over those found in the field's options
        """
        constraints = self.field_constraints.get(_normalize_name(field_full_name))
        if constraints is None and field.HasField("options"):
            constraints = constraints_from_options(field.options)
        return constraints

    def convert_field(
        self,
        package: PackageNode,
        field: descriptor_pb2.FieldDescriptorProto,
        message: descriptor_pb2.DescriptorProto,
        constraints: Optional[FieldConstraints] = None,
        *,
        message_name: Optional[str] = None,
        visiting: FrozenSet[str] = frozenset(),
    ) -> Tuple[SchemaNode, bool]:
        """Convert a single field into a JSON Schema fragment

        Args:
            package (PackageNode)
                The package of the enclosing message
            field (descriptor_pb2.FieldDescriptorProto)
                The field to convert
            message (descriptor_pb2.DescriptorProto)
                The enclosing message
            constraints (Optional[FieldConstraints])
                The field's constraints. If not given, they are looked up from
                the configured constraints and the field's options.
            message_name (Optional[str])
                The qualified name of the enclosing message
            visiting (FrozenSet[str])
                Qualified names of the messages currently being converted

        Returns:
            schema (SchemaNode)
                The schema fragment for the field
            required (bool)
                Whether the field's constraints mark it as required
        """
        message_name = message_name or f"{package.name}.{message.name}"
        field_full_name = f"{message_name}.{field.name}"
        if constraints is None:
            constraints = self.get_field_constraints(field, field_full_name)
        required = constraints is not None and constraints.required
        is_repeated = field.label == _FD.LABEL_REPEATED

        # Elements of a repeated field may carry their own rules
        kind_constraints = constraints
        if is_repeated and constraints is not None and constraints.items is not None:
            kind_constraints = constraints.items

        handler = self._FIELD_KIND_HANDLERS.get(field.type)
        if handler is None:
            raise UnsupportedFieldTypeError(
                f"Unrecognized field type: {_FD.Type.Name(field.type)}",
                field_name=field.name,
                message_name=message_name,
            )
        schema = handler(self, field, message, kind_constraints)
        log.debug3("Base schema for %s: %s", field_full_name, schema)

        repeated_rules = constraints.repeated if constraints is not None else None
        if schema.type == TYPE_OBJECT:
            enclosing = ResolvedType(package, message, message_name)
            schema = self._convert_object_field(
                field,
                enclosing,
                schema,
                repeated_rules,
                visiting,
            )
        elif is_repeated:
            schema = SchemaNode(type=TYPE_ARRAY, items=strip_null(schema))
            _apply_repeated_rules(schema, repeated_rules)
            if self.allow_null_values:
                schema = nullable(schema)

        schema.description = format_description(
            self.source_info.get_field(field_full_name)
        )
        return schema, required

    ## Field Kinds #############################################################

    def _convert_number(self, field, message, constraints) -> SchemaNode:
        return self._convert_numeric(TYPE_NUMBER, constraints)

    def _convert_int32(self, field, message, constraints) -> SchemaNode:
        return self._convert_numeric(TYPE_INTEGER, constraints)

    def _convert_int64(self, field, message, constraints) -> SchemaNode:
        # JSON numbers cannot hold the full 64-bit range, so the value may
        # also be given as a string
        integer = SchemaNode(type=TYPE_INTEGER)
        alternatives = [integer]
        if not self.disallow_big_ints_as_strings:
            alternatives.append(SchemaNode(type=TYPE_STRING))
        if self.allow_null_values:
            alternatives.append(SchemaNode(type=TYPE_NULL))
        else:
            _apply_numeric_rules(integer, _get_rules(constraints, "numeric"))
        if len(alternatives) == 1:
            return integer
        return SchemaNode(one_of=alternatives)

    def _convert_string(self, field, message, constraints) -> SchemaNode:
        if self.allow_null_values:
            return _null_or(TYPE_STRING)
        schema = SchemaNode(type=TYPE_STRING)
        _apply_string_rules(schema, _get_rules(constraints, "string"))
        return schema

    def _convert_bytes(self, field, message, constraints) -> SchemaNode:
        # Bytes travel as base64 text, so rules on the raw bytes do not
        # translate to keywords on the encoded string
        if self.allow_null_values:
            return _null_or(TYPE_STRING)
        return SchemaNode(type=TYPE_STRING)

    def _convert_enum(self, field, message, constraints) -> SchemaNode:
        schema = SchemaNode(
            one_of=[SchemaNode(type=TYPE_STRING), SchemaNode(type=TYPE_INTEGER)]
        )
        if self.allow_null_values:
            schema.one_of.append(SchemaNode(type=TYPE_NULL))

        # Match the field's type against the enums declared in the enclosing
        # message and accept both the names and the numbers of their values
        values = []
        for enum_type in message.enum_type:
            if field.type_name.endswith(f".{message.name}.{enum_type.name}"):
                for enum_value in enum_type.value:
                    values.extend([enum_value.name, enum_value.number])
        if values:
            if self.allow_null_values:
                values.append(None)
            schema.enum = values
        return schema

    def _convert_bool(self, field, message, constraints) -> SchemaNode:
        if self.allow_null_values:
            return _null_or(TYPE_BOOLEAN)
        return SchemaNode(type=TYPE_BOOLEAN)

    def _convert_message_kind(self, field, message, constraints) -> SchemaNode:
        is_required = field.label == _FD.LABEL_REQUIRED or (
            constraints is not None and constraints.required
        )
        return SchemaNode(type=TYPE_OBJECT, additional_properties=not is_required)

    # Closed dispatch over every protobuf field kind
    _FIELD_KIND_HANDLERS = {
        _FD.TYPE_DOUBLE: _convert_number,
        _FD.TYPE_FLOAT: _convert_number,
        _FD.TYPE_INT32: _convert_int32,
        _FD.TYPE_UINT32: _convert_int32,
        _FD.TYPE_FIXED32: _convert_int32,
        _FD.TYPE_SFIXED32: _convert_int32,
        _FD.TYPE_SINT32: _convert_int32,
        _FD.TYPE_INT64: _convert_int64,
        _FD.TYPE_UINT64: _convert_int64,
        _FD.TYPE_FIXED64: _convert_int64,
        _FD.TYPE_SFIXED64: _convert_int64,
        _FD.TYPE_SINT64: _convert_int64,
        _FD.TYPE_STRING: _convert_string,
        _FD.TYPE_BYTES: _convert_bytes,
        _FD.TYPE_ENUM: _convert_enum,
        _FD.TYPE_BOOL: _convert_bool,
        _FD.TYPE_GROUP: _convert_message_kind,
        _FD.TYPE_MESSAGE: _convert_message_kind,
    }

    ## Implementation Details ##################################################

    def _convert_numeric(
        self, json_type: str, constraints: Optional[FieldConstraints]
    ) -> SchemaNode:
        if self.allow_null_values:
            return _null_or(json_type)
        schema = SchemaNode(type=json_type)
        _apply_numeric_rules(schema, _get_rules(constraints, "numeric"))
        return schema

    def _convert_object_field(
        self,
        field: descriptor_pb2.FieldDescriptorProto,
        enclosing: ResolvedType,
        schema: SchemaNode,
        repeated_rules: Optional[RepeatedRules],
        visiting: FrozenSet[str],
    ) -> SchemaNode:
        """Resolve the message type of an object field, convert it, and shape
        the result as a map, an array of objects, or a plain object
        """
        resolved = self.registry.lookup_type(
            enclosing.package, field.type_name, enclosing
        )
        if resolved is None:
            raise UnresolvedTypeError(
                f"No such message type named {field.type_name}",
                field_name=field.name,
                message_name=enclosing.full_name,
            )
        nested = self.convert_message(
            resolved.package,
            resolved.descriptor,
            full_name=resolved.full_name,
            visiting=visiting,
        )

        # Maps are repeated key/value entry messages. JSON Schema has no map
        # type, so the value schema describes every additional property.
        if resolved.descriptor.options.map_entry:
            log.debug2("Field %s is a map", field.name)
            value_schema = (nested.properties or {}).get("value")
            if value_schema is None:
                raise MalformedMapError(
                    f"Unable to find 'value' property of map type {resolved.full_name}",
                    field_name=field.name,
                    message_name=enclosing.full_name,
                )
            schema.additional_properties = value_schema

        elif field.label == _FD.LABEL_REPEATED:
            items = strip_null(nested)
            items.schema_version = None
            schema = SchemaNode(type=TYPE_ARRAY, items=items)
            _apply_repeated_rules(schema, repeated_rules)

        else:
            schema.properties = nested.properties
            schema.required = list(nested.required)
            if nested.additional_properties is False:
                schema.additional_properties = False

        if self.allow_null_values:
            schema = nullable(schema)
        return schema


## Implementation Details ######################################################


def _normalize_name(name: str) -> str:
    return name if name.startswith(".") else f".{name}"


def _null_or(json_type: str) -> SchemaNode:
    return SchemaNode(one_of=[SchemaNode(type=TYPE_NULL), SchemaNode(type=json_type)])


def _get_rules(constraints: Optional[FieldConstraints], kind: str):
    if constraints is None:
        return None
    return getattr(constraints, kind)


def _apply_string_rules(schema: SchemaNode, rules: Optional[StringRules]):
    """Translate string constraints onto a string schema.

    NOTE: pattern, prefix and suffix all share the single pattern keyword, so
        only the last one applied (in that order) takes effect.
    """
    if rules is None:
        return
    if rules.const:
        schema.enum = [rules.const]
    if rules.min_len:
        schema.min_length = rules.min_len
    if rules.max_len:
        schema.max_length = rules.max_len
    if rules.len:
        schema.min_length = rules.len
        schema.max_length = rules.len
    if rules.pattern:
        schema.pattern = rules.pattern
    if rules.prefix:
        schema.pattern = f"^{rules.prefix}.*"
    if rules.suffix:
        schema.pattern = f".*{rules.suffix}$"
    if rules.in_:
        schema.enum = list(rules.in_)
    if rules.not_in:
        schema.not_ = SchemaNode(enum=list(rules.not_in))
    if rules.email:
        schema.format = "email"
    if rules.address:
        schema.type = None
        schema.one_of = [
            SchemaNode(type=TYPE_STRING, format="ipv4"),
            SchemaNode(type=TYPE_STRING, format="ipv6"),
            SchemaNode(type=TYPE_STRING, format="hostname"),
        ]
    if rules.hostname:
        schema.format = "hostname"
    if rules.ip:
        schema.type = None
        schema.one_of = [
            SchemaNode(type=TYPE_STRING, format="ipv4"),
            SchemaNode(type=TYPE_STRING, format="ipv6"),
        ]
    if rules.ipv4:
        schema.format = "ipv4"
    if rules.ipv6:
        schema.format = "ipv6"
    if rules.uri:
        schema.format = "uri"
    if rules.uri_ref:
        schema.format = "uri-reference"
    if rules.uuid:
        schema.format = "uuid"


def _apply_numeric_rules(schema: SchemaNode, rules: Optional[NumericRules]):
    if rules is None:
        return
    if rules.const is not None:
        schema.enum = [rules.const]
    if rules.in_:
        schema.enum = list(rules.in_)
    if rules.not_in:
        schema.not_ = SchemaNode(enum=list(rules.not_in))
    if rules.gte is not None:
        schema.minimum = rules.gte
    if rules.gt is not None:
        schema.exclusive_minimum = rules.gt
    if rules.lte is not None:
        schema.maximum = rules.lte
    if rules.lt is not None:
        schema.exclusive_maximum = rules.lt


def _apply_repeated_rules(schema: SchemaNode, rules: Optional[RepeatedRules]):
    if rules is None:
        return
    if rules.min_items:
        schema.min_items = rules.min_items
    if rules.max_items:
        schema.max_items = rules.max_items
    if rules.unique:
        schema.unique_items = True
