"""
Helpers for building descriptors by hand
"""

# Standard
from typing import Dict, Iterable, Optional

# Third Party
from google.protobuf import descriptor_pb2
import jsonschema

FD = descriptor_pb2.FieldDescriptorProto


def make_field(
    name: str,
    field_type: int,
    *,
    label: int = FD.LABEL_OPTIONAL,
    type_name: Optional[str] = None,
    json_name: Optional[str] = None,
    number: int = 0,
) -> descriptor_pb2.FieldDescriptorProto:
    """Make a field, leaving unset anything that is not given"""
    kwargs = {"name": name, "type": field_type, "label": label, "number": number}
    if type_name is not None:
        kwargs["type_name"] = type_name
    if json_name is not None:
        kwargs["json_name"] = json_name
    return descriptor_pb2.FieldDescriptorProto(**kwargs)


def make_enum(name: str, values: Dict[str, int]) -> descriptor_pb2.EnumDescriptorProto:
    return descriptor_pb2.EnumDescriptorProto(
        name=name,
        value=[
            descriptor_pb2.EnumValueDescriptorProto(name=val_name, number=number)
            for val_name, number in values.items()
        ],
    )


def make_message(
    name: str,
    fields: Iterable[descriptor_pb2.FieldDescriptorProto] = (),
    *,
    nested: Iterable[descriptor_pb2.DescriptorProto] = (),
    enums: Iterable[descriptor_pb2.EnumDescriptorProto] = (),
    map_entry: bool = False,
) -> descriptor_pb2.DescriptorProto:
    """Make a message, numbering any fields that have no number"""
    fields = list(fields)
    for idx, field in enumerate(fields):
        if not field.number:
            field.number = idx + 1
    kwargs = {}
    if map_entry:
        kwargs["options"] = descriptor_pb2.MessageOptions(map_entry=True)
    return descriptor_pb2.DescriptorProto(
        name=name,
        field=fields,
        nested_type=list(nested),
        enum_type=list(enums),
        **kwargs,
    )


def make_map_entry(
    name: str,
    value_type: int,
    *,
    value_type_name: Optional[str] = None,
    key_type: int = FD.TYPE_STRING,
) -> descriptor_pb2.DescriptorProto:
    """Make the synthetic entry message protoc generates for a map<> field"""
    return make_message(
        name,
        [
            make_field("key", key_type),
            make_field("value", value_type, type_name=value_type_name),
        ],
        map_entry=True,
    )


def make_file(
    package: str,
    messages: Iterable[descriptor_pb2.DescriptorProto],
    *,
    name: Optional[str] = None,
    locations: Iterable[descriptor_pb2.SourceCodeInfo.Location] = (),
) -> descriptor_pb2.FileDescriptorProto:
    kwargs = {}
    locations = list(locations)
    if locations:
        kwargs["source_code_info"] = descriptor_pb2.SourceCodeInfo(location=locations)
    return descriptor_pb2.FileDescriptorProto(
        name=name or f"{package.replace('.', '/') or 'root'}.proto",
        package=package,
        syntax="proto3",
        message_type=list(messages),
        **kwargs,
    )


def is_valid(instance, schema) -> bool:
    """Check an instance against a produced schema"""
    return jsonschema.Draft7Validator(schema).is_valid(instance)
