"""
Field-level validation constraints. These mirror the protoc-gen-validate
`validate.rules` field option and can be built either from its JSON form or
straight from a field's options when the extension is registered with the
protobuf runtime.

Example:

```
constraints = FieldConstraints.from_dict(
    {
        "string": {"min_len": 3, "pattern": "^[a-z]+$"},
        "message": {"required": True},
    }
)
```
"""

# Standard
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

# Third Party
from google.protobuf import descriptor_pb2, json_format

# First Party
import alog

log = alog.use_channel("P2JCNS")

## Globals #####################################################################

# The full name of the protoc-gen-validate field option extension
VALIDATE_RULES_EXTENSION = "validate.rules"

# Every key under which protoc-gen-validate places numeric rules
NUMERIC_RULE_KINDS = (
    "double",
    "float",
    "int32",
    "int64",
    "uint32",
    "uint64",
    "sint32",
    "sint64",
    "fixed32",
    "fixed64",
    "sfixed32",
    "sfixed64",
)

_Number = Union[int, float]


## Interface ###################################################################


@dataclass(frozen=True)
class StringRules:
    """Constraints for string fields"""

    const: Optional[str] = None
    len: Optional[int] = None
    min_len: Optional[int] = None
    max_len: Optional[int] = None
    pattern: Optional[str] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    in_: Tuple[str, ...] = ()
    not_in: Tuple[str, ...] = ()
    email: bool = False
    hostname: bool = False
    ip: bool = False
    ipv4: bool = False
    ipv6: bool = False
    uri: bool = False
    uri_ref: bool = False
    uuid: bool = False
    address: bool = False

    @classmethod
    def from_dict(cls, rules: Dict[str, Any]) -> "StringRules":
        return cls(
            const=rules.get("const") or None,
            len=_get_int(rules, "len"),
            min_len=_get_int(rules, "min_len"),
            max_len=_get_int(rules, "max_len"),
            pattern=rules.get("pattern") or None,
            prefix=rules.get("prefix") or None,
            suffix=rules.get("suffix") or None,
            in_=tuple(rules.get("in", ())),
            not_in=tuple(rules.get("not_in", ())),
            email=bool(rules.get("email")),
            hostname=bool(rules.get("hostname")),
            ip=bool(rules.get("ip")),
            ipv4=bool(rules.get("ipv4")),
            ipv6=bool(rules.get("ipv6")),
            uri=bool(rules.get("uri")),
            uri_ref=bool(rules.get("uri_ref")),
            uuid=bool(rules.get("uuid")),
            address=bool(rules.get("address")),
        )


@dataclass(frozen=True)
class NumericRules:
    """Range and value constraints for numeric fields"""

    const: Optional[_Number] = None
    lt: Optional[_Number] = None
    lte: Optional[_Number] = None
    gt: Optional[_Number] = None
    gte: Optional[_Number] = None
    in_: Tuple[_Number, ...] = ()
    not_in: Tuple[_Number, ...] = ()

    @classmethod
    def from_dict(cls, rules: Dict[str, Any]) -> "NumericRules":
        return cls(
            const=_get_number(rules, "const"),
            lt=_get_number(rules, "lt"),
            lte=_get_number(rules, "lte"),
            gt=_get_number(rules, "gt"),
            gte=_get_number(rules, "gte"),
            in_=tuple(_to_number(val) for val in rules.get("in", ())),
            not_in=tuple(_to_number(val) for val in rules.get("not_in", ())),
        )


@dataclass(frozen=True)
class RepeatedRules:
    """Constraints on the number and uniqueness of repeated elements"""

    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique: bool = False

    @classmethod
    def from_dict(cls, rules: Dict[str, Any]) -> "RepeatedRules":
        return cls(
            min_items=_get_int(rules, "min_items"),
            max_items=_get_int(rules, "max_items"),
            unique=bool(rules.get("unique")),
        )


@dataclass(frozen=True)
class FieldConstraints:
    """The parsed constraint bundle attached to one field"""

    string: Optional[StringRules] = None
    numeric: Optional[NumericRules] = None
    repeated: Optional[RepeatedRules] = None
    # Rules for the elements of a repeated field
    items: Optional["FieldConstraints"] = field(default=None, repr=False)
    # Message-level "required" flag
    required: bool = False

    @classmethod
    def from_dict(cls, rules: Dict[str, Any]) -> "FieldConstraints":
        """Parse the JSON form of a validate.rules option. Keys use the proto
        field names (e.g. min_len) and 64-bit integers may be given as strings
        the way the protobuf JSON encoding writes them.

        Args:
            rules (Dict[str, Any])
                The rules dict

        Returns:
            constraints (FieldConstraints)
                The parsed constraint bundle
        """
        string_rules = rules.get("string")
        numeric_rules = next(
            (rules[kind] for kind in NUMERIC_RULE_KINDS if kind in rules), None
        )
        repeated_rules = rules.get("repeated")
        items = None
        if repeated_rules and repeated_rules.get("items"):
            items = cls.from_dict(repeated_rules["items"])
        return cls(
            string=StringRules.from_dict(string_rules) if string_rules else None,
            numeric=NumericRules.from_dict(numeric_rules) if numeric_rules else None,
            repeated=RepeatedRules.from_dict(repeated_rules)
            if repeated_rules
            else None,
            items=items,
            required=bool((rules.get("message") or {}).get("required")),
        )


def constraints_from_options(
    options: descriptor_pb2.FieldOptions,
) -> Optional[FieldConstraints]:
    """Extract the validate.rules constraints from a field's options. This only
    finds the rules when the protoc-gen-validate extension has been registered
    with the protobuf runtime (i.e. its generated module was imported before
    the descriptors were parsed).

    Args:
        options (descriptor_pb2.FieldOptions)
            The options of the field

    Returns:
        constraints (Optional[FieldConstraints])
            The parsed constraints, or None if the field has none
    """
    for option_field, value in options.ListFields():
        if option_field.is_extension and option_field.full_name == VALIDATE_RULES_EXTENSION:
            log.debug3("Found %s extension", VALIDATE_RULES_EXTENSION)
            return FieldConstraints.from_dict(
                json_format.MessageToDict(value, preserving_proto_field_name=True)
            )
    return None


## Implementation Details ######################################################


def _get_int(rules: Dict[str, Any], key: str) -> Optional[int]:
    val = rules.get(key)
    if val is None:
        return None
    return int(val)


def _to_number(val: Any) -> _Number:
    if isinstance(val, str):
        return float(val) if any(char in val for char in ".eE") else int(val)
    return val


def _get_number(rules: Dict[str, Any], key: str) -> Optional[_Number]:
    val = rules.get(key)
    if val is None:
        return None
    return _to_number(val)
