"""
The in-memory JSON Schema tree produced by the converter
"""

# Standard
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

## Globals #####################################################################

JSON_SCHEMA_VERSION = "http://json-schema.org/draft-07/schema#"

TYPE_NULL = "null"
TYPE_BOOLEAN = "boolean"
TYPE_INTEGER = "integer"
TYPE_NUMBER = "number"
TYPE_STRING = "string"
TYPE_ARRAY = "array"
TYPE_OBJECT = "object"


## Interface ###################################################################


@dataclass
class SchemaNode:
    """One node of a JSON Schema document.

    NOTE: Exactly one of type and one_of describes the type of the value at a
        given node. When one_of is used, type is left as None.
    """

    type: Optional[str] = None
    one_of: Optional[List["SchemaNode"]] = None
    description: str = ""

    # Objects
    properties: Optional[Dict[str, "SchemaNode"]] = None
    required: List[str] = field(default_factory=list)
    additional_properties: Union[None, bool, "SchemaNode"] = None

    # Arrays
    items: Optional["SchemaNode"] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique_items: Optional[bool] = None

    # Values
    enum: Optional[List[Any]] = None
    not_: Optional["SchemaNode"] = None

    # Strings
    pattern: Optional[str] = None
    format: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None

    # Numbers
    minimum: Optional[Union[int, float]] = None
    maximum: Optional[Union[int, float]] = None
    exclusive_minimum: Optional[Union[int, float]] = None
    exclusive_maximum: Optional[Union[int, float]] = None

    # Only set on the root of a document
    schema_version: Optional[str] = None

    def is_nullable(self) -> bool:
        """Whether this node already carries a null alternative"""
        return self.type == TYPE_NULL or any(
            alt.type == TYPE_NULL for alt in self.one_of or []
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict of JSON Schema keywords"""
        out = {}
        if self.schema_version:
            out["$schema"] = self.schema_version
        if self.description:
            out["description"] = self.description
        if self.type:
            out["type"] = self.type
        if self.one_of:
            out["oneOf"] = [alt.to_dict() for alt in self.one_of]
        if self.enum is not None:
            out["enum"] = list(self.enum)
        if self.not_ is not None:
            out["not"] = self.not_.to_dict()
        for key, val in (
            ("pattern", self.pattern),
            ("format", self.format),
            ("minLength", self.min_length),
            ("maxLength", self.max_length),
            ("minimum", self.minimum),
            ("maximum", self.maximum),
            ("exclusiveMinimum", self.exclusive_minimum),
            ("exclusiveMaximum", self.exclusive_maximum),
            ("minItems", self.min_items),
            ("maxItems", self.max_items),
            ("uniqueItems", self.unique_items),
        ):
            if val is not None:
                out[key] = val
        if self.items is not None:
            out["items"] = self.items.to_dict()
        if self.properties is not None:
            out["properties"] = {
                name: prop.to_dict() for name, prop in self.properties.items()
            }
        if self.required:
            out["required"] = list(self.required)
        if isinstance(self.additional_properties, SchemaNode):
            out["additionalProperties"] = self.additional_properties.to_dict()
        elif self.additional_properties is not None:
            out["additionalProperties"] = self.additional_properties
        return out


def nullable(node: SchemaNode) -> SchemaNode:
    """Wrap the node as oneOf[null, <node>]. The description stays on the
    outer node. Nodes that already accept null are returned unchanged so that
    wrapping never nests.
    """
    if node.is_nullable():
        return node
    inner = replace(node, description="", schema_version=None)
    return SchemaNode(
        one_of=[SchemaNode(type=TYPE_NULL), inner],
        description=node.description,
        schema_version=node.schema_version,
    )


def strip_null(node: SchemaNode) -> SchemaNode:
    """Get a copy of the node with any null alternative and null enum value
    removed. A single remaining alternative collapses into a plain type.
    """
    stripped = replace(node, description="")
    if node.one_of:
        alternatives = [alt for alt in node.one_of if alt.type != TYPE_NULL]
        if len(alternatives) == 1 and _is_bare_type(alternatives[0]):
            stripped.type = alternatives[0].type
            stripped.one_of = None
        else:
            stripped.one_of = alternatives
    if node.enum is not None:
        stripped.enum = [val for val in node.enum if val is not None]
    return stripped


## Implementation Details ######################################################


def _is_bare_type(node: SchemaNode) -> bool:
    """A node that only declares a type can be folded into its parent"""
    return node == SchemaNode(type=node.type)
