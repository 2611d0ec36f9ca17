"""
This library holds utilities for converting Protobuf message definitions to
JSON Schema.

References:
* https://developers.google.com/protocol-buffers
* https://json-schema.org/draft-07/json-schema-release-notes.html
* https://github.com/bufbuild/protoc-gen-validate

Example:

```
from google.protobuf import descriptor_pb2
import proto_to_jsonschema

# Declare the foo.bar.Foo message
file_proto = descriptor_pb2.FileDescriptorProto(
    name="foo.proto",
    package="foo.bar",
    message_type=[
        descriptor_pb2.DescriptorProto(
            name="Foo",
            field=[
                descriptor_pb2.FieldDescriptorProto(
                    name="user_name",
                    number=1,
                    type=descriptor_pb2.FieldDescriptorProto.TYPE_STRING,
                    label=descriptor_pb2.FieldDescriptorProto.LABEL_OPTIONAL,
                ),
            ],
        ),
    ],
)

schema = proto_to_jsonschema.proto_to_jsonschema(
    [file_proto],
    "foo.bar.Foo",
    field_constraints={
        "foo.bar.Foo.user_name": {
            "string": {"min_len": 3},
            "message": {"required": True},
        },
    },
)
```
"""

# Local
from .constraints import FieldConstraints, constraints_from_options
from .converter import Converter, proto_to_jsonschema
from .errors import (
    ConversionError,
    CyclicTypeError,
    MalformedMapError,
    UnresolvedTypeError,
    UnsupportedFieldTypeError,
)
from .registry import PackageNode, PackageRegistry, ResolvedType
from .schema import SchemaNode
from .source_info import SourceInfo, format_description
