"""
Common utilities that are shared across the registry, the converter and the
plugin
"""

# Standard
from typing import Iterable, List, Union

# Third Party
from google.protobuf import descriptor as _descriptor
from google.protobuf import descriptor_pb2

# First Party
import alog

log = alog.use_channel("P2JUTL")

# The kinds of input that can be used to supply the set of proto files
FileInputTypes = Union[
    descriptor_pb2.FileDescriptorSet,
    Iterable[Union[descriptor_pb2.FileDescriptorProto, _descriptor.FileDescriptor]],
]


def to_lower_camel(snake_str: str) -> str:
    """Convert a snake_case field name to the lowerCamelCase name protobuf uses
    for the JSON encoding of the field (every underscore is dropped and the
    following character is upper-cased)
    """
    result = []
    capitalize_next = False
    for char in snake_str:
        if char == "_":
            capitalize_next = True
        elif capitalize_next:
            result.append(char.upper())
            capitalize_next = False
        else:
            result.append(char)
    return "".join(result)


def get_json_name(field: descriptor_pb2.FieldDescriptorProto) -> str:
    """Get the wire-compatible JSON name for a field. protoc always fills in
    json_name, but hand-built descriptors often leave it empty.
    """
    return field.json_name or to_lower_camel(field.name)


def split_type_name(name: str) -> List[str]:
    """Split a dotted type or package name into its segments, dropping empty
    segments produced by leading or trailing separators
    """
    return [segment for segment in name.split(".") if segment]


def to_file_protos(files: FileInputTypes) -> List[descriptor_pb2.FileDescriptorProto]:
    """Normalize the supported input kinds into a list of FileDescriptorProto

    Args:
        files (FileInputTypes)
            A FileDescriptorSet, or an iterable of FileDescriptorProto and/or
            in-memory FileDescriptor objects

    Returns:
        file_protos (List[descriptor_pb2.FileDescriptorProto])
            The files as FileDescriptorProto messages
    """
    if isinstance(files, descriptor_pb2.FileDescriptorSet):
        return list(files.file)
    if isinstance(files, (descriptor_pb2.FileDescriptorProto, _descriptor.FileDescriptor)):
        files = [files]

    file_protos = []
    for file in files:
        if isinstance(file, _descriptor.FileDescriptor):
            log.debug2("Copying in-memory file descriptor %s", file.name)
            fd_proto = descriptor_pb2.FileDescriptorProto()
            file.CopyToProto(fd_proto)
            file = fd_proto
        if not isinstance(file, descriptor_pb2.FileDescriptorProto):
            raise TypeError(f"Invalid file descriptor of type {type(file)}")
        file_protos.append(file)
    return file_protos
