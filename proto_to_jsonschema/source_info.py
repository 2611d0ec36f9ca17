"""
Source comment handling. protoc records the comments attached to each
declaration in SourceCodeInfo, keyed by a path of field numbers and indices
into the FileDescriptorProto. This module indexes those locations by the
qualified name of the declaration so the converter can turn them into
descriptions.
"""

# Standard
from typing import Dict, List, Optional

# Third Party
from google.protobuf import descriptor_pb2

# First Party
import alog

# Local
from .utils import FileInputTypes, to_file_protos

log = alog.use_channel("P2JSRC")

## Globals #####################################################################

# Field numbers used in SourceCodeInfo.Location paths
_FILE_MESSAGE_TYPE = descriptor_pb2.FileDescriptorProto.MESSAGE_TYPE_FIELD_NUMBER
_MESSAGE_FIELD = descriptor_pb2.DescriptorProto.FIELD_FIELD_NUMBER
_MESSAGE_NESTED_TYPE = descriptor_pb2.DescriptorProto.NESTED_TYPE_FIELD_NUMBER

_Location = descriptor_pb2.SourceCodeInfo.Location


## Interface ###################################################################


def format_description(location: Optional[_Location]) -> str:
    """Build a human-readable description from the comments of a declaration.

    Args:
        location (Optional[descriptor_pb2.SourceCodeInfo.Location])
            The source location record for the declaration

    Returns:
        description (str)
            The detached leading, leading and trailing comments (stripped, with
            blank entries dropped) joined by blank lines
    """
    if location is None:
        return ""
    lines = [comment.strip() for comment in location.leading_detached_comments]
    lines.append(location.leading_comments.strip())
    lines.append(location.trailing_comments.strip())
    return "\n\n".join(line for line in lines if line)


class SourceInfo:
    """Index of source locations by qualified declaration name"""

    def __init__(self, files: FileInputTypes = ()):
        self._messages: Dict[str, _Location] = {}
        self._fields: Dict[str, _Location] = {}
        for file_proto in to_file_protos(files):
            self._index_file(file_proto)

    def get_message(self, full_name: str) -> Optional[_Location]:
        return self._messages.get(_normalize(full_name))

    def get_field(self, full_name: str) -> Optional[_Location]:
        return self._fields.get(_normalize(full_name))

    ## Implementation Details ##################################################

    def _index_file(self, file_proto: descriptor_pb2.FileDescriptorProto):
        if not file_proto.HasField("source_code_info"):
            return
        log.debug2("Indexing source info for %s", file_proto.name)
        package_prefix = f".{file_proto.package}" if file_proto.package else ""
        for location in file_proto.source_code_info.location:
            path = list(location.path)
            if len(path) < 2 or path[0] != _FILE_MESSAGE_TYPE:
                continue
            self._index_message_location(
                file_proto.message_type[path[1]], package_prefix, path[2:], location
            )

    def _index_message_location(
        self,
        message: descriptor_pb2.DescriptorProto,
        scope: str,
        path: List[int],
        location: _Location,
    ):
        """Walk the remaining path below a message and record the location if
        it points at the message itself or at one of its fields
        """
        full_name = f"{scope}.{message.name}"
        if not path:
            self._messages[full_name] = location
        elif len(path) == 2 and path[0] == _MESSAGE_FIELD:
            field = message.field[path[1]]
            self._fields[f"{full_name}.{field.name}"] = location
        elif len(path) >= 2 and path[0] == _MESSAGE_NESTED_TYPE:
            self._index_message_location(
                message.nested_type[path[1]], full_name, path[2:], location
            )


## Implementation Details ######################################################


def _normalize(full_name: str) -> str:
    return full_name if full_name.startswith(".") else f".{full_name}"
