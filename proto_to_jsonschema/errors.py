"""
Errors raised while converting protobuf messages to JSON Schema. All of these
are terminal for the conversion of the enclosing top-level message.
"""

# Standard
from typing import Optional


class ConversionError(ValueError):
    """Base class for all conversion failures. The offending field and message
    names are attached as they become known while the error propagates.
    """

    def __init__(
        self,
        message: str,
        *,
        field_name: Optional[str] = None,
        message_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.field_name = field_name
        self.message_name = message_name

    def __str__(self) -> str:
        msg = super().__str__()
        context = []
        if self.message_name:
            context.append(f"message={self.message_name}")
        if self.field_name:
            context.append(f"field={self.field_name}")
        if context:
            msg = f"{msg} [{', '.join(context)}]"
        return msg


class UnsupportedFieldTypeError(ConversionError):
    """The field's declared kind has no JSON Schema mapping"""


class UnresolvedTypeError(ConversionError):
    """An object-typed field references a message that cannot be found"""


class MalformedMapError(ConversionError):
    """A map entry message did not produce a 'value' property"""


class CyclicTypeError(ConversionError):
    """A message (transitively) contains a field of its own type"""
