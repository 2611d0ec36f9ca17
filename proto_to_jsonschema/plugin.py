"""
protoc plugin entry point. protoc runs the `protoc-gen-jsonschema` executable,
writes a serialized CodeGeneratorRequest to its stdin and reads a serialized
CodeGeneratorResponse from its stdout.

Example:

```
protoc --jsonschema_out=allow_null_values:./schemas foo.proto
```
"""

# Standard
from typing import Dict, Tuple
import json
import os
import sys

# Third Party
from google.protobuf.compiler import plugin_pb2

# First Party
import alog

# Local
from .converter import Converter
from .errors import ConversionError

log = alog.use_channel("P2JPLG")

## Globals #####################################################################

# Mapping from plugin parameter name to Converter keyword argument
PLUGIN_PARAMETERS = {
    "allow_null_values": "allow_null_values",
    "disallow_additional_properties": "disallow_additional_properties",
    "disallow_bigints_as_strings": "disallow_big_ints_as_strings",
}

DEBUG_PARAMETER = "debug"

OUTPUT_FILE_EXTENSION = "jsonschema"

OUTPUT_INDENT = 4


## Interface ###################################################################


def parse_parameters(parameter: str) -> Tuple[Dict[str, bool], bool]:
    """Parse the comma separated parameter string passed by protoc

    Args:
        parameter (str)
            The raw parameter string (e.g. "allow_null_values,debug")

    Returns:
        options (Dict[str, bool])
            Keyword arguments for the Converter
        debug (bool)
            Whether debug logging was requested
    """
    options = {}
    debug = False
    for param in parameter.split(","):
        param = param.strip()
        if not param:
            continue
        if param == DEBUG_PARAMETER:
            debug = True
        elif param in PLUGIN_PARAMETERS:
            options[PLUGIN_PARAMETERS[param]] = True
        else:
            raise ValueError(f"Unknown plugin parameter: {param}")
    return options, debug


def generate(
    request: plugin_pb2.CodeGeneratorRequest, **options
) -> plugin_pb2.CodeGeneratorResponse:
    """Convert every top-level message of every file protoc asked for

    Args:
        request (plugin_pb2.CodeGeneratorRequest)
            The request from protoc
        **options
            Keyword arguments for the Converter

    Returns:
        response (plugin_pb2.CodeGeneratorResponse)
            One .jsonschema file per message, or the error that stopped the run
    """
    response = plugin_pb2.CodeGeneratorResponse(
        supported_features=plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL
    )
    converter = Converter(request.proto_file, **options)
    files_by_name = {file_proto.name: file_proto for file_proto in request.proto_file}
    # Output file name -> the proto file that produced it
    written = {}
    for file_name in request.file_to_generate:
        log.debug("Generating schemas for %s", file_name)
        try:
            schemas = converter.convert_file(files_by_name[file_name])
        except ConversionError as err:
            log.error("Failed to convert %s: %s", file_name, err)
            response.error = f"Failed to convert {file_name}: {err}"
            return response
        for message_name, schema in schemas.items():
            output_name = f"{message_name}.{OUTPUT_FILE_EXTENSION}"
            if output_name in written:
                log.error(
                    "Duplicate output %s from %s and %s",
                    output_name,
                    written[output_name],
                    file_name,
                )
                response.error = (
                    f"Messages in {written[output_name]} and {file_name} would "
                    f"both be written to {output_name}"
                )
                del response.file[:]
                return response
            written[output_name] = file_name
            response.file.add(
                name=output_name,
                content=json.dumps(schema, indent=OUTPUT_INDENT),
            )
    return response


def main():
    """Run as a protoc plugin over stdin/stdout"""
    request = plugin_pb2.CodeGeneratorRequest.FromString(sys.stdin.buffer.read())
    try:
        options, debug = parse_parameters(request.parameter)
    except ValueError as err:
        response = plugin_pb2.CodeGeneratorResponse(error=str(err))
    else:
        _configure_logging(debug)
        response = generate(request, **options)
    sys.stdout.buffer.write(response.SerializeToString())
    sys.stdout.flush()


## Implementation Details ######################################################


def _configure_logging(debug: bool):
    # stdout carries the response. alog's default handler writes to stderr.
    alog.configure(
        default_level="debug4" if debug else os.environ.get("LOG_LEVEL", "warning"),
        filters=os.environ.get("LOG_FILTERS", ""),
        formatter="json" if os.environ.get("LOG_JSON", "").lower() == "true" else "pretty",
    )


if __name__ == "__main__":
    main()
