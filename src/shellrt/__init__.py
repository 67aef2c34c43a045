"""shellrt - custom runtime host for shell handlers

Polls the runtime API for the next invocation, runs the configured shell
handler with the event payload on stdin, and posts the handler's output
(or a structured error) back to the control plane.
"""

from shellrt.errors import (
    RuntimeApiError,
    TransportError,
    ProtocolError,
    TruncatedBodyError,
    HandlerError,
    ConfigError,
)

from shellrt.config import (
    RuntimeConfig,
    HandlerIdentity,
    parse_address,
    DEFAULT_HANDLER,
)

from shellrt.codec import (
    Message,
    encode_request,
    read_message,
    read_response,
    decode_message,
    REQUEST_ID_HEADER,
)

from shellrt.transport import Transport, Connection

from shellrt.invocation import (
    Invocation,
    Success,
    Failure,
    Outcome,
    HANDLER_ERROR_TYPE,
)

from shellrt.client import RuntimeApiClient, build_error_payload

from shellrt.handler import Handler, ShellHandler, FunctionHandler

from shellrt.loop import InvocationLoop

from shellrt.logger import setup_logging, get_logger

__all__ = [
    # Errors
    "RuntimeApiError",
    "TransportError",
    "ProtocolError",
    "TruncatedBodyError",
    "HandlerError",
    "ConfigError",
    # Config
    "RuntimeConfig",
    "HandlerIdentity",
    "parse_address",
    "DEFAULT_HANDLER",
    # Codec
    "Message",
    "encode_request",
    "read_message",
    "read_response",
    "decode_message",
    "REQUEST_ID_HEADER",
    # Transport
    "Transport",
    "Connection",
    # Invocation
    "Invocation",
    "Success",
    "Failure",
    "Outcome",
    "HANDLER_ERROR_TYPE",
    # Client
    "RuntimeApiClient",
    "build_error_payload",
    # Handler
    "Handler",
    "ShellHandler",
    "FunctionHandler",
    # Loop
    "InvocationLoop",
    # Logging
    "setup_logging",
    "get_logger",
]
