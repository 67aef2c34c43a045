"""Runtime API wire codec

Requests and responses use HTTP/1.1-shaped framing over a raw stream.

## Request Format

```
METHOD PATH HTTP/1.1\\r\\n
Host: <address>\\r\\n
Content-Length: <N>\\r\\n        (only when a body is present)
\\r\\n
<N body bytes>
```

## Response Decoding

Lines are read until the empty delimiter line. Only two headers are
retained: the correlation id (`Lambda-Runtime-Aws-Request-Id`, case-sensitive
prefix match) and `Content-Length`. Everything else is skipped. Exactly
Content-Length body bytes are then read; a stream that closes early raises
TruncatedBodyError instead of yielding a short body.
"""

import io
from dataclasses import dataclass
from typing import BinaryIO, Optional, Tuple

from shellrt.errors import ProtocolError, TruncatedBodyError


PROTOCOL_VERSION = "HTTP/1.1"
REQUEST_ID_HEADER = "Lambda-Runtime-Aws-Request-Id"
CONTENT_LENGTH_HEADER = "Content-Length"

# Longest accepted start/header line, terminator included
MAX_LINE_LENGTH = 8192

# Upper bound for a single body read call
READ_CHUNK = 65536

CRLF = b"\r\n"


@dataclass
class Message:
    """A decoded request or response

    Only the start line, the correlation id and the body are kept.
    """
    start_line: str
    request_id: Optional[str]
    content_length: int
    body: bytes

    def status_code(self) -> int:
        """Status code from a response status line (`HTTP/1.1 200 OK`)

        Raises:
            ProtocolError: If the start line is not a status line
        """
        parts = self.start_line.split(" ", 2)
        if len(parts) < 2 or not parts[0].startswith("HTTP/"):
            raise ProtocolError(f"malformed status line: {self.start_line!r}")
        try:
            return int(parts[1])
        except ValueError:
            raise ProtocolError(f"malformed status code: {self.start_line!r}")

    def request_target(self) -> Tuple[str, str]:
        """(method, path) from a request line (`GET /path HTTP/1.1`)

        Raises:
            ProtocolError: If the start line is not a request line
        """
        parts = self.start_line.split(" ")
        if len(parts) != 3 or not parts[2].startswith("HTTP/"):
            raise ProtocolError(f"malformed request line: {self.start_line!r}")
        return parts[0], parts[1]


def encode_request(method: str, path: str, host: str, body: Optional[bytes] = None) -> bytes:
    """Encode a request line, Host header, optional Content-Length and body

    Args:
        method: Request method (GET, POST)
        path: Request path
        host: Value of the Host header
        body: Raw body bytes. None sends no body and no Content-Length;
            an empty body sends `Content-Length: 0`.

    Returns:
        The complete request bytes
    """
    head = f"{method} {path} {PROTOCOL_VERSION}\r\nHost: {host}\r\n"
    if body is None:
        return (head + "\r\n").encode("latin-1")

    head += f"{CONTENT_LENGTH_HEADER}: {len(body)}\r\n\r\n"
    return head.encode("latin-1") + bytes(body)


def _read_line(reader: BinaryIO) -> Optional[str]:
    """Read one line without its terminator, None on EOF"""
    raw = reader.readline(MAX_LINE_LENGTH + 1)
    if not raw:
        return None
    if len(raw) > MAX_LINE_LENGTH:
        raise ProtocolError(f"header line exceeds {MAX_LINE_LENGTH} bytes")
    if not raw.endswith(b"\n"):
        # Stream ended mid-line
        return None
    return raw.rstrip(b"\r\n").decode("latin-1")


def _parse_content_length(value: str) -> int:
    try:
        length = int(value.strip())
    except ValueError:
        raise ProtocolError(f"invalid Content-Length: {value.strip()!r}")
    if length < 0:
        raise ProtocolError(f"negative Content-Length: {length}")
    return length


def read_body(reader: BinaryIO, length: int) -> bytes:
    """Read exactly `length` bytes, looping over short reads

    Raises:
        TruncatedBodyError: If the stream ends first
    """
    chunks = []
    remaining = length
    while remaining > 0:
        chunk = reader.read(min(remaining, READ_CHUNK))
        if not chunk:
            raise TruncatedBodyError(length, length - remaining)
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_message(reader: BinaryIO) -> Message:
    """Read one message (start line, headers, body) from a stream

    Args:
        reader: Binary input stream supporting readline() and read()

    Returns:
        Decoded Message

    Raises:
        ProtocolError: On EOF before the header delimiter or a malformed header
        TruncatedBodyError: If fewer body bytes arrive than declared
    """
    start_line = _read_line(reader)
    if start_line is None:
        raise ProtocolError("connection closed before start line")
    if not start_line:
        raise ProtocolError("empty start line")

    request_id = None
    content_length = 0
    id_prefix = REQUEST_ID_HEADER + ":"

    while True:
        line = _read_line(reader)
        if line is None:
            raise ProtocolError("connection closed before end of headers")
        if line == "":
            break

        if line.startswith(id_prefix):
            request_id = line[len(id_prefix):].strip()
            continue

        name, sep, value = line.partition(":")
        if sep and name.strip().lower() == CONTENT_LENGTH_HEADER.lower():
            content_length = _parse_content_length(value)

    body = read_body(reader, content_length)
    return Message(
        start_line=start_line,
        request_id=request_id or None,
        content_length=content_length,
        body=body,
    )


def read_response(reader: BinaryIO) -> Message:
    """Read a response and validate its status line

    Raises:
        ProtocolError: If the message is not a well-formed response
    """
    message = read_message(reader)
    message.status_code()
    return message


def decode_message(data: bytes) -> Message:
    """Decode a complete message held in memory"""
    return read_message(io.BytesIO(data))
