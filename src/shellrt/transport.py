"""Transport - one short-lived TCP connection per request/response exchange

There is no persistent connection state. Each exchange opens a Connection
and releases it when the `with` block exits, whether or not the exchange
succeeded.

Usage:
```python
transport = Transport("127.0.0.1:9001")
with transport.connect() as conn:
    conn.send(request_bytes)
    response = read_response(conn.reader)
```
"""

import socket
from typing import BinaryIO, Optional

from shellrt.config import parse_address
from shellrt.errors import TransportError


class SocketReader:
    """Buffered socket reader that surfaces read failures as TransportError"""

    def __init__(self, inner: BinaryIO):
        self.inner = inner

    def readline(self, limit: int = -1) -> bytes:
        try:
            return self.inner.readline(limit)
        except OSError as e:
            raise TransportError(f"Read failed: {e}") from e

    def read(self, size: int = -1) -> bytes:
        try:
            return self.inner.read(size)
        except OSError as e:
            raise TransportError(f"Read failed: {e}") from e

    def close(self) -> None:
        self.inner.close()


class Connection:
    """A connected socket with a buffered binary reader"""

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.reader = SocketReader(sock.makefile("rb"))

    def send(self, data: bytes) -> None:
        """Write all bytes

        Raises:
            TransportError: If the socket write fails
        """
        try:
            self.sock.sendall(data)
        except OSError as e:
            raise TransportError(f"Write failed: {e}") from e

    def close(self) -> None:
        self.reader.close()
        self.sock.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Transport:
    """Opens connections to a fixed control-plane address"""

    def __init__(self, address: str, connect_timeout: Optional[float] = None):
        """Create a transport

        Args:
            address: Control-plane address (`host:port`)
            connect_timeout: Seconds to wait for the connection to be
                established, None to block. Established connections are
                always blocking.

        Raises:
            ConfigError: If the address cannot be parsed
        """
        self.address = address
        self.host, self.port = parse_address(address)
        self.connect_timeout = connect_timeout

    def connect(self) -> Connection:
        """Open a new connection

        Raises:
            TransportError: If the connection cannot be established
        """
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
        except OSError as e:
            raise TransportError(f"Connect to {self.address} failed: {e}") from e

        # Long-poll fetches may be held open indefinitely by the control plane
        sock.settimeout(None)
        return Connection(sock)
