"""Error types for the runtime host

Everything raised while talking to the runtime API derives from
RuntimeApiError so the invocation loop can treat transport and protocol
failures alike. Handler and configuration failures live outside that tree.
"""


class RuntimeApiError(Exception):
    """Base runtime API error"""
    pass


class TransportError(RuntimeApiError):
    """Connection could not be opened, or a socket read/write failed"""
    pass


class ProtocolError(RuntimeApiError):
    """Response could not be parsed into the expected shape"""
    pass


class TruncatedBodyError(ProtocolError):
    """Connection closed before the declared body length was received"""

    def __init__(self, declared: int, received: int):
        super().__init__(f"Truncated body: received {received} of {declared} bytes")
        self.declared = declared
        self.received = received


class HandlerError(Exception):
    """Handler failed while processing an invocation"""
    pass


class ConfigError(Exception):
    """Invalid startup configuration"""
    pass
