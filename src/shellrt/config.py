"""Runtime host configuration

Configuration is resolved once at startup:
1. Environment variables (AWS_LAMBDA_RUNTIME_API, _HANDLER, LAMBDA_TASK_ROOT, LOG_LEVEL)
2. Builder methods returning modified copies (tests, embedding)
3. Default values

RuntimeConfig is frozen; the client and loop receive it by reference and
never consult the environment themselves.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Tuple

from shellrt.errors import ConfigError
from shellrt.logger import get_logger


ENV_RUNTIME_API = "AWS_LAMBDA_RUNTIME_API"
ENV_HANDLER = "_HANDLER"
ENV_TASK_ROOT = "LAMBDA_TASK_ROOT"
ENV_LOG_LEVEL = "LOG_LEVEL"

DEFAULT_HANDLER = "handler.run"
DEFAULT_PORT = 80
DEFAULT_BACKOFF_INITIAL = 0.05
DEFAULT_BACKOFF_MAX = 2.0

logger = get_logger(__name__)


@dataclass(frozen=True)
class HandlerIdentity:
    """Handler location: a resource (script name) and an entry point inside it"""
    resource: str
    entrypoint: str

    @classmethod
    def default(cls) -> "HandlerIdentity":
        return cls.parse(DEFAULT_HANDLER)

    @classmethod
    def parse(cls, value: Optional[str]) -> "HandlerIdentity":
        """Parse a `resource.entrypoint` string

        Unset, single-part, or empty-component values fall back to the
        default handler. Components after the second are ignored.
        """
        if not value:
            value = DEFAULT_HANDLER

        parts = value.split(".")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            logger.warning("handler_defaulted", handler=value, default=DEFAULT_HANDLER)
            parts = DEFAULT_HANDLER.split(".")

        return cls(resource=parts[0], entrypoint=parts[1])

    def script_name(self) -> str:
        """File name of the shell script that defines the entry point"""
        return f"{self.resource}.sh"

    def to_string(self) -> str:
        return f"{self.resource}.{self.entrypoint}"


def parse_address(address: str) -> Tuple[str, int]:
    """Split a control-plane address into (host, port)

    Accepts `host:port`, `[v6addr]:port` and a bare `host` (port 80).

    Raises:
        ConfigError: If the address is empty or the port is not a valid number
    """
    address = address.strip() if address else ""
    if not address:
        raise ConfigError("runtime API address is empty")

    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or not host:
            raise ConfigError(f"invalid runtime API address: {address!r}")
        if not rest:
            return host, DEFAULT_PORT
        if not rest.startswith(":"):
            raise ConfigError(f"invalid runtime API address: {address!r}")
        port_str = rest[1:]
    elif ":" in address:
        host, _, port_str = address.rpartition(":")
        if not host:
            raise ConfigError(f"invalid runtime API address: {address!r}")
    else:
        return address, DEFAULT_PORT

    try:
        port = int(port_str)
    except ValueError:
        raise ConfigError(f"invalid port in runtime API address: {address!r}")
    if not 0 < port < 65536:
        raise ConfigError(f"port out of range in runtime API address: {address!r}")

    return host, port


@dataclass(frozen=True)
class RuntimeConfig:
    """Process-wide runtime configuration"""
    runtime_api: str
    handler: HandlerIdentity = field(default_factory=HandlerIdentity.default)
    task_root: Optional[str] = None
    log_level: str = "INFO"
    connect_timeout: Optional[float] = None
    backoff_initial: float = DEFAULT_BACKOFF_INITIAL
    backoff_max: float = DEFAULT_BACKOFF_MAX

    def __post_init__(self):
        # Fail at construction rather than on the first fetch
        parse_address(self.runtime_api)
        if self.backoff_initial <= 0 or self.backoff_max < self.backoff_initial:
            raise ConfigError(
                f"invalid backoff bounds: initial={self.backoff_initial} max={self.backoff_max}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RuntimeConfig":
        """Build configuration from environment variables

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            ConfigError: If the runtime API address is missing or malformed
        """
        if environ is None:
            environ = os.environ

        runtime_api = environ.get(ENV_RUNTIME_API, "")
        if not runtime_api:
            raise ConfigError(f"{ENV_RUNTIME_API} is not set")

        return cls(
            runtime_api=runtime_api,
            handler=HandlerIdentity.parse(environ.get(ENV_HANDLER)),
            task_root=environ.get(ENV_TASK_ROOT) or None,
            log_level=environ.get(ENV_LOG_LEVEL, "INFO").upper(),
        )

    def address(self) -> Tuple[str, int]:
        """Control-plane (host, port)"""
        return parse_address(self.runtime_api)

    def with_runtime_api(self, runtime_api: str) -> "RuntimeConfig":
        return replace(self, runtime_api=runtime_api)

    def with_handler(self, handler: str) -> "RuntimeConfig":
        return replace(self, handler=HandlerIdentity.parse(handler))

    def with_task_root(self, task_root: Optional[str]) -> "RuntimeConfig":
        return replace(self, task_root=task_root)

    def with_backoff(self, initial: float, maximum: float) -> "RuntimeConfig":
        return replace(self, backoff_initial=initial, backoff_max=maximum)

    def with_connect_timeout(self, timeout: Optional[float]) -> "RuntimeConfig":
        return replace(self, connect_timeout=timeout)
