"""Runtime API client

The only component that knows the three runtime API endpoints:

| Operation | Request |
|---|---|
| fetch_next_invocation | `GET /2018-06-01/runtime/invocation/next` |
| submit_success | `POST /2018-06-01/runtime/invocation/{id}/response` |
| submit_failure | `POST /2018-06-01/runtime/invocation/{id}/error` |

Every operation opens its own connection and releases it on return.
Submissions are fire-and-forget: once the request is written the
connection is closed without reading a reply.
"""

import json
from typing import Optional
from urllib.parse import quote as url_encode

from shellrt.codec import encode_request, read_response
from shellrt.config import RuntimeConfig
from shellrt.errors import ProtocolError
from shellrt.invocation import HANDLER_ERROR_TYPE, Invocation
from shellrt.transport import Transport


API_VERSION = "2018-06-01"
NEXT_PATH = f"/{API_VERSION}/runtime/invocation/next"
RESPONSE_PATH = f"/{API_VERSION}/runtime/invocation/{{request_id}}/response"
ERROR_PATH = f"/{API_VERSION}/runtime/invocation/{{request_id}}/error"


def build_error_payload(message: str, error_type: str = HANDLER_ERROR_TYPE) -> bytes:
    """Build the JSON failure document

    The message is JSON-escaped, so quotes, backslashes and control
    characters cannot break the document.
    """
    document = {"errorMessage": message, "errorType": error_type}
    return json.dumps(document).encode("utf-8")


def _invocation_path(template: str, request_id: str) -> str:
    return template.format(request_id=url_encode(request_id, safe=""))


class RuntimeApiClient:
    """Client for the runtime API polling protocol"""

    def __init__(self, config: RuntimeConfig, transport: Optional[Transport] = None):
        """Create a client

        Args:
            config: Runtime configuration (control-plane address)
            transport: Optional transport override; built from config by default
        """
        self.config = config
        if transport is None:
            transport = Transport(config.runtime_api, connect_timeout=config.connect_timeout)
        self.transport = transport

    @property
    def host(self) -> str:
        return self.config.runtime_api

    def fetch_next_invocation(self) -> Invocation:
        """Block until the control plane hands out the next invocation

        Raises:
            TransportError: If the connection fails
            ProtocolError: If the response is malformed, not 2xx, or has no request id
            TruncatedBodyError: If the body is shorter than declared
        """
        request = encode_request("GET", NEXT_PATH, self.host)
        with self.transport.connect() as conn:
            conn.send(request)
            response = read_response(conn.reader)

        status = response.status_code()
        if not 200 <= status < 300:
            raise ProtocolError(f"next invocation returned status {status}")

        if response.request_id is None:
            raise ProtocolError("next invocation response has no request id")

        return Invocation(request_id=response.request_id, payload=response.body)

    def submit_success(self, request_id: str, output: bytes) -> None:
        """Post handler output verbatim

        Raises:
            TransportError: If the connection or write fails
        """
        path = _invocation_path(RESPONSE_PATH, request_id)
        self._post(path, output)

    def submit_failure(self, request_id: str, message: str, error_type: str = HANDLER_ERROR_TYPE) -> None:
        """Post a structured failure document

        Raises:
            TransportError: If the connection or write fails
        """
        path = _invocation_path(ERROR_PATH, request_id)
        self._post(path, build_error_payload(message, error_type))

    def _post(self, path: str, body: bytes) -> None:
        request = encode_request("POST", path, self.host, body)
        with self.transport.connect() as conn:
            conn.send(request)
