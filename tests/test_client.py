"""Tests for the runtime API client

Socket-level tests run against a FakeControlPlane over real TCP; exact
request bytes are checked with an in-memory recording transport.
"""

import io
import json

import jsonschema
import pytest

from fake_control_plane import free_port, invocation_response
from shellrt.client import RuntimeApiClient, build_error_payload
from shellrt.config import RuntimeConfig
from shellrt.errors import ProtocolError, TransportError, TruncatedBodyError


ERROR_PAYLOAD_SCHEMA = {
    "type": "object",
    "properties": {
        "errorMessage": {"type": "string"},
        "errorType": {"const": "Runtime.HandlerError"},
    },
    "required": ["errorMessage", "errorType"],
    "additionalProperties": False,
}


class RecordingConnection:
    def __init__(self, transport):
        self.transport = transport
        self.reader = io.BytesIO(transport.response)

    def send(self, data: bytes) -> None:
        self.transport.sent.append(data)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.transport.closed += 1


class RecordingTransport:
    """Captures request bytes and replays a canned response"""

    def __init__(self, response: bytes = b""):
        self.response = response
        self.sent = []
        self.opened = 0
        self.closed = 0

    def connect(self):
        self.opened += 1
        return RecordingConnection(self)


def make_client(response: bytes = b""):
    transport = RecordingTransport(response)
    config = RuntimeConfig(runtime_api="127.0.0.1:9001")
    return RuntimeApiClient(config, transport=transport), transport


# TEST050: Fetch sends a bare GET with the Host header and returns the invocation
def test_050_fetch_request_bytes():
    client, transport = make_client(invocation_response("abc-123", b'{"n":5}'))

    invocation = client.fetch_next_invocation()

    assert transport.sent == [
        b"GET /2018-06-01/runtime/invocation/next HTTP/1.1\r\n"
        b"Host: 127.0.0.1:9001\r\n"
        b"\r\n"
    ]
    assert invocation.request_id == "abc-123"
    assert invocation.payload == b'{"n":5}'


# TEST051: Success submission posts the raw output to the response path
def test_051_submit_success_request_bytes():
    client, transport = make_client()

    client.submit_success("abc-123", b'{"n":25}')

    assert transport.sent == [
        b"POST /2018-06-01/runtime/invocation/abc-123/response HTTP/1.1\r\n"
        b"Host: 127.0.0.1:9001\r\n"
        b"Content-Length: 8\r\n"
        b"\r\n"
        b'{"n":25}'
    ]


# TEST052: Failure submission posts the JSON error document to the error path
def test_052_submit_failure_request_bytes():
    client, transport = make_client()

    client.submit_failure("err-1", "bad input")

    body = b'{"errorMessage": "bad input", "errorType": "Runtime.HandlerError"}'
    assert transport.sent == [
        b"POST /2018-06-01/runtime/invocation/err-1/error HTTP/1.1\r\n"
        b"Host: 127.0.0.1:9001\r\n"
        b"Content-Length: " + str(len(body)).encode() + b"\r\n"
        b"\r\n" + body
    ]


# TEST053: Every operation opens and releases its own connection, even on failure
def test_053_connection_released_per_operation():
    client, transport = make_client(invocation_response(None, b"{}"))

    with pytest.raises(ProtocolError):
        client.fetch_next_invocation()
    client.submit_success("r1", b"out")
    client.submit_failure("r1", "boom")

    assert transport.opened == 3
    assert transport.closed == 3


# TEST054: Missing request id on fetch is a protocol error
def test_054_fetch_without_request_id():
    client, _ = make_client(invocation_response(None, b'{"n":5}'))
    with pytest.raises(ProtocolError):
        client.fetch_next_invocation()


# TEST055: Non-2xx fetch status is a protocol error
def test_055_fetch_error_status():
    client, _ = make_client(invocation_response("r1", b"{}", status="500 Internal Server Error"))
    with pytest.raises(ProtocolError):
        client.fetch_next_invocation()


# TEST056: Request ids are percent-encoded into submission paths
def test_056_request_id_is_path_encoded():
    client, transport = make_client()
    client.submit_success("a/b c", b"")
    assert transport.sent[0].startswith(b"POST /2018-06-01/runtime/invocation/a%2Fb%20c/response HTTP/1.1\r\n")


# TEST057: Failure payload escapes quotes, backslashes and newlines
def test_057_error_payload_escaping():
    message = 'line one "quoted" \\ path\nline two\t\x01'
    payload = build_error_payload(message)

    document = json.loads(payload)
    jsonschema.validate(document, ERROR_PAYLOAD_SCHEMA)
    assert document["errorMessage"] == message
    assert b"\n" not in payload


# TEST058: Failure payload for a plain message matches the fixed template
def test_058_error_payload_template():
    assert build_error_payload("bad input") == (
        b'{"errorMessage": "bad input", "errorType": "Runtime.HandlerError"}'
    )


# TEST059: Scenario - fetch over TCP, then success submission lands on the response path
def test_059_fetch_and_submit_success_over_tcp(control_plane, config):
    control_plane.queue_response(invocation_response("abc-123", b'{"n":5}'))
    client = RuntimeApiClient(config)

    invocation = client.fetch_next_invocation()
    fetch_request = control_plane.next_request()
    client.submit_success(invocation.request_id, b'{"n":25}')
    submit_request = control_plane.next_request()

    assert invocation.request_id == "abc-123"
    assert invocation.payload == b'{"n":5}'
    assert fetch_request.request_target() == ("GET", "/2018-06-01/runtime/invocation/next")
    assert submit_request.request_target() == ("POST", "/2018-06-01/runtime/invocation/abc-123/response")
    assert submit_request.body == b'{"n":25}'


# TEST060: Scenario - failure submission over TCP carries the JSON error document
def test_060_submit_failure_over_tcp(control_plane, config):
    client = RuntimeApiClient(config)

    client.submit_failure("err-1", "bad input")
    request = control_plane.next_request()

    assert request.request_target() == ("POST", "/2018-06-01/runtime/invocation/err-1/error")
    assert request.body == b'{"errorMessage": "bad input", "errorType": "Runtime.HandlerError"}'


# TEST061: A body truncated by connection close is reported as TruncatedBodyError
def test_061_truncated_body_over_tcp(control_plane, config):
    head = b"HTTP/1.1 200 OK\r\nLambda-Runtime-Aws-Request-Id: r1\r\nContent-Length: 100\r\n\r\n"
    control_plane.queue_response(head + b"y" * 40)
    client = RuntimeApiClient(config)

    with pytest.raises(TruncatedBodyError) as exc_info:
        client.fetch_next_invocation()

    assert (exc_info.value.declared, exc_info.value.received) == (100, 40)


# TEST062: Large payloads arrive intact
def test_062_large_payload_over_tcp(control_plane, config):
    payload = b"z" * (1 << 20)
    control_plane.queue_response(invocation_response("big", payload))
    client = RuntimeApiClient(config)

    invocation = client.fetch_next_invocation()
    assert len(invocation.payload) == len(payload)


# TEST063: Connection refused raises TransportError for fetch and submit
def test_063_connection_refused():
    client = RuntimeApiClient(RuntimeConfig(runtime_api=f"127.0.0.1:{free_port()}"))

    with pytest.raises(TransportError):
        client.fetch_next_invocation()
    with pytest.raises(TransportError):
        client.submit_success("r1", b"out")
    with pytest.raises(TransportError):
        client.submit_failure("r1", "boom")


# TEST064: A failed call does not affect the next one
def test_064_failures_do_not_poison_later_calls(control_plane, config):
    control_plane.queue_response(invocation_response("r1", b"{}", status="503 Service Unavailable"))
    control_plane.queue_response(invocation_response("r2", b"{}"))
    client = RuntimeApiClient(config)

    with pytest.raises(ProtocolError):
        client.fetch_next_invocation()
    assert client.fetch_next_invocation().request_id == "r2"
