import gzip
import logging
import pathlib
import socket
from typing import Any

import httpx
import pytest

import http_message
from http_message import HttpxTransport, TransportError, TransportErrorCode, TransportOptions

from .conftest import RecordingHandler


def _transport(handler: RecordingHandler) -> HttpxTransport:
    return HttpxTransport(httpx.Client(transport=httpx.MockTransport(handler)))


def test_execute() -> None:
    handler = RecordingHandler(httpx.Response(200, headers={"X-Server": "mock"}, content=b"hello"))

    with _transport(handler) as transport:
        result = transport.execute(
            TransportOptions(method="GET", url="http://example.org/a?b=1", header_lines=("Accept: text/plain",))
        )

    assert result.status_code == 200
    assert result.error_code == TransportErrorCode.OK
    header_block = result.response_bytes[: result.header_size]
    assert header_block.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"X-Server: mock" in header_block or b"x-server: mock" in header_block
    assert header_block.endswith(b"\r\n\r\n")
    assert result.response_bytes[result.header_size :] == b"hello"
    assert result.info["http_code"] == 200
    assert result.info["header_size"] == result.header_size
    assert result.info["redirect_count"] == 0
    assert result.info["url"] == "http://example.org/a?b=1"
    assert result.info["request_header"].startswith("GET /a?b=1 HTTP/1.1\r\n")
    (request,) = handler.requests
    assert request.headers["Accept"] == "text/plain"


def test_user_agent_and_referer() -> None:
    handler = RecordingHandler(httpx.Response(200))

    with _transport(handler) as transport:
        transport.execute(
            TransportOptions(
                method="GET",
                url="http://example.org/",
                user_agent="agent/1.0",
                referer="http://referer.org/",
            )
        )
        transport.execute(
            TransportOptions(
                method="GET",
                url="http://example.org/",
                header_lines=("User-Agent: explicit",),
                user_agent="agent/1.0",
            )
        )

    first, second = handler.requests
    assert first.headers["User-Agent"] == "agent/1.0"
    assert first.headers["Referer"] == "http://referer.org/"
    assert second.headers.get_list("User-Agent") == ["explicit"]


def test_send_json_request() -> None:
    handler = RecordingHandler(
        httpx.Response(201, json={"id": 1}, headers={"Content-Type": "application/json; charset=utf-8"})
    )

    with _transport(handler) as transport:
        response = http_message.post_json("http://example.org/items", {"name": "x"}).send(transport)

    assert response.status == 201
    assert response.is_json
    assert response.json() == {"id": 1}
    (request,) = handler.requests
    assert request.method == "POST"
    assert request.content == b'{"name": "x"}'
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["Content-Length"] == "13"
    assert request.headers["Host"] == "example.org"


def test_redirect_is_followed() -> None:
    handler = RecordingHandler(
        httpx.Response(302, headers={"Location": "/next"}),
        httpx.Response(200, content=b"done"),
    )

    with _transport(handler) as transport:
        response = http_message.get("http://example.org/start", redirect_limit=3).send(transport)

    assert response.status == 200
    assert response.read() == b"done"
    assert response.info["redirect_count"] == 1
    assert response.info["url"] == "http://example.org/next"
    assert [str(request.url) for request in handler.requests] == [
        "http://example.org/start",
        "http://example.org/next",
    ]


def test_redirect_is_not_followed_by_default() -> None:
    handler = RecordingHandler(httpx.Response(302, headers={"Location": "/next"}), httpx.Response(200))

    with _transport(handler) as transport:
        response = http_message.get("http://example.org/start").send(transport)

    assert response.status == 302
    assert response.get_header_line("Location") == "/next"
    assert len(handler.requests) == 1


def test_too_many_redirects(caplog: pytest.LogCaptureFixture) -> None:
    handler = RecordingHandler(httpx.Response(302, headers={"Location": "/loop"}))

    with _transport(handler) as transport, caplog.at_level(logging.WARNING, logger="http_message"):
        with pytest.raises(TransportError) as e:
            http_message.get("http://example.org/loop", redirect_limit=2).send(transport)

    assert e.value.code == TransportErrorCode.TOO_MANY_REDIRECTS
    assert len(handler.requests) == 3
    assert any("too many redirects" in record.getMessage() for record in caplog.records)


def test_head_has_no_body() -> None:
    handler = RecordingHandler(httpx.Response(200, content=b"ignored"))

    with _transport(handler) as transport:
        result = transport.execute(TransportOptions(method="HEAD", url="http://example.org/", no_body=True))
        response = http_message.head("http://example.org/").send(transport)

    assert result.response_bytes[result.header_size :] == b""
    assert response.read() == b""
    assert handler.requests[1].method == "HEAD"


def test_decoded_body_headers_are_rewritten() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=gzip.compress(b"hello"))

    with HttpxTransport(httpx.Client(transport=httpx.MockTransport(handler))) as transport:
        response = http_message.get("http://example.org/").send(transport)

    assert response.read() == b"hello"
    assert not response.has_header("Content-Encoding")
    assert response.get_header_line("Content-Length") == "5"


def _raise(error: Exception) -> Any:
    def handler(request: httpx.Request) -> httpx.Response:
        raise error

    return handler


@pytest.mark.parametrize(
    "error, code",
    [
        (httpx.ConnectError("Connection refused"), TransportErrorCode.COULDNT_CONNECT),
        (httpx.ReadTimeout("Timed out"), TransportErrorCode.OPERATION_TIMEDOUT),
        (httpx.ConnectTimeout("Timed out"), TransportErrorCode.OPERATION_TIMEDOUT),
        (httpx.ReadError("Reset"), TransportErrorCode.RECV_ERROR),
        (httpx.WriteError("Broken pipe"), TransportErrorCode.SEND_ERROR),
        (httpx.RemoteProtocolError("Malformed"), TransportErrorCode.RECV_ERROR),
        (httpx.UnsupportedProtocol("Unknown"), TransportErrorCode.UNSUPPORTED_PROTOCOL),
        (httpx.DecodingError("Bad gzip"), TransportErrorCode.UNKNOWN),
    ],
)
def test_errors(caplog: pytest.LogCaptureFixture, error: Exception, code: TransportErrorCode) -> None:
    transport = HttpxTransport(httpx.Client(transport=httpx.MockTransport(_raise(error))))

    with transport, caplog.at_level(logging.WARNING, logger="http_message"):
        result = transport.execute(TransportOptions(method="GET", url="http://example.org/"))

    assert result.status_code is None
    assert result.error_code == code
    assert result.error_message
    (record,) = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert getattr(record, "request_url") == "http://example.org/"
    assert record.exc_info is not None


def test_resolve_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        try:
            raise socket.gaierror(-2, "Name or service not known")
        except socket.gaierror as e:
            raise httpx.ConnectError("Name or service not known") from e

    transport = HttpxTransport(httpx.Client(transport=httpx.MockTransport(handler)))

    with transport:
        with pytest.raises(TransportError) as e:
            http_message.get("http://unknown.invalid/").send(transport)

    assert e.value.code == TransportErrorCode.COULDNT_RESOLVE_HOST


def test_scoped_client_is_closed(monkeypatch: pytest.MonkeyPatch) -> None:
    handler = RecordingHandler(httpx.Response(200))
    client_class = httpx.Client
    clients: list[httpx.Client] = []

    def build_client() -> httpx.Client:
        client = client_class(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    monkeypatch.setattr(httpx, "Client", build_client)

    response = http_message.get("http://example.org/").send()

    assert response.status == 200
    (client,) = clients
    assert client.is_closed


def test_supplied_client_is_closed_by_close() -> None:
    client = httpx.Client(transport=httpx.MockTransport(RecordingHandler(httpx.Response(200))))
    transport = HttpxTransport(client)

    transport.execute(TransportOptions(method="GET", url="http://example.org/"))
    transport.execute(TransportOptions(method="GET", url="http://example.org/"))

    assert not client.is_closed

    transport.close()

    assert client.is_closed


def test_cookie_file(tmp_path: pathlib.Path) -> None:
    cookie_file = str(tmp_path / "cookies.txt")
    handler = RecordingHandler(
        httpx.Response(200, headers={"Set-Cookie": "session=abc; Path=/"}),
        httpx.Response(200),
    )

    with _transport(handler) as transport:
        http_message.get("http://example.org/login", cookie_file=cookie_file).send(transport)
        http_message.get("http://example.org/profile", cookie_file=cookie_file).send(transport)

    first, second = handler.requests
    assert "Cookie" not in first.headers
    assert second.headers["Cookie"] == "session=abc"
    assert "session" in (tmp_path / "cookies.txt").read_text()
