import pytest

import http_message
from http_message import URI, Body, Headers, InvalidArgumentError, Message, Request, Response


def test_host_header_is_taken_from_uri() -> None:
    request = Request("GET", "http://example.org/path")

    assert request.get_header("Host") == ["example.org"]
    assert request.headers == {"Host": ["example.org"]}


def test_host_header_includes_port() -> None:
    request = Request("GET", "http://example.org:8080/path")

    assert request.get_header_line("host") == "example.org:8080"


def test_explicit_host_header_is_kept() -> None:
    request = Request("GET", "http://example.org/", {"Host": "other.org"})

    assert request.get_header_line("Host") == "other.org"


def test_no_host_header_without_uri_host() -> None:
    assert not Request("GET", "/relative").has_header("Host")


def test_caller_headers_are_not_mutated() -> None:
    headers = Headers({"Accept": "text/html"})
    Request("GET", "http://example.org/", headers)

    assert not headers.has("Host")


@pytest.mark.parametrize("method", ["get", "Get", "GET"])
def test_method_is_upper_cased(method: str) -> None:
    assert Request(method, "/").method == "GET"


@pytest.mark.parametrize("method", ["FETCH", "", None, 1])
def test_invalid_method(method: object) -> None:
    with pytest.raises(InvalidArgumentError):
        Request(method, "/")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "uri, target",
    [
        ("http://example.org", "/"),
        ("http://example.org/a/b", "/a/b"),
        ("http://example.org/a?x=1&y=2", "/a?x=1&y=2"),
        ("http://example.org//double", "/double"),
    ],
)
def test_request_target(uri: str, target: str) -> None:
    assert Request("GET", uri).request_target == target


def test_with_request_target() -> None:
    request = Request("OPTIONS", "http://example.org/a")
    changed = request.with_request_target("*")

    assert changed.request_target == "*"
    assert request.request_target == "/a"


@pytest.mark.parametrize("target", ["/a b", "/a\tb", None])
def test_invalid_request_target(target: object) -> None:
    with pytest.raises(InvalidArgumentError):
        Request("GET", "/").with_request_target(target)  # type: ignore[arg-type]


def test_with_method() -> None:
    request = Request("GET", "/")
    changed = request.with_method("post")

    assert changed.method == "POST"
    assert request.method == "GET"


def test_with_uri_updates_host() -> None:
    request = Request("GET", "http://example.org/a")
    changed = request.with_uri(URI.parse("http://example.com:8080/b"))

    assert changed.get_header_line("Host") == "example.com:8080"
    assert changed.request_target == "/b"
    assert request.get_header_line("Host") == "example.org"
    assert str(request.uri) == "http://example.org/a"


def test_with_uri_preserving_host() -> None:
    request = Request("GET", "http://example.org/a")

    assert request.with_uri(URI.parse("http://example.com/"), preserve_host=True).get_header_line("Host") == (
        "example.org"
    )


def test_with_uri_preserving_missing_host() -> None:
    request = Request("GET", "/a")

    assert request.with_uri(URI.parse("http://example.com/"), preserve_host=True).get_header_line("Host") == (
        "example.com"
    )


def test_with_uri_without_host_keeps_header() -> None:
    request = Request("GET", "http://example.org/a")

    assert request.with_uri(URI.parse("/b")).get_header_line("Host") == "example.org"


def test_with_uri_requires_uri() -> None:
    with pytest.raises(InvalidArgumentError):
        Request("GET", "/").with_uri("http://example.org/")  # type: ignore[arg-type]


def test_header_mutators_are_immutable() -> None:
    request = Request("GET", "http://example.org/", {"Accept": "text/html"})

    added = request.with_added_header("accept", "application/json")
    replaced = request.with_header("Accept", ["application/xml"])
    removed = request.without_header("Accept")

    assert request.get_header("Accept") == ["text/html"]
    assert added.get_header("Accept") == ["text/html", "application/json"]
    assert added.get_header_line("Accept") == "text/html,application/json"
    assert replaced.get_header("Accept") == ["application/xml"]
    assert not removed.has_header("Accept")
    assert removed.has_header("Host")


def test_missing_header_accessors() -> None:
    request = Request("GET", "/")

    assert request.get_header("X-Missing") == []
    assert request.get_header_line("X-Missing") == ""


@pytest.mark.parametrize(
    "name, value",
    [
        ("", "value"),
        (None, "value"),
        ("X-Test", ""),
        ("X-Test", None),
        ("X-Test", ["a", 1]),
        ("X-Test", 1),
    ],
)
def test_invalid_header(name: object, value: object) -> None:
    with pytest.raises(InvalidArgumentError):
        Request("GET", "/").with_header(name, value)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "headers",
    [
        {"X-Count": 1},
        {"X-Count": [1, 2]},
        {"X-Count": None},
        {"X-Count": ""},
        {"": "value"},
        [("X-Count", "1")],
    ],
)
def test_invalid_constructor_headers(headers: object) -> None:
    with pytest.raises(InvalidArgumentError):
        Request("GET", "http://example.org", headers)  # type: ignore[arg-type]
    with pytest.raises(InvalidArgumentError):
        Response(200, headers)  # type: ignore[arg-type]


def test_constructor_accepts_header_lists() -> None:
    response = Response(200, {"X-Count": ["1", "2"]})

    assert response.get_header("x-count") == ["1", "2"]


@pytest.mark.parametrize("version", ["1.0", "1.1", "2", "2.0"])
def test_protocol_versions(version: str) -> None:
    request = Request("GET", "/", protocol_version=version)

    assert request.protocol_version == version
    assert request.with_protocol_version("1.1").protocol_version == "1.1"


@pytest.mark.parametrize("version", ["0.9", "3", "", 1.1])
def test_invalid_protocol_version(version: object) -> None:
    with pytest.raises(InvalidArgumentError):
        Request("GET", "/").with_protocol_version(version)  # type: ignore[arg-type]


def test_body_position_is_not_shared() -> None:
    request = Request("POST", "/", body=Body.from_bytes(b"payload"))
    changed = request.with_header("X-Test", "1")

    changed.body.read(3)

    assert request.body.tell() == 0
    assert bytes(request.body) == b"payload"
    assert bytes(changed.body) == b"payload"


def test_with_body() -> None:
    request = Request("POST", "/")
    body = Body.from_bytes(b"new")
    changed = request.with_body(body)

    assert changed.body is body
    assert bytes(request.body) == b""


def test_with_body_requires_stream() -> None:
    with pytest.raises(InvalidArgumentError):
        Request("POST", "/").with_body(b"raw")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "content_type, media_type, charset",
    [
        ("application/json", "application/json", None),
        ("Application/JSON; charset=UTF-8", "application/json", "utf-8"),
        ('text/html; charset="iso-8859-1"', "text/html", "iso-8859-1"),
        (None, None, None),
    ],
)
def test_media_type(content_type: str | None, media_type: str | None, charset: str | None) -> None:
    request = Request("POST", "/", {"Content-Type": content_type} if content_type else None)

    assert request.media_type == media_type
    assert request.content_charset == charset


def test_message_copy() -> None:
    message = Message(Headers({"Accept": "a"}), Body.from_bytes(b"abc"))
    clone = message.copy()

    assert clone.headers == message.headers
    assert clone.headers is not message.headers
    assert clone.body is not message.body
    assert bytes(clone.body) == b"abc"


def test_get_builds_request_with_headers() -> None:
    request = http_message.get(
        "http://example.org",
        headers={"Content-Type": "application/json", "Accept": "application/json"},
    )

    assert request.method == "GET"
    assert request.request_target == "/"
    assert request.get_header_line("Host") == "example.org"

    options = request.build_options()

    assert "Content-Type: application/json" in options.header_lines
    assert "Accept: application/json" in options.header_lines
    assert options.url == "http://example.org/"
