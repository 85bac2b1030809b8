import abc
import collections.abc
import http
import json
import re
from typing import Any, Self

from .base import (
    DEFAULT_PROTOCOL_VERSION,
    METHODS,
    PROTOCOL_VERSIONS,
    Header,
    InvalidArgumentError,
    UnexpectedContentTypeError,
    is_expected_content_type,
    json_re,
    parse_charset,
    parse_media_type,
)
from .headers import HeaderValue, Headers
from .stream import Body, Stream
from .uri import URI

_whitespace_re = re.compile(r"\s")


class Message:
    """Protocol version, headers and body shared by requests and responses.

    A message owns its headers and its body. Every ``with_*`` method returns a
    new message holding copies of both, the receiver is left untouched.
    """

    __slots__ = ("__protocol_version", "__headers", "__body")

    def __init__(
        self,
        headers: Headers | None = None,
        body: Stream | None = None,
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
    ) -> None:
        self.__protocol_version = _filter_protocol_version(protocol_version)
        self.__headers = headers if headers is not None else Headers()
        self.__body = body if body is not None else Body()

    @property
    def protocol_version(self) -> str:
        return self.__protocol_version

    @property
    def headers(self) -> Headers:
        return self.__headers

    @property
    def body(self) -> Stream:
        return self.__body

    def copy(self) -> "Message":
        return self.__build(self.__headers.copy(), self.__protocol_version)

    def with_protocol_version(self, version: str) -> "Message":
        return self.__build(self.__headers.copy(), _filter_protocol_version(version))

    def with_header(self, name: str, value: HeaderValue) -> "Message":
        values = _filter_header(name, value)
        headers = self.__headers.copy()
        headers.set(name, values)
        return self.__build(headers, self.__protocol_version)

    def with_added_header(self, name: str, value: HeaderValue) -> "Message":
        values = _filter_header(name, value)
        headers = self.__headers.copy()
        headers.add(name, values)
        return self.__build(headers, self.__protocol_version)

    def without_header(self, name: str) -> "Message":
        headers = self.__headers.copy()
        headers.remove(name)
        return self.__build(headers, self.__protocol_version)

    def with_body(self, body: Stream) -> "Message":
        if not isinstance(body, Stream):
            raise InvalidArgumentError("Body must be a Stream")
        message = Message.__new__(Message)
        message.__protocol_version = self.__protocol_version
        message.__headers = self.__headers.copy()
        message.__body = body
        return message

    def __build(self, headers: Headers, protocol_version: str) -> "Message":
        message = Message.__new__(Message)
        message.__protocol_version = protocol_version
        message.__headers = headers
        message.__body = copy_body(self.__body)
        return message


def copy_body(body: Stream) -> Stream:
    """Streams that can be rewound get an independent cursor, others are handed over as is."""
    if body.is_readable() and body.is_seekable():
        return body.copy()
    return body


class HttpMessage(abc.ABC):
    """Header and body capability of requests and responses."""

    __slots__ = ()

    @property
    @abc.abstractmethod
    def message(self) -> Message: ...

    @abc.abstractmethod
    def _with_message(self, message: Message) -> Self: ...

    @property
    def protocol_version(self) -> str:
        return self.message.protocol_version

    @property
    def headers(self) -> dict[str, list[str]]:
        return self.message.headers.all()

    @property
    def body(self) -> Stream:
        return self.message.body

    def has_header(self, name: str) -> bool:
        return self.message.headers.has(name)

    def get_header(self, name: str) -> list[str]:
        return self.message.headers.get(name, [])

    def get_header_line(self, name: str) -> str:
        return ",".join(self.get_header(name))

    def with_protocol_version(self, version: str) -> Self:
        return self._with_message(self.message.with_protocol_version(version))

    def with_header(self, name: str, value: HeaderValue) -> Self:
        return self._with_message(self.message.with_header(name, value))

    def with_added_header(self, name: str, value: HeaderValue) -> Self:
        return self._with_message(self.message.with_added_header(name, value))

    def without_header(self, name: str) -> Self:
        return self._with_message(self.message.without_header(name))

    def with_body(self, body: Stream) -> Self:
        return self._with_message(self.message.with_body(body))

    @property
    def content_type(self) -> str | None:
        return self.get_header_line(Header.CONTENT_TYPE) or None

    @property
    def media_type(self) -> str | None:
        return parse_media_type(self.content_type)

    @property
    def content_charset(self) -> str | None:
        return parse_charset(self.content_type)


class Request(HttpMessage):
    """HTTP request: method, URI, headers and body.

    When no Host header is given and the URI carries a host, the Host header
    is taken from the URI.
    """

    __slots__ = ("__message", "__method", "__uri", "__request_target", "__computed_request_target")

    def __init__(
        self,
        method: str,
        uri: URI | str,
        headers: Headers | collections.abc.Mapping[str, HeaderValue] | None = None,
        body: Stream | None = None,
        *,
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
    ) -> None:
        method = filter_method(method)
        uri = URI.parse(uri)
        headers = filter_headers(headers)

        if not headers.has(Header.HOST) and uri.host:
            headers.set(Header.HOST, _host_header(uri))

        self.__message = Message(headers, body, protocol_version)
        self.__method = method
        self.__uri = uri
        self.__request_target: str | None = None
        self.__computed_request_target: str | None = None

    @property
    def message(self) -> Message:
        return self.__message

    @property
    def method(self) -> str:
        return self.__method

    @property
    def uri(self) -> URI:
        return self.__uri

    @property
    def request_target(self) -> str:
        if self.__request_target:
            return self.__request_target
        if self.__computed_request_target is None:
            target = "/" + self.__uri.path.lstrip("/")
            if self.__uri.query:
                target += f"?{self.__uri.query}"
            self.__computed_request_target = target
        return self.__computed_request_target

    def with_request_target(self, request_target: str) -> Self:
        if not isinstance(request_target, str) or _whitespace_re.search(request_target):
            raise InvalidArgumentError(
                "Invalid request target provided; must be a string and cannot contain whitespace"
            )
        return self._replace(request_target=request_target)

    def with_method(self, method: str) -> Self:
        return self._replace(method=filter_method(method))

    def with_uri(self, uri: URI, preserve_host: bool = False) -> Self:
        """Replaces the URI and, unless ``preserve_host`` is set, the Host header.

        With ``preserve_host`` the Host header is only filled in when it was
        missing or empty and the new URI carries a host.
        """
        if not isinstance(uri, URI):
            raise InvalidArgumentError("URI must be a URI instance")

        message = self.__message
        if uri.host and (not preserve_host or not self.get_header_line(Header.HOST)):
            message = message.with_header(Header.HOST, _host_header(uri))
        return self._replace(uri=uri, message=message)

    def _with_message(self, message: Message) -> Self:
        return self._replace(message=message)

    def _replace(self, **changes: Any) -> Self:
        clone = object.__new__(type(self))
        self._copy_into(clone, changes)
        if changes:
            raise TypeError(f"Unknown fields: {', '.join(changes)}")
        return clone

    def _copy_into(self, clone: Any, changes: dict[str, Any]) -> None:
        clone.__message = changes.pop("message", None) or self.__message.copy()
        clone.__method = changes.pop("method", self.__method)
        clone.__uri = changes.pop("uri", self.__uri)
        clone.__request_target = changes.pop("request_target", self.__request_target)
        clone.__computed_request_target = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} [{self.__method} {self.__uri}]>"


class Response(HttpMessage):
    __slots__ = ("__message", "__status", "__reason_phrase")

    def __init__(
        self,
        status: int = 200,
        headers: Headers | collections.abc.Mapping[str, HeaderValue] | None = None,
        body: Stream | None = None,
        *,
        reason_phrase: str = "",
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
    ) -> None:
        headers = filter_headers(headers)

        self.__message = Message(headers, body, protocol_version)
        self.__status = _filter_status(status)
        self.__reason_phrase = reason_phrase or _default_reason_phrase(self.__status)

    @property
    def message(self) -> Message:
        return self.__message

    @property
    def status(self) -> int:
        return self.__status

    @property
    def reason_phrase(self) -> str:
        return self.__reason_phrase

    def with_status(self, status: int, reason_phrase: str = "") -> Self:
        status = _filter_status(status)
        return self._replace(status=status, reason_phrase=reason_phrase or _default_reason_phrase(status))

    def is_informational(self) -> bool:
        return 100 <= self.status < 200

    def is_successful(self) -> bool:
        return 200 <= self.status < 300

    def is_redirection(self) -> bool:
        return 300 <= self.status < 400

    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    def is_server_error(self) -> bool:
        return 500 <= self.status < 600

    @property
    def is_json(self) -> bool:
        return bool(json_re.match(self.content_type or ""))

    def read(self) -> bytes:
        return bytes(self.body)

    def text(self, encoding: str | None = None) -> str:
        return self.read().decode(encoding or self.content_charset or "utf-8")

    def json(
        self,
        *,
        encoding: str | None = None,
        loads: collections.abc.Callable[[str], Any] = json.loads,
        content_type: str | None = "application/json",
    ) -> Any:
        if content_type is not None:
            response_content_type = (self.content_type or "").lower()
            if not is_expected_content_type(response_content_type, content_type):
                raise UnexpectedContentTypeError(f"Expected {content_type}, actual {response_content_type}")

        text = self.text(encoding=encoding)
        if not text:
            return None
        return loads(text)

    def _with_message(self, message: Message) -> Self:
        return self._replace(message=message)

    def _replace(self, **changes: Any) -> Self:
        clone = object.__new__(type(self))
        self._copy_into(clone, changes)
        if changes:
            raise TypeError(f"Unknown fields: {', '.join(changes)}")
        return clone

    def _copy_into(self, clone: Any, changes: dict[str, Any]) -> None:
        clone.__message = changes.pop("message", None) or self.__message.copy()
        clone.__status = changes.pop("status", self.__status)
        clone.__reason_phrase = changes.pop("reason_phrase", self.__reason_phrase)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} [{self.__status}]>"


def filter_method(method: Any) -> str:
    if not isinstance(method, str):
        raise InvalidArgumentError(f"Unsupported HTTP method; must be a string, received {type(method).__name__}")

    method = method.upper()
    if method not in METHODS:
        raise InvalidArgumentError(f"Unsupported HTTP method {method!r} provided")
    return method


def _filter_protocol_version(version: Any) -> str:
    if version not in PROTOCOL_VERSIONS:
        raise InvalidArgumentError(
            f"Invalid HTTP protocol version {version!r}. Supported: {', '.join(sorted(PROTOCOL_VERSIONS))}"
        )
    return version


def _filter_header(name: Any, value: Any) -> list[str]:
    if not name:
        raise InvalidArgumentError("Header name is required")
    if not isinstance(name, str):
        raise InvalidArgumentError("Header name must be a string")
    if not value:
        raise InvalidArgumentError("Header value is required")

    values = [value] if isinstance(value, str) else value
    if not isinstance(values, collections.abc.Iterable):
        raise InvalidArgumentError("Header value must be a string or a list of strings")
    values = list(values)
    for line in values:
        if not isinstance(line, str):
            raise InvalidArgumentError("Header value must be a string")
    return values


def filter_headers(headers: Any) -> Headers:
    if headers is None:
        return Headers()
    if isinstance(headers, Headers):
        return headers.copy()
    if not isinstance(headers, collections.abc.Mapping):
        raise InvalidArgumentError("Headers must be a mapping of header names to values")
    collection = Headers()
    for name, value in headers.items():
        collection.set(name, _filter_header(name, value))
    return collection


def _filter_status(status: Any) -> int:
    if isinstance(status, bool) or not isinstance(status, int) or not 100 <= status <= 599:
        raise InvalidArgumentError(f"Invalid HTTP status code {status!r}; must be an integer between 100 and 599")
    return status


def _default_reason_phrase(status: int) -> str:
    try:
        return http.HTTPStatus(status).phrase
    except ValueError:
        return ""


def _host_header(uri: URI) -> str:
    return uri.host + (f":{uri.port}" if uri.port is not None else "")
