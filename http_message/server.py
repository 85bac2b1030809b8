import collections.abc
import json
import types
import xml.etree.ElementTree
import xml.parsers.expat
from typing import Any, Self

from .base import InvalidArgumentError, MediaType, ParserError
from .headers import HeaderValue, Headers
from .message import Request
from .stream import Stream
from .uploaded_file import UploadedFile
from .uri import URI
from .utils import parse_query_string

MediaTypeParser = collections.abc.Callable[[str], Any]

_UNSET: Any = object()


def parse_json(text: str) -> Any:
    return json.loads(text)


def parse_form(text: str) -> Any:
    return parse_query_string(text)


def parse_xml(text: str) -> xml.etree.ElementTree.Element:
    """Parses an XML document, refusing entity declarations and external entities."""
    scanner = xml.parsers.expat.ParserCreate()
    scanner.SetParamEntityParsing(xml.parsers.expat.XML_PARAM_ENTITY_PARSING_NEVER)
    scanner.EntityDeclHandler = _reject_entity_declaration
    scanner.ExternalEntityRefHandler = _reject_external_entity
    scanner.Parse(text, True)
    return xml.etree.ElementTree.fromstring(text)


def _reject_entity_declaration(name: str, *_: Any) -> None:
    raise InvalidArgumentError(f"XML entity declaration {name!r} is forbidden")


def _reject_external_entity(context: str, base: str | None, system_id: str | None, public_id: str | None) -> int:
    raise InvalidArgumentError(f"External XML entity {system_id!r} is forbidden")


DEFAULT_MEDIA_TYPE_PARSERS: dict[str, MediaTypeParser] = {
    MediaType.JSON: parse_json,
    MediaType.XML: parse_xml,
    MediaType.TEXT_XML: parse_xml,
    MediaType.FORM: parse_form,
}


class ServerRequest(Request):
    """An incoming request together with the server state it arrived with.

    Besides the message itself it carries the server parameters, cookies,
    query arguments, uploaded files, attributes derived by the application and
    the body decoded by the parser registered for its media type.
    """

    __slots__ = (
        "__server_params",
        "__cookie_params",
        "__query_params",
        "__parsed_query_params",
        "__uploaded_files",
        "__attributes",
        "__parsed_body",
        "__parsed_body_cache",
        "__body_parsers",
    )

    def __init__(
        self,
        method: str,
        uri: URI | str,
        headers: Headers | collections.abc.Mapping[str, HeaderValue] | None = None,
        cookies: collections.abc.Mapping[str, str] | None = None,
        server_params: collections.abc.Mapping[str, Any] | None = None,
        body: Stream | None = None,
        uploaded_files: collections.abc.Mapping[str, Any] | None = None,
    ) -> None:
        server_params = dict(server_params or {})
        super().__init__(
            method,
            uri,
            headers,
            body,
            protocol_version=_protocol_version(server_params.get("SERVER_PROTOCOL")),
        )
        self.__server_params = types.MappingProxyType(server_params)
        self.__cookie_params = dict(cookies or {})
        self.__query_params: dict[str, Any] | None = None
        self.__parsed_query_params: dict[str, Any] | None = None
        self.__uploaded_files = _filter_uploaded_files(uploaded_files or {})
        self.__attributes: dict[str, Any] = {}
        self.__parsed_body: Any = _UNSET
        self.__parsed_body_cache: Any = _UNSET
        self.__body_parsers = dict(DEFAULT_MEDIA_TYPE_PARSERS)

    def register_media_type_parser(self, media_type: str, parser: MediaTypeParser) -> None:
        self.__body_parsers[media_type.lower()] = parser

    @property
    def server_params(self) -> collections.abc.Mapping[str, Any]:
        return self.__server_params

    @property
    def cookie_params(self) -> dict[str, str]:
        return dict(self.__cookie_params)

    def with_cookie_params(self, cookies: collections.abc.Mapping[str, str]) -> Self:
        return self._replace(cookie_params=dict(cookies))

    @property
    def query_params(self) -> dict[str, Any]:
        if self.__query_params is not None:
            return _copy_tree(self.__query_params)
        if self.__parsed_query_params is None:
            self.__parsed_query_params = parse_query_string(self.uri.query)
        return _copy_tree(self.__parsed_query_params)

    def with_query_params(self, query: collections.abc.Mapping[str, Any]) -> Self:
        return self._replace(query_params=_copy_tree(dict(query)))

    @property
    def uploaded_files(self) -> dict[str, Any]:
        return _copy_tree(self.__uploaded_files)

    def with_uploaded_files(self, uploaded_files: collections.abc.Mapping[str, Any]) -> Self:
        return self._replace(uploaded_files=_filter_uploaded_files(uploaded_files))

    @property
    def attributes(self) -> dict[str, Any]:
        return dict(self.__attributes)

    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self.__attributes.get(name, default)

    def with_attribute(self, name: str, value: Any) -> Self:
        attributes = dict(self.__attributes)
        attributes[name] = value
        return self._replace(attributes=attributes)

    def without_attribute(self, name: str) -> Self:
        attributes = dict(self.__attributes)
        attributes.pop(name, None)
        return self._replace(attributes=attributes)

    def get_parsed_body(self) -> Any:
        """Returns the body decoded by the parser registered for its media type.

        A value given to ``with_parsed_body`` takes precedence. The decoded
        body is cached, the parser runs at most once per instance. ``None``
        means there is no body or no parser for its media type.
        """
        if self.__parsed_body is not _UNSET:
            return self.__parsed_body
        if self.__parsed_body_cache is not _UNSET:
            return self.__parsed_body_cache

        body = self.body
        if not body.is_readable() or not body.get_size():
            return None

        parser = self.__body_parsers.get(self.media_type or "")
        if parser is None:
            return None

        parsed = parser(_read_text(body, self.content_charset))
        if not _is_structured(parsed):
            raise ParserError(
                "Request body media type parser return value must be a mapping, a sequence, an object or None"
            )

        self.__parsed_body_cache = parsed
        return parsed

    def with_parsed_body(self, data: Any) -> Self:
        if not _is_structured(data):
            raise InvalidArgumentError("Parsed body value must be a mapping, a sequence, an object or None")
        return self._replace(parsed_body=data)

    def _copy_into(self, clone: Any, changes: dict[str, Any]) -> None:
        message_changed = "message" in changes
        super()._copy_into(clone, changes)
        clone.__server_params = self.__server_params
        clone.__cookie_params = changes.pop("cookie_params", self.__cookie_params)
        clone.__query_params = changes.pop("query_params", self.__query_params)
        clone.__parsed_query_params = None
        clone.__uploaded_files = changes.pop("uploaded_files", self.__uploaded_files)
        clone.__attributes = changes.pop("attributes", self.__attributes)
        clone.__parsed_body = changes.pop("parsed_body", self.__parsed_body)
        clone.__parsed_body_cache = _UNSET if message_changed else self.__parsed_body_cache
        clone.__body_parsers = dict(self.__body_parsers)


def _protocol_version(server_protocol: Any) -> str:
    if not isinstance(server_protocol, str) or not server_protocol:
        return "1.1"
    return server_protocol.upper().replace("HTTP/", "")


def _read_text(body: Stream, charset: str | None) -> str:
    return body.get_payload().decode(charset or "utf-8")


def _is_structured(value: Any) -> bool:
    return value is None or not isinstance(value, str | bytes | bytearray | int | float | complex)


def _filter_uploaded_files(uploaded_files: Any) -> dict[str, Any]:
    if not isinstance(uploaded_files, collections.abc.Mapping):
        raise InvalidArgumentError("Uploaded files must be a mapping")
    for value in uploaded_files.values():
        _validate_uploaded_file_tree(value)
    return _copy_tree(dict(uploaded_files))


def _validate_uploaded_file_tree(value: Any) -> None:
    if isinstance(value, UploadedFile):
        return
    if isinstance(value, collections.abc.Mapping):
        items: collections.abc.Iterable[Any] = value.values()
    elif isinstance(value, list | tuple):
        items = value
    else:
        raise InvalidArgumentError("Invalid leaf in uploaded files structure")
    for item in items:
        _validate_uploaded_file_tree(item)




def _copy_tree(value: Any) -> Any:
    """Copies nested dicts and lists, leaves are shared."""
    if isinstance(value, collections.abc.Mapping):
        return {key: _copy_tree(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_copy_tree(item) for item in value]
    return value
