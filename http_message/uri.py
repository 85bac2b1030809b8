"""URI value object for HTTP messages (RFC 3986)."""

import collections.abc
import re
import urllib.parse
from typing import Any

import yarl

from .base import InvalidArgumentError

SCHEMES = ("", "http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

_uri_re = re.compile(
    r"^((?P<scheme>[^:/?#]+):)?"
    r"((?P<doubleslash>//)(?P<authority>[^/?#]*))?"
    r"(?P<path>[^?#]*)"
    r"((?P<querydef>\?)(?P<query>[^#]*))?"
    r"(#(?P<fragment>.*))?",
    re.RegexFlag.DOTALL,
)
_path_unsafe_re = re.compile(r"(?:[^a-zA-Z0-9_\-.~:@&=+$,/;%]+|%(?![A-Fa-f0-9]{2}))")
_query_unsafe_re = re.compile(r"(?:[^a-zA-Z0-9_\-.~!$&'()*+,;=%:@/?]+|%(?![A-Fa-f0-9]{2}))")


class URI:
    """Immutable URI; every ``with_*`` method returns a new instance."""

    __slots__ = ("__scheme", "__user", "__password", "__host", "__port", "__path", "__query", "__fragment")

    def __init__(
        self,
        scheme: str | None = "",
        host: str | None = "",
        port: int | None = None,
        path: str | None = "/",
        query: str | None = "",
        fragment: str | None = "",
        user: str | None = "",
        password: str | None = "",
    ) -> None:
        self.__scheme = _filter_scheme(scheme)
        self.__port = _filter_port(port)
        self.__query = _filter_query(_strip_prefix(query, "?"), "query")
        self.__fragment = _filter_fragment(fragment)
        self.__path = _filter_path(path) if path else "/"
        self.__host = host or ""
        self.__user = user or ""
        self.__password = password or ""

    @staticmethod
    def parse(value: "str | collections.abc.Mapping[str, Any] | URI") -> "URI":
        """Builds a normalized URI from a string or from a mapping of its components."""
        if isinstance(value, URI):
            return value
        if isinstance(value, str):
            parts = URI.split(value)
        elif isinstance(value, collections.abc.Mapping):
            parts = value
        else:
            raise InvalidArgumentError(f"URI must be a string or a mapping, received {type(value).__name__}")

        return URI(
            scheme=parts.get("scheme"),
            host=parts.get("host"),
            port=_coerce_port(parts.get("port")),
            path=parts.get("path"),
            query=parts.get("query"),
            fragment=parts.get("fragment"),
            user=parts.get("user"),
            password=parts.get("password"),
        )

    @staticmethod
    def split(value: str) -> dict[str, Any]:
        """Splits a URI string into its raw components.

        yarl performs the structural decomposition; strings it rejects are
        matched against the RFC 3986 appendix B expression instead.
        """
        if not value:
            return _split_with_regex(value)
        try:
            url = yarl.URL(value, encoded=True)
        except (ValueError, TypeError):
            return _split_with_regex(value)

        parts: dict[str, Any] = {"path": url.raw_path}
        if url.scheme:
            parts["scheme"] = url.scheme
        parts.update(_split_authority(url.raw_authority))
        if url.raw_query_string:
            parts["query"] = url.raw_query_string
        if url.raw_fragment:
            parts["fragment"] = url.raw_fragment
        return parts

    @property
    def scheme(self) -> str:
        return self.__scheme

    @property
    def authority(self) -> str:
        user_info = self.user_info
        port = self.port
        return (f"{user_info}@" if user_info else "") + self.__host + (f":{port}" if port is not None else "")

    @property
    def user_info(self) -> str:
        return self.__user + (f":{self.__password}" if self.__password else "")

    @property
    def host(self) -> str:
        return self.__host

    @property
    def port(self) -> int | None:
        if not self.__port or DEFAULT_PORTS.get(self.__scheme) == self.__port:
            return None
        return self.__port

    @property
    def path(self) -> str:
        return self.__path

    @property
    def query(self) -> str:
        return self.__query

    @property
    def fragment(self) -> str:
        return self.__fragment

    def with_scheme(self, scheme: str) -> "URI":
        return self.__replace(scheme=_filter_scheme(scheme))

    def with_user_info(self, user: str, password: str | None = None) -> "URI":
        return self.__replace(user=user or "", password=password or "")

    def with_host(self, host: str) -> "URI":
        if not isinstance(host, str):
            raise InvalidArgumentError("URI host must be a string")
        return self.__replace(host=host)

    def with_port(self, port: int | None) -> "URI":
        return self.__replace(port=_filter_port(port))

    def with_path(self, path: str) -> "URI":
        return self.__replace(path=_filter_path(path))

    def with_query(self, query: str) -> "URI":
        return self.__replace(query=_filter_query(_strip_prefix(query, "?"), "query"))

    def with_fragment(self, fragment: str) -> "URI":
        return self.__replace(fragment=_filter_fragment(fragment))

    def __replace(self, **changes: Any) -> "URI":
        uri = URI.__new__(URI)
        uri.__scheme = changes.get("scheme", self.__scheme)
        uri.__user = changes.get("user", self.__user)
        uri.__password = changes.get("password", self.__password)
        uri.__host = changes.get("host", self.__host)
        uri.__port = changes.get("port", self.__port)
        uri.__path = changes.get("path", self.__path)
        uri.__query = changes.get("query", self.__query)
        uri.__fragment = changes.get("fragment", self.__fragment)
        return uri

    def __str__(self) -> str:
        scheme = self.__scheme
        authority = self.authority
        return (
            (f"{scheme}:" if scheme else "")
            + (f"//{authority}" if authority else "")
            + "/"
            + self.__path.lstrip("/")
            + (f"?{self.__query}" if self.__query else "")
            + (f"#{self.__fragment}" if self.__fragment else "")
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, URI):
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))

    def __repr__(self) -> str:
        return f"<URI [{self}]>"


def _split_with_regex(value: str) -> dict[str, Any]:
    match = _uri_re.match(value)
    assert match is not None

    parts: dict[str, Any] = {}
    if match.group("scheme"):
        parts["scheme"] = match.group("scheme")
    if match.group("doubleslash") == "//":
        parts.update(_split_authority(match.group("authority")))
    parts["path"] = match.group("path")
    if match.group("querydef"):
        parts["query"] = match.group("query")
    if match.group("fragment") is not None:
        parts["fragment"] = match.group("fragment")
    return parts


def _split_authority(authority: str) -> dict[str, Any]:
    parts: dict[str, Any] = {"host": ""}
    if not authority:
        return parts

    # the last @ wins, unescaped @ in the user info is tolerated
    user_info, separator, host_port = authority.rpartition("@")
    if separator:
        user, password_separator, password = user_info.partition(":")
        if password_separator and user:
            parts["user"] = user
            parts["password"] = password
        else:
            parts["user"] = user_info

    host_end = 0
    if host_port.startswith("[") and "]" in host_port:
        host_end = host_port.index("]")

    port_separator = host_port.rfind(":")
    if port_separator > host_end:
        parts["host"] = host_port[:port_separator]
        parts["port"] = host_port[port_separator + 1 :]
    else:
        parts["host"] = host_port
    return parts


def _coerce_port(port: Any) -> int | None:
    if port is None or port == "":
        return None
    if isinstance(port, str):
        if not port.isdigit():
            raise InvalidArgumentError(f"URI port invalid; {port!r} is not a number")
        return int(port)
    return port


def _filter_scheme(scheme: Any) -> str:
    if scheme is None:
        return ""
    if not isinstance(scheme, str):
        raise InvalidArgumentError("URI scheme must be a string")

    scheme = scheme.lower().replace("://", "")
    if scheme not in SCHEMES:
        raise InvalidArgumentError(f"URI scheme must be one of: {', '.join(repr(s) for s in SCHEMES)}")
    return scheme


def _filter_port(port: Any) -> int | None:
    if port is None:
        return None
    if isinstance(port, bool) or not isinstance(port, int):
        raise InvalidArgumentError("URI port invalid; must be None or an integer")
    if not 1 <= port <= 65535:
        raise InvalidArgumentError("URI port invalid; must be between 1 and 65535 (inclusive)")
    return port


def _filter_path(path: Any) -> str:
    if not isinstance(path, str):
        raise InvalidArgumentError("URI path must be a string")
    return _path_unsafe_re.sub(_encode_match, path)


def _filter_query(query: Any, component: str) -> str:
    if query is None:
        return ""
    if not isinstance(query, str):
        raise InvalidArgumentError(f"URI {component} must be a string")
    return _query_unsafe_re.sub(_encode_match, query)


def _filter_fragment(fragment: Any) -> str:
    return _filter_query(_strip_prefix(fragment, "#"), "fragment")


def _encode_match(match: re.Match[str]) -> str:
    return urllib.parse.quote(match.group(0), safe="")


def _strip_prefix(value: Any, prefix: str) -> Any:
    return value.lstrip(prefix) if isinstance(value, str) else value
