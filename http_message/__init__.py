import re
import sys
from typing import NamedTuple

from .base import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PROTOCOL_VERSION,
    DEFAULT_TIMEOUT,
    MAX_REDIRECTS,
    METHODS,
    PROTOCOL_VERSIONS,
    Header,
    HttpMessageError,
    InvalidArgumentError,
    MediaType,
    Method,
    ParserError,
    StreamError,
    TransportError,
    UnexpectedContentTypeError,
)
from .client import Client, ClientRequest, ClientResponse
from .environment import Environment, get_request
from .headers import Headers
from .httpx import HttpxTransport
from .message import HttpMessage, Message, Request, Response
from .request import (
    connect,
    delete,
    get,
    head,
    options,
    patch,
    patch_json,
    post,
    post_json,
    put,
    put_json,
    request,
    request_form,
    request_json,
    trace,
)
from .server import DEFAULT_MEDIA_TYPE_PARSERS, MediaTypeParser, ServerRequest
from .setup import setup
from .stream import Body, Stream
from .transport import Transport, TransportErrorCode, TransportOptions, TransportResult, TransportStatus
from .uploaded_file import UploadedFile, UploadError
from .uri import SCHEMES, URI
from .utils import build_query_parameters, parse_cookie_header, parse_query_string

__all__: tuple[str, ...] = (
    "Body",
    "Client",
    "ClientRequest",
    "ClientResponse",
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_MEDIA_TYPE_PARSERS",
    "DEFAULT_PROTOCOL_VERSION",
    "DEFAULT_TIMEOUT",
    "Environment",
    "Header",
    "Headers",
    "HttpMessage",
    "HttpMessageError",
    "HttpxTransport",
    "InvalidArgumentError",
    "MAX_REDIRECTS",
    "METHODS",
    "MediaType",
    "MediaTypeParser",
    "Message",
    "Method",
    "PROTOCOL_VERSIONS",
    "ParserError",
    "Request",
    "Response",
    "SCHEMES",
    "ServerRequest",
    "Stream",
    "StreamError",
    "Transport",
    "TransportError",
    "TransportErrorCode",
    "TransportOptions",
    "TransportResult",
    "TransportStatus",
    "URI",
    "UnexpectedContentTypeError",
    "UploadError",
    "UploadedFile",
    "build_query_parameters",
    "connect",
    "delete",
    "get",
    "get_request",
    "head",
    "options",
    "parse_cookie_header",
    "parse_query_string",
    "patch",
    "patch_json",
    "post",
    "post_json",
    "put",
    "put_json",
    "request",
    "request_form",
    "request_json",
    "setup",
    "trace",
)

__version__ = "0.1.0"

version = f"{__version__}, Python {sys.version}"


class VersionInfo(NamedTuple):
    major: int
    minor: int
    micro: int
    release_level: str
    serial: int


def _parse_version(v: str) -> VersionInfo:
    version_re = r"^(?P<major>\d+)\.(?P<minor>\d+)\.(?P<micro>\d+)((?P<release_level>[a-z]+)(?P<serial>\d+)?)?$"
    match = re.match(version_re, v)
    if not match:
        raise ImportError(f"Invalid package version {v}")
    try:
        major = int(match.group("major"))
        minor = int(match.group("minor"))
        micro = int(match.group("micro"))
        levels = {"rc": "candidate", "a": "alpha", "b": "beta", None: "final"}
        release_level = levels[match.group("release_level")]
        serial = int(match.group("serial")) if match.group("serial") else 0
        return VersionInfo(major, minor, micro, release_level, serial)
    except Exception as e:
        raise ImportError(f"Invalid package version {v}") from e


version_info = _parse_version(__version__)
