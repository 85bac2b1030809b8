import re

import multidict

MAX_REDIRECTS = 10
DEFAULT_TIMEOUT = 400.0
DEFAULT_CONNECT_TIMEOUT: float | None = None
DEFAULT_PROTOCOL_VERSION = "1.1"
PROTOCOL_VERSIONS = frozenset(("1.0", "1.1", "2", "2.0"))


class Method:
    CONNECT = "CONNECT"
    DELETE = "DELETE"
    GET = "GET"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"
    POST = "POST"
    PUT = "PUT"
    TRACE = "TRACE"


METHODS = frozenset(
    (
        Method.CONNECT,
        Method.DELETE,
        Method.GET,
        Method.HEAD,
        Method.OPTIONS,
        Method.PATCH,
        Method.POST,
        Method.PUT,
        Method.TRACE,
    )
)


class Header:
    ACCEPT = multidict.istr("Accept")
    AUTHORIZATION = multidict.istr("Authorization")
    CONTENT_TYPE = multidict.istr("Content-Type")
    CONTENT_ENCODING = multidict.istr("Content-Encoding")
    CONTENT_LENGTH = multidict.istr("Content-Length")
    COOKIE = multidict.istr("Cookie")
    HOST = multidict.istr("Host")
    LOCATION = multidict.istr("Location")
    REFERER = multidict.istr("Referer")
    USER_AGENT = multidict.istr("User-Agent")
    X_HTTP_METHOD_OVERRIDE = multidict.istr("X-Http-Method-Override")
    X_FORWARDED_PROTO = multidict.istr("X-Forwarded-Proto")
    X_FORWARDED_PORT = multidict.istr("X-Forwarded-Port")


class MediaType:
    JSON = "application/json"
    FORM = "application/x-www-form-urlencoded"
    MULTIPART_FORM = "multipart/form-data"
    XML = "application/xml"
    TEXT_XML = "text/xml"


FORM_MEDIA_TYPES = frozenset((MediaType.FORM, MediaType.MULTIPART_FORM))

json_re = re.compile(r"^application/(?:[\w.+-]+?\+)?json", re.RegexFlag.IGNORECASE)
_media_type_separator_re = re.compile(r"\s*[;,]\s*")
_charset_re = re.compile(r";\s*charset\s*=\s*\"?([^\";,\s]+)", re.RegexFlag.IGNORECASE)


def parse_media_type(content_type: str | None) -> str | None:
    if not content_type:
        return None
    return _media_type_separator_re.split(content_type, maxsplit=1)[0].lower()


def parse_charset(content_type: str | None) -> str | None:
    if not content_type:
        return None
    match = _charset_re.search(content_type)
    return match.group(1).lower() if match is not None else None


def is_expected_content_type(response_content_type: str, expected_content_type: str) -> bool:
    if expected_content_type == "application/json":
        return bool(json_re.match(response_content_type))
    return expected_content_type in response_content_type


class HttpMessageError(Exception):
    """Base class of every error raised by the package"""


class InvalidArgumentError(HttpMessageError, ValueError):
    """A constructor or mutator received a malformed argument"""


class StreamError(HttpMessageError, OSError):
    """An I/O operation is not possible on the stream"""


class TransportError(HttpMessageError):
    """The transport failed to produce a response"""

    def __init__(self, message: str, code: int = 0) -> None:
        super().__init__(message)
        self.code = code


class ParserError(HttpMessageError, RuntimeError):
    """A media type parser broke its contract"""


class UnexpectedContentTypeError(HttpMessageError):
    """ContentType is unexpected"""
