"""Reconstruction of an incoming request from CGI/WSGI server variables.

The base path heuristic strips ``SCRIPT_NAME`` (or its directory) from the
front of the request path. It is best effort: when the server rewrites URLs
``REQUEST_URI`` and ``SCRIPT_NAME`` may diverge and the derived path can be
wrong. ``Environment.base_path`` exposes what was detected.
"""

import base64
import binascii
import collections.abc
import logging
import os
import posixpath
import re
import sys
import time
from typing import IO, Any

from .base import FORM_MEDIA_TYPES, Header, Method
from .headers import Headers
from .server import ServerRequest
from .stream import READ_CHUNK_SIZE, Body
from .uploaded_file import UploadedFile
from .uri import URI
from .utils import parse_cookie_header

logger = logging.getLogger(__package__)

_ipv6_host_re = re.compile(r"^(\[[a-fA-F0-9:.]+\])(:\d+)?$")


class Environment:
    """Server variables describing a single incoming request.

    ``variables`` defaults to ``os.environ``, as seen by a CGI script; a WSGI
    environ may be given as well. The given mapping is never modified.
    """

    __slots__ = ("__variables", "__headers", "__input", "__files", "__post", "__from_process", "__body")

    def __init__(
        self,
        variables: collections.abc.Mapping[str, Any] | None = None,
        *,
        input: IO[bytes] | None = None,
        files: collections.abc.Mapping[str, Any] | None = None,
        post: Any = None,
    ) -> None:
        self.__from_process = variables is None
        self.__variables: dict[str, Any] = dict(os.environ if variables is None else variables)
        self.__headers = Headers.parse(self.__variables)
        self.__input = input
        self.__files = files
        self.__post = post
        self.__body: Body | None = None

    @staticmethod
    def mock(**overrides: Any) -> dict[str, Any]:
        """Returns the variables of a plain GET request to http://localhost/, updated with ``overrides``."""
        now = time.time()
        variables: dict[str, Any] = {
            "SERVER_PROTOCOL": "HTTP/1.1",
            "REQUEST_METHOD": "GET",
            "SCRIPT_NAME": "",
            "REQUEST_URI": "",
            "QUERY_STRING": "",
            "SERVER_NAME": "localhost",
            "SERVER_PORT": 80,
            "HTTP_HOST": "localhost",
            "HTTP_ACCEPT": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "HTTP_ACCEPT_LANGUAGE": "en-US,en;q=0.8",
            "HTTP_ACCEPT_CHARSET": "ISO-8859-1,utf-8;q=0.7,*;q=0.3",
            "HTTP_USER_AGENT": "http-message",
            "REMOTE_ADDR": "127.0.0.1",
            "REQUEST_TIME": int(now),
            "REQUEST_TIME_FLOAT": now,
        }
        variables.update(overrides)
        return variables

    @property
    def variables(self) -> dict[str, Any]:
        return dict(self.__variables)

    @property
    def headers(self) -> Headers:
        return self.__headers.copy()

    def has(self, name: str) -> bool:
        return name in self.__variables

    def get(self, name: str, default: Any = None) -> Any:
        return self.__variables.get(name, default)

    @property
    def method(self) -> str:
        if self.has("HTTP_X_HTTP_METHOD_OVERRIDE"):
            method = self.get("HTTP_X_HTTP_METHOD_OVERRIDE")
        else:
            method = self.get("REQUEST_METHOD")
        return str(method or Method.GET).upper()

    @property
    def base_path(self) -> str:
        """Prefix of the request path that belongs to the script, empty when none matches."""
        request_path = self.__request_path()
        script_name = _path_of(self.get("SCRIPT_NAME"))
        script_dir = posixpath.dirname(script_name)

        lowered_path = request_path.lower()
        if script_name and lowered_path.startswith(script_name.lower()):
            return script_name
        if script_dir and script_dir != "/" and lowered_path.startswith(script_dir.lower()):
            return script_dir
        return ""

    @property
    def uri(self) -> URI:
        https = self.get("HTTPS")
        port = _to_positive_int(self.get("SERVER_PORT")) or 80

        forwarded_proto = self.get("HTTP_X_FORWARDED_PROTO")
        if isinstance(forwarded_proto, str) and forwarded_proto.lower() == "https":
            https = "on"
            port = 443

        if https is None and self.get("wsgi.url_scheme") == "https":
            https = "on"
        scheme = "https" if https and str(https).lower() != "off" else "http"

        host = str(self.get("HTTP_HOST") or self.get("SERVER_NAME") or "")
        match = _ipv6_host_re.match(host)
        if match is not None:
            host = match.group(1)
            if match.group(2):
                port = int(match.group(2)[1:])
        else:
            name, separator, host_port = host.rpartition(":")
            if separator and host_port.isdigit():
                host = name
                port = int(host_port)

        if self.has("HTTP_X_FORWARDED_PORT"):
            port = _to_positive_int(self.get("HTTP_X_FORWARDED_PORT")) or port

        user, password = self.__credentials()

        request_path = self.__request_path()
        base_path = self.base_path
        path = request_path
        if base_path and not request_path.startswith(base_path):
            path = request_path[len(base_path) :].lstrip("/")

        return URI.parse(
            {
                "scheme": scheme,
                "user": user,
                "password": password,
                "host": host,
                "port": port,
                "path": path,
                "query": str(self.get("QUERY_STRING") or ""),
                "fragment": "",
            }
        )

    @property
    def cookies(self) -> dict[str, str]:
        return parse_cookie_header(self.__headers.get(Header.COOKIE, []))

    @property
    def uploaded_files(self) -> dict[str, Any]:
        files = self.get("UPLOADED_FILES")
        if files is None:
            files = self.__files
        return UploadedFile.parse(files or {})

    def read_body(self) -> Body:
        """Returns a rewound copy of the request input; the input itself is consumed once."""
        if self.__body is None:
            self.__body = self.__buffer_input()
        return self.__body.copy()

    def get_request(self) -> ServerRequest:
        method = self.method
        uri = self.uri
        request = ServerRequest(
            method,
            uri,
            headers=self.__headers,
            cookies=self.cookies,
            server_params=self.__variables,
            body=self.read_body(),
            uploaded_files=self.uploaded_files,
        )

        if self.__post is not None and method == Method.POST and request.media_type in FORM_MEDIA_TYPES:
            request = request.with_parsed_body(self.__post)

        logger.debug(
            "Request %s %s is built from server variables",
            method,
            uri,
            extra={"request_method": method, "request_url": str(uri)},
        )
        return request

    def __request_path(self) -> str:
        request_uri = self.get("REQUEST_URI")
        if request_uri is not None:
            return _path_of(request_uri)
        return _path_of(str(self.get("SCRIPT_NAME") or "") + str(self.get("PATH_INFO") or ""))

    def __credentials(self) -> tuple[str, str]:
        if self.has("PHP_AUTH_USER"):
            return str(self.get("PHP_AUTH_USER") or ""), str(self.get("PHP_AUTH_PW") or "")

        authorization = self.__headers.get(Header.AUTHORIZATION, [])
        scheme, _, token = (authorization[0] if authorization else "").partition(" ")
        if scheme.lower() != "basic" or not token:
            return "", ""
        try:
            decoded = base64.b64decode(token.strip(), validate=True).decode("latin-1")
        except (binascii.Error, ValueError):
            logger.debug("Malformed basic credentials are ignored")
            return "", ""
        user, _, password = decoded.partition(":")
        return user, password

    def __buffer_input(self) -> Body:
        body = Body()
        wsgi_input = self.get("wsgi.input")
        if wsgi_input is not None:
            remaining = _to_positive_int(self.get("CONTENT_LENGTH")) or 0
            while remaining > 0:
                chunk = wsgi_input.read(min(remaining, READ_CHUNK_SIZE))
                if not chunk:
                    break
                body.write(chunk)
                remaining -= len(chunk)
        elif self.__input is not None:
            _copy_to_body(self.__input, body)
        elif self.__from_process and sys.stdin is not None and not sys.stdin.isatty():
            _copy_to_body(sys.stdin.buffer, body)
        body.rewind()
        return body


def get_request(
    variables: collections.abc.Mapping[str, Any] | None = None,
    *,
    input: IO[bytes] | None = None,
    files: collections.abc.Mapping[str, Any] | None = None,
    post: Any = None,
) -> ServerRequest:
    return Environment(variables, input=input, files=files, post=post).get_request()


def _path_of(value: Any) -> str:
    if not value:
        return ""
    return str(URI.split(str(value)).get("path", ""))


def _copy_to_body(source: IO[bytes], body: Body) -> None:
    while chunk := source.read(READ_CHUNK_SIZE):
        body.write(chunk)


def _to_positive_int(value: Any) -> int | None:
    if value is None:
        return None
    value = str(value).strip()
    if not value.isdigit() or int(value) == 0:
        return None
    return int(value)
