import collections.abc
import http.cookiejar
import logging
import os
import socket
import time

import httpx

from .base import Header
from .stream import Body
from .transport import Transport, TransportErrorCode, TransportOptions, TransportResult

logger = logging.getLogger(__package__)


class HttpxTransport(Transport):
    """Executes requests with httpx.

    Without a client, a scoped ``httpx.Client`` is opened for every execution
    and released on return. A supplied client is used as is and is closed by
    ``close``.
    """

    __slots__ = ("__client",)

    def __init__(self, client: httpx.Client | None = None):
        self.__client = client

    def execute(self, options: TransportOptions) -> TransportResult:
        try:
            if self.__client is not None:
                return self.__execute(self.__client, options)
            with httpx.Client() as client:
                return self.__execute(client, options)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            code = _error_code(e)
            logger.warning(
                "Request %s %s has failed: %s",
                options.method,
                options.url,
                code.name,
                exc_info=True,
                extra={
                    "request_method": options.method,
                    "request_url": options.url,
                },
            )
            return TransportResult(
                status_code=None,
                error_code=code,
                error_message=str(e) or type(e).__name__,
                info={"url": options.url, "http_code": 0, "header_size": 0},
            )

    def close(self) -> None:
        if self.__client is not None:
            self.__client.close()

    def __execute(self, client: httpx.Client, options: TransportOptions) -> TransportResult:
        started_at = time.perf_counter()
        cookie_jar = _load_cookie_jar(options.cookie_file)
        cookies = httpx.Cookies(cookie_jar) if cookie_jar is not None else None

        client_request = client.build_request(
            method=options.method,
            url=options.url,
            content=options.body,
            headers=_build_headers(options),
            timeout=httpx.Timeout(
                options.timeout,
                connect=options.connect_timeout if options.connect_timeout is not None else options.timeout,
            ),
        )

        redirects = 0
        while True:
            if cookies is not None:
                cookies.set_cookie_header(client_request)
            client_response = client.send(client_request, follow_redirects=False, stream=True)
            try:
                if cookies is not None:
                    cookies.extract_cookies(client_response)

                if client_response.next_request is not None and options.follow_redirects:
                    if redirects >= options.max_redirects:
                        return self.__too_many_redirects(options, client_response, redirects)
                    client_request = client_response.next_request
                    redirects += 1
                    continue

                result = _build_result(client_request, client_response, options, redirects, started_at)
            finally:
                client_response.close()

            if cookie_jar is not None:
                cookie_jar.save(ignore_discard=True)
            return result

    def __too_many_redirects(
        self, options: TransportOptions, client_response: httpx.Response, redirects: int
    ) -> TransportResult:
        logger.warning(
            "Request %s %s has failed: too many redirects",
            options.method,
            options.url,
            extra={
                "request_method": options.method,
                "request_url": options.url,
            },
        )
        return TransportResult(
            status_code=client_response.status_code,
            error_code=TransportErrorCode.TOO_MANY_REDIRECTS,
            error_message=f"Maximum ({options.max_redirects}) redirects followed",
            info={
                "url": str(client_response.url),
                "http_code": client_response.status_code,
                "header_size": 0,
                "redirect_count": redirects,
            },
        )


def _build_headers(options: TransportOptions) -> list[tuple[str, str]]:
    headers = []
    for line in options.header_lines:
        name, separator, value = line.partition(":")
        if separator and name.strip():
            headers.append((name.strip(), value.strip()))

    names = {name.lower() for name, _ in headers}
    if options.user_agent and "user-agent" not in names:
        headers.append(("User-Agent", options.user_agent))
    if options.referer and "referer" not in names:
        headers.append(("Referer", options.referer))
    return headers


def _build_result(
    client_request: httpx.Request,
    client_response: httpx.Response,
    options: TransportOptions,
    redirects: int,
    started_at: float,
) -> TransportResult:
    content: bytes | None = None
    if not options.no_body:
        sink = Body()
        try:
            for chunk in client_response.iter_bytes():
                sink.write(chunk)
            content = sink.get_payload()
        finally:
            sink.close()

    header_block = _header_block(client_response, content)
    response_bytes = header_block + (content or b"")

    return TransportResult(
        status_code=client_response.status_code,
        header_size=len(header_block),
        response_bytes=response_bytes,
        info={
            "url": str(client_response.url),
            "http_code": client_response.status_code,
            "header_size": len(header_block),
            "redirect_count": redirects,
            "total_time": time.perf_counter() - started_at,
            "content_type": client_response.headers.get("Content-Type"),
            "request_header": _request_header_block(client_request),
        },
    )


def _header_block(client_response: httpx.Response, content: bytes | None) -> bytes:
    """Status line and headers; a decoded body drops its content coding headers."""
    decoded = content is not None and Header.CONTENT_ENCODING in client_response.headers
    lines = [f"{client_response.http_version} {client_response.status_code} {client_response.reason_phrase}".encode()]
    for name, value in client_response.headers.raw:
        if decoded and name.lower() in _encoding_headers:
            continue
        lines.append(name + b": " + value)
    if decoded and content is not None:
        lines.append(b"Content-Length: " + str(len(content)).encode())
    return b"\r\n".join(lines) + b"\r\n\r\n"


def _request_header_block(client_request: httpx.Request) -> str:
    lines = [f"{client_request.method} {client_request.url.raw_path.decode('ascii')} HTTP/1.1"]
    lines.extend(f"{name}: {value}" for name, value in client_request.headers.multi_items())
    return "\r\n".join(lines) + "\r\n\r\n"


def _load_cookie_jar(cookie_file: str | None) -> http.cookiejar.MozillaCookieJar | None:
    if not cookie_file:
        return None
    cookie_jar = http.cookiejar.MozillaCookieJar(cookie_file)
    if os.path.exists(cookie_file):
        cookie_jar.load(ignore_discard=True)
    return cookie_jar


_encoding_headers = frozenset((b"content-encoding", b"content-length"))

_error_codes: collections.abc.Sequence[tuple[type[Exception], TransportErrorCode]] = (
    (httpx.UnsupportedProtocol, TransportErrorCode.UNSUPPORTED_PROTOCOL),
    (httpx.InvalidURL, TransportErrorCode.URL_MALFORMAT),
    (httpx.TimeoutException, TransportErrorCode.OPERATION_TIMEDOUT),
    (httpx.ConnectError, TransportErrorCode.COULDNT_CONNECT),
    (httpx.TooManyRedirects, TransportErrorCode.TOO_MANY_REDIRECTS),
    (httpx.WriteError, TransportErrorCode.SEND_ERROR),
    (httpx.ReadError, TransportErrorCode.RECV_ERROR),
    (httpx.RemoteProtocolError, TransportErrorCode.RECV_ERROR),
)


def _error_code(error: Exception) -> TransportErrorCode:
    for error_type, code in _error_codes:
        if isinstance(error, error_type):
            if code == TransportErrorCode.COULDNT_CONNECT and _is_resolve_error(error):
                return TransportErrorCode.COULDNT_RESOLVE_HOST
            return code
    return TransportErrorCode.UNKNOWN


def _is_resolve_error(error: BaseException) -> bool:
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        if isinstance(current, socket.gaierror):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False
