import collections.abc
import logging
import re
import types
from typing import Any, Self

from .base import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PROTOCOL_VERSION,
    DEFAULT_TIMEOUT,
    PROTOCOL_VERSIONS,
    Header,
    InvalidArgumentError,
    MediaType,
    Method,
    TransportError,
)
from .headers import HeaderValue, Headers
from .httpx import HttpxTransport
from .message import Request, Response, copy_body
from .stream import Body, Stream
from .transport import Transport, TransportErrorCode, TransportOptions, TransportResult, TransportStatus
from .uri import URI

logger = logging.getLogger(__package__)

_status_line_re = re.compile(r"^HTTP/(?P<version>\d(?:\.\d)?)\s+\d{3}")


class ClientRequest(Request):
    """Outgoing request executed by a transport.

    Redirects are followed only when ``redirect_limit`` is positive.
    """

    __slots__ = ("__user_agent", "__referer", "__cookie_file", "__redirect_limit")

    def __init__(
        self,
        method: str,
        uri: URI | str,
        headers: Headers | collections.abc.Mapping[str, HeaderValue] | None = None,
        body: Stream | None = None,
        *,
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
        user_agent: str | None = None,
        referer: str | None = None,
        cookie_file: str | None = None,
        redirect_limit: int = 0,
    ) -> None:
        super().__init__(method, uri, headers, body, protocol_version=protocol_version)
        self.__user_agent = user_agent
        self.__referer = referer
        self.__cookie_file = cookie_file
        self.__redirect_limit = _filter_redirect_limit(redirect_limit)

    @staticmethod
    def from_request(request: Request) -> "ClientRequest":
        if isinstance(request, ClientRequest):
            return request
        client_request = ClientRequest(
            request.method,
            request.uri,
            request.message.headers,
            copy_body(request.body),
            protocol_version=request.protocol_version,
        )
        return client_request

    @property
    def user_agent(self) -> str | None:
        return self.__user_agent

    def with_user_agent(self, user_agent: str | None) -> Self:
        return self._replace(user_agent=user_agent)

    @property
    def referer(self) -> str | None:
        return self.__referer

    def with_referer(self, referer: str | None) -> Self:
        return self._replace(referer=referer)

    @property
    def cookie_file(self) -> str | None:
        return self.__cookie_file

    def with_cookie_file(self, cookie_file: str | None) -> Self:
        return self._replace(cookie_file=cookie_file)

    @property
    def redirect_limit(self) -> int:
        return self.__redirect_limit

    def with_redirect_limit(self, redirect_limit: int) -> Self:
        return self._replace(redirect_limit=_filter_redirect_limit(redirect_limit))

    def build_options(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT,
    ) -> TransportOptions:
        """Maps the request onto transport options; the request itself stays unchanged."""
        uri = self.uri
        if not uri.scheme or not uri.host:
            raise TransportError(
                f"Attempted request with invalid url {str(uri)!r}", code=TransportErrorCode.URL_MALFORMAT
            )

        method = self.method
        headers = self.message.headers.copy()
        body: bytes | None = None
        if method not in (Method.GET, Method.HEAD) and self.body.is_readable():
            payload = self.body.get_payload()
            if payload:
                body = payload
                if not headers.has(Header.CONTENT_LENGTH):
                    headers.set(Header.CONTENT_LENGTH, str(len(payload)))
                if method == Method.POST and not headers.has(Header.CONTENT_TYPE):
                    headers.set(Header.CONTENT_TYPE, MediaType.FORM)

        return TransportOptions(
            method=method,
            url=str(uri),
            header_lines=tuple(headers.to_header_lines()),
            body=body,
            no_body=method == Method.HEAD,
            user_agent=self.__user_agent or None,
            referer=self.__referer or None,
            cookie_file=self.__cookie_file or None,
            follow_redirects=self.__redirect_limit > 0,
            max_redirects=self.__redirect_limit,
            timeout=timeout,
            connect_timeout=connect_timeout,
        )

    def send(
        self,
        transport: Transport | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT,
    ) -> "ClientResponse":
        options = self.build_options(timeout=timeout, connect_timeout=connect_timeout)
        if transport is not None:
            return ClientResponse.parse(transport.execute(options))
        with HttpxTransport() as scoped_transport:
            return ClientResponse.parse(scoped_transport.execute(options))

    def _copy_into(self, clone: Any, changes: dict[str, Any]) -> None:
        super()._copy_into(clone, changes)
        clone.__user_agent = changes.pop("user_agent", self.__user_agent)
        clone.__referer = changes.pop("referer", self.__referer)
        clone.__cookie_file = changes.pop("cookie_file", self.__cookie_file)
        clone.__redirect_limit = changes.pop("redirect_limit", self.__redirect_limit)


class ClientResponse(Response):
    """Response rebuilt from a transport result.

    ``error`` and ``info`` describe the execution that produced this very
    response.
    """

    __slots__ = ("__error", "__info")

    def __init__(
        self,
        status: int = 200,
        headers: Headers | collections.abc.Mapping[str, HeaderValue] | None = None,
        body: Stream | None = None,
        *,
        reason_phrase: str = "",
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
        error: TransportStatus | None = None,
        info: collections.abc.Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(status, headers, body, reason_phrase=reason_phrase, protocol_version=protocol_version)
        self.__error = error if error is not None else TransportStatus(TransportErrorCode.OK, "")
        self.__info = types.MappingProxyType(dict(info or {}))

    @staticmethod
    def parse(result: TransportResult) -> "ClientResponse":
        if result.error_code != TransportErrorCode.OK:
            raise TransportError(f"Transport error; {result.error_message}", code=result.error_code)
        if not result.status_code:
            raise TransportError("Transport error; no HTTP status code was returned", code=result.error_code)

        response_bytes = result.response_bytes
        headers = None
        protocol_version = DEFAULT_PROTOCOL_VERSION
        if result.header_size > 0:
            header_block = response_bytes[: result.header_size].decode("latin-1")
            headers = Headers.parse(header_block)
            match = _status_line_re.match(header_block)
            if match is not None and match.group("version") in PROTOCOL_VERSIONS:
                protocol_version = match.group("version")
            response_bytes = response_bytes[result.header_size :]

        return ClientResponse(
            result.status_code,
            headers,
            Body.from_bytes(response_bytes),
            protocol_version=protocol_version,
            error=TransportStatus(result.error_code, result.error_message),
            info=result.info,
        )

    @property
    def error(self) -> TransportStatus:
        return self.__error

    @property
    def info(self) -> collections.abc.Mapping[str, Any]:
        return self.__info

    def _copy_into(self, clone: Any, changes: dict[str, Any]) -> None:
        super()._copy_into(clone, changes)
        clone.__error = self.__error
        clone.__info = self.__info


class Client:
    """Sends requests through one transport, filling in client wide defaults."""

    __slots__ = ("__transport", "__timeout", "__connect_timeout", "__user_agent", "__redirect_limit")

    def __init__(
        self,
        *,
        transport: Transport,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT,
        user_agent: str | None = None,
        redirect_limit: int = 0,
    ):
        self.__transport = transport
        self.__timeout = timeout
        self.__connect_timeout = connect_timeout
        self.__user_agent = user_agent
        self.__redirect_limit = _filter_redirect_limit(redirect_limit)

    def send(
        self,
        request: Request,
        *,
        timeout: float | None = None,
        connect_timeout: float | None = None,
    ) -> ClientResponse:
        client_request = ClientRequest.from_request(request)
        if self.__user_agent and not client_request.user_agent:
            client_request = client_request.with_user_agent(self.__user_agent)
        if self.__redirect_limit and not client_request.redirect_limit:
            client_request = client_request.with_redirect_limit(self.__redirect_limit)

        logger.debug(
            "Sending request %s %s",
            client_request.method,
            client_request.uri,
            extra={"request_method": client_request.method, "request_url": str(client_request.uri)},
        )
        response = client_request.send(
            self.__transport,
            timeout=timeout if timeout is not None else self.__timeout,
            connect_timeout=connect_timeout if connect_timeout is not None else self.__connect_timeout,
        )
        logger.debug(
            "Request %s %s has been sent: %d",
            client_request.method,
            client_request.uri,
            response.status,
            extra={
                "request_method": client_request.method,
                "request_url": str(client_request.uri),
                "response_status": response.status,
            },
        )
        return response

    def close(self) -> None:
        self.__transport.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()


def _filter_redirect_limit(redirect_limit: Any) -> int:
    if isinstance(redirect_limit, bool) or not isinstance(redirect_limit, int) or redirect_limit < 0:
        raise InvalidArgumentError("Redirect limit must be a non-negative integer")
    return redirect_limit
