import collections.abc
import logging
from typing import Any

import httpx
import pytest

import http_message

logging.basicConfig(level="DEBUG")


def build_result(
    status: int = 200,
    headers: collections.abc.Mapping[str, str] | None = None,
    body: bytes = b"",
    *,
    http_version: str = "HTTP/1.1",
    reason: str = "OK",
    info: collections.abc.Mapping[str, Any] | None = None,
) -> http_message.TransportResult:
    lines = [f"{http_version} {status} {reason}", *(f"{name}: {value}" for name, value in (headers or {}).items())]
    header_block = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")
    return http_message.TransportResult(
        status_code=status,
        header_size=len(header_block),
        response_bytes=header_block + body,
        info=info if info is not None else {"http_code": status, "header_size": len(header_block)},
    )


class FakeTransport(http_message.Transport):
    __slots__ = ("_results", "options", "closed")

    def __init__(self, *results: int | http_message.TransportResult) -> None:
        self._results = list(reversed(results))
        self.options: list[http_message.TransportOptions] = []
        self.closed = False

    def execute(self, options: http_message.TransportOptions) -> http_message.TransportResult:
        if not self._results:
            raise RuntimeError("No result left")

        self.options.append(options)
        result = self._results.pop()
        if isinstance(result, int):
            return build_result(result)
        return result

    def close(self) -> None:
        self.closed = True


class RecordingHandler:
    """httpx.MockTransport handler replying with prepared responses and keeping the requests it got."""

    def __init__(self, *responses: httpx.Response) -> None:
        self._responses = list(reversed(responses))
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._responses.pop() if len(self._responses) > 1 else self._responses[0]
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)


@pytest.fixture
def environ() -> dict[str, Any]:
    return http_message.Environment.mock()
