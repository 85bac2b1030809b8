import abc
import collections.abc
import dataclasses
import enum
import types
from typing import Any, NamedTuple

from .base import DEFAULT_CONNECT_TIMEOUT, DEFAULT_TIMEOUT, MAX_REDIRECTS


class TransportErrorCode(enum.IntEnum):
    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    OPERATION_TIMEDOUT = 28
    TOO_MANY_REDIRECTS = 47
    SEND_ERROR = 55
    RECV_ERROR = 56
    UNKNOWN = 99


class TransportStatus(NamedTuple):
    code: TransportErrorCode
    message: str


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class TransportOptions:
    method: str
    url: str
    header_lines: tuple[str, ...] = ()
    body: bytes | None = None
    no_body: bool = False
    user_agent: str | None = None
    referer: str | None = None
    cookie_file: str | None = None
    follow_redirects: bool = False
    max_redirects: int = MAX_REDIRECTS
    timeout: float = DEFAULT_TIMEOUT
    connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT

    def __repr__(self) -> str:
        return f"<TransportOptions [{self.method} {self.url}]>"


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class TransportResult:
    """Raw outcome of a transport execution.

    ``response_bytes`` holds the status line and the header block, which is
    ``header_size`` bytes long, followed by the response body.
    """

    status_code: int | None
    header_size: int = 0
    response_bytes: bytes = b""
    error_code: TransportErrorCode = TransportErrorCode.OK
    error_message: str = ""
    info: collections.abc.Mapping[str, Any] = dataclasses.field(default_factory=dict)

    def __repr__(self) -> str:
        return f"<TransportResult [{self.status_code} {self.error_code.name}]>"


class Transport(abc.ABC):
    __slots__ = ()

    @abc.abstractmethod
    def execute(self, options: TransportOptions) -> TransportResult: ...

    def close(self) -> None:
        pass

    def __enter__(self) -> "Transport":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()
