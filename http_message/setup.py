from typing import Any

import httpx

from .base import DEFAULT_CONNECT_TIMEOUT, DEFAULT_TIMEOUT
from .client import Client
from .httpx import HttpxTransport
from .transport import Transport

MISSING: Any = object()


def setup(
    *,
    transport: Transport = MISSING,
    httpx_client: httpx.Client = MISSING,
    timeout: float = DEFAULT_TIMEOUT,
    connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT,
    user_agent: str | None = None,
    redirect_limit: int = 0,
) -> Client:
    if transport is not MISSING and httpx_client is not MISSING:
        raise ValueError("Only one of transport or httpx_client must be provided")

    if transport is MISSING:
        transport = HttpxTransport(httpx_client if httpx_client is not MISSING else None)

    return Client(
        transport=transport,
        timeout=timeout,
        connect_timeout=connect_timeout,
        user_agent=user_agent,
        redirect_limit=redirect_limit,
    )
