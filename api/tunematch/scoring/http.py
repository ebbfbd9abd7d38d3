from __future__ import annotations

from typing import Any, Awaitable, Callable

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter


class ExternalAPIError(Exception):
    """Raised when an external scoring provider answers with an error or times out."""


async def with_connect_retry(call: Callable[[], Awaitable[Any]], *, attempts: int = 2) -> Any:
    """Run ``call`` retrying only failures to establish a connection.

    Timeouts and error statuses are not retried: a slow provider must not hold
    a worker for several rounds of the same request.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential_jitter(initial=0.5, max=4),
        retry=retry_if_exception_type(httpx.ConnectError),
        reraise=True,
    ):
        with attempt:
            return await call()
    raise ExternalAPIError("Unreachable")
