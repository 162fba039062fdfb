"""HTTP transport and tenacity retry for IAM calls.

Retry policy:
- Retry only errors the classifier calls connection errors
- Anything else (4xx/5xx bodies, decode failures) stops at the first attempt
- Fixed wait between attempts, no jitter
- Attempts bounded by RetryPolicy.max_attempts; the last error is re-raised
"""

import asyncio
import ssl
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from iam.error_chain import ConnectionErrorClassifier, is_connection_error
from iam.models import RetryPolicy
from shared.config import Settings

logger = structlog.get_logger()

T = TypeVar("T")


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Default TLS-aware client: certifi trust unless a CA bundle is configured."""
    verify: ssl.SSLContext | bool = True
    if settings.ca_bundle:
        verify = ssl.create_default_context(cafile=settings.ca_bundle)
    return httpx.AsyncClient(
        verify=verify,
        timeout=httpx.Timeout(settings.http_timeout_seconds),
    )


def _log_retry(log, on_retry: Callable[[], None] | None):
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        log.warning(
            "iam_connection_error_retrying",
            attempt=state.attempt_number,
            wait_seconds=state.next_action.sleep if state.next_action else None,
            error=str(exc),
        )
        if on_retry is not None:
            on_retry()

    return before_sleep


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    classifier: ConnectionErrorClassifier = is_connection_error,
    log=None,
    on_retry: Callable[[], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await `func` until it succeeds, raises a non-retryable error, or attempts run out."""
    retrying = AsyncRetrying(
        sleep=sleep,
        retry=retry_if_exception(classifier),
        wait=wait_fixed(policy.interval_seconds),
        stop=stop_after_attempt(policy.max_attempts),
        before_sleep=_log_retry(log or logger, on_retry),
        reraise=True,
    )
    return await retrying(func)
