"""Bounded, retried calls into capability providers.

Every capability call goes through ProviderInvoker.call, which:
- bounds the call with ``asyncio.timeout``
- retries failures with exponential backoff (one retry by default)
- lets UnauthorizedError and task cancellation through untouched
- raises ProviderUnavailableError once attempts are exhausted
- records latency and outcome metrics
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from switchboard.config.models.providers import ProvidersConfig
from switchboard.errors import ProviderUnavailableError, UnauthorizedError
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import PROVIDER_CALLS, PROVIDER_LATENCY

logger = get_logger(__name__)

T = TypeVar("T")


class ProviderInvoker:
    """Applies the timeout and retry policy to capability calls."""

    def __init__(
        self,
        call_timeout: float = 30.0,
        max_retries: int = 1,
        retry_backoff: float = 0.5,
    ) -> None:
        """Initialize the invoker.

        Args:
            call_timeout: Upper bound for one attempt (seconds)
            max_retries: Retries after the first failed attempt
            retry_backoff: Initial backoff, doubled per retry (seconds)
        """
        self._call_timeout = call_timeout
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff

    @classmethod
    def from_config(cls, config: ProvidersConfig) -> "ProviderInvoker":
        return cls(
            call_timeout=config.call_timeout_seconds,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff_seconds,
        )

    async def call(
        self,
        provider: str,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        timeout: float | None = None,
        retry: bool = True,
        **kwargs: Any,
    ) -> T:
        """Invoke ``fn`` under the timeout and retry policy.

        Args:
            provider: Capability name for logs and metrics
            fn: Async callable to invoke
            *args: Positional arguments for ``fn``
            timeout: Override for the per-attempt timeout
            retry: Set False for best-effort calls that should not retry
            **kwargs: Keyword arguments for ``fn``

        Raises:
            ProviderUnavailableError: When every attempt failed or timed out
            UnauthorizedError: Propagated from the provider as-is
        """
        attempts = self._max_retries + 1 if retry else 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            start = time.perf_counter()
            try:
                async with asyncio.timeout(timeout or self._call_timeout):
                    result = await fn(*args, **kwargs)
            except UnauthorizedError:
                PROVIDER_CALLS.labels(provider=provider, status="unauthorized").inc()
                raise
            except Exception as e:
                last_error = e
                PROVIDER_CALLS.labels(provider=provider, status="error").inc()
                logger.warning(
                    "provider_call_failed",
                    provider=provider,
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                if attempt < attempts - 1:
                    await asyncio.sleep(self._retry_backoff * (2**attempt))
                continue

            PROVIDER_LATENCY.labels(provider=provider).observe(time.perf_counter() - start)
            PROVIDER_CALLS.labels(provider=provider, status="ok").inc()
            return result

        logger.error("provider_unavailable", provider=provider, attempts=attempts)
        raise ProviderUnavailableError(provider, cause=last_error) from last_error
