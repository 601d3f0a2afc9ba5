"""
Retry with exponential backoff

Wraps calls to the synthesis and transcription services. Only failures
classified as transient (timeouts, connection resets, 429/5xx) are retried;
4xx-style failures surface immediately.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

import httpx

from ..config.settings import RetrySettings
from ..exceptions import CourseCastError, PermanentServiceError, TransientServiceError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryConfig:
    """Configuration for retry behavior"""
    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 2.0,
        max_delay: float = 10.0,
        exponential_base: float = 2.0,
        retry_on_status: Tuple[int, ...] = (429, 500, 502, 503, 504),
    ):
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.retry_on_status = retry_on_status

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryConfig":
        return cls(
            max_retries=settings.max_retries,
            initial_delay=settings.initial_delay,
            max_delay=settings.max_delay,
            exponential_base=settings.exponential_base,
            retry_on_status=tuple(settings.retry_on_status),
        )


DEFAULT_RETRY_CONFIG = RetryConfig()


def classify_http_error(
    error: Exception,
    retry_on_status: Tuple[int, ...] = DEFAULT_RETRY_CONFIG.retry_on_status,
) -> Exception:
    """
    Map an exception raised by an external call onto the error taxonomy.

    Already-classified errors are returned as-is; anything that is not an
    HTTP or network failure is returned unchanged and never retried.
    """
    if isinstance(error, (TransientServiceError, PermanentServiceError)):
        return error

    if isinstance(error, httpx.TimeoutException):
        return TransientServiceError(f"Timeout: {error}")

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        body = error.response.text[:200]
        if status in retry_on_status:
            return TransientServiceError(f"HTTP {status}: {body}", status_code=status)
        return PermanentServiceError(f"HTTP {status}: {body}", status_code=status)

    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return TransientServiceError(f"{type(error).__name__}: {error}")

    return error


class RetryExecutor:
    """
    Runs an async operation under exponential backoff.

    The retry state lives in the call itself; one executor can be shared by
    any number of concurrent slides.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or DEFAULT_RETRY_CONFIG
        self._sleep = sleep

    def _calculate_delay(self, attempt: int) -> float:
        """Calculate delay with exponential backoff"""
        delay = self.config.initial_delay * (
            self.config.exponential_base ** attempt
        )
        return min(delay, self.config.max_delay)

    async def run(self, operation: Callable[[], Awaitable[T]], context: str = "operation") -> T:
        """
        Execute operation, retrying transient failures.

        Raises:
            TransientServiceError: When every attempt failed transiently
            PermanentServiceError: On the first non-retryable service failure
        """
        for attempt in range(self.config.max_retries + 1):
            try:
                return await operation()
            except Exception as e:
                classified = classify_http_error(e, self.config.retry_on_status)

                if not isinstance(classified, TransientServiceError):
                    if classified is e:
                        raise
                    raise classified from e

                if attempt >= self.config.max_retries:
                    logger.error(f"{context}: giving up after {attempt + 1} attempts: {classified}")
                    if classified is e:
                        raise
                    raise classified from e

                delay = self._calculate_delay(attempt)
                logger.warning(
                    f"{context}: {classified}, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{self.config.max_retries})"
                )
                await self._sleep(delay)

        raise CourseCastError(f"{context}: retry loop exited without a result")
