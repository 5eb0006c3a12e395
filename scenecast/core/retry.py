"""
Retry utilities with exponential backoff.

Used for one-shot provider calls (image generation, segmentation
completions). Streaming calls are never retried: a half-delivered stream
cannot be replayed without duplicating scenes.
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

import httpx

from scenecast.core.logging_config import get_logger

logger = get_logger("core.retry")

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_range: Tuple[float, float] = (0.5, 1.5)
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay before the next retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    delay = config.base_delay * (config.exponential_base ** attempt)
    delay = min(delay, config.max_delay)

    if config.jitter:
        delay *= random.uniform(*config.jitter_range)

    return delay


def is_transient_http_error(exc: Exception) -> bool:
    """True for timeouts, connection failures and 5xx/429 responses."""
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    status = getattr(exc, "status_code", None)
    return status is not None and (status == 429 or status >= 500)


async def retry_async_call(
    func: Callable[..., Any],
    *args: Any,
    config: Optional[RetryConfig] = None,
    should_retry: Optional[Callable[[Exception], bool]] = None,
    **kwargs: Any
) -> Any:
    """
    Call an async function with retry logic.

    Args:
        func: Async function to call
        *args: Positional arguments for func
        config: Retry configuration (defaults to RetryConfig())
        should_retry: Optional predicate; exceptions it rejects propagate at once
        **kwargs: Keyword arguments for func

    Returns:
        Result of func
    """
    config = config or RetryConfig()
    last_exception: Optional[Exception] = None

    for attempt in range(config.max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except config.retryable_exceptions as e:
            if should_retry is not None and not should_retry(e):
                raise
            last_exception = e

            if attempt < config.max_retries:
                delay = calculate_delay(attempt, config)
                logger.warning(
                    f"Attempt {attempt + 1}/{config.max_retries + 1} failed: {e}. "
                    f"Retrying in {delay:.2f}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"All {config.max_retries + 1} attempts failed. Last error: {e}"
                )

    raise last_exception


def async_retry(
    config: Optional[RetryConfig] = None,
    should_retry: Optional[Callable[[Exception], bool]] = None
) -> Callable:
    """
    Decorator for async functions with retry logic.

    Example:
        @async_retry(IMAGE_GENERATION_RETRY_CONFIG, should_retry=is_transient_http_error)
        async def call_provider():
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_async_call(
                func, *args, config=config, should_retry=should_retry, **kwargs
            )
        return wrapper
    return decorator


# Preset configurations
LLM_RETRY_CONFIG = RetryConfig(
    max_retries=2,
    base_delay=2.0,
    max_delay=20.0,
)

IMAGE_GENERATION_RETRY_CONFIG = RetryConfig(
    max_retries=2,
    base_delay=5.0,
    max_delay=30.0,
)
