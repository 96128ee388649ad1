"""Retry logic, exponential backoff and the error taxonomy for upstream APIs."""

import time
import random
import logging
from functools import wraps
from typing import Callable, Any, Optional

logger = logging.getLogger(__name__)


def exponential_backoff(attempt: int, base_delay: float = 1.0, max_delay: float = 60.0) -> float:
    """Calculate exponential backoff delay with jitter."""
    delay = min(base_delay * (2 ** attempt), max_delay)
    # Jitter is at most 10% of the delay
    jitter = random.uniform(0, delay * 0.1)
    return delay + jitter


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exceptions: tuple = (Exception,)
):
    """Decorator for exponential backoff retry logic."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    if attempt == max_retries:
                        logger.error(f"Function {func.__name__} failed after {max_retries} retries: {e}")
                        raise e

                    delay = exponential_backoff(attempt, base_delay, max_delay)
                    logger.warning(
                        f"Attempt {attempt + 1} of {func.__name__} failed: {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    time.sleep(delay)

            raise last_exception

        return wrapper
    return decorator


class ConfigurationError(Exception):
    """Raised when a required setting (e.g. an API credential) is missing."""
    pass


class RetryableError(Exception):
    """Base class for errors that should trigger retries."""
    pass


class APIRateLimitError(RetryableError):
    """Raised when API rate limit is hit."""
    pass


class NetworkError(RetryableError):
    """Raised for network-related errors."""
    pass


class TemporaryServiceError(RetryableError):
    """Raised for temporary service unavailability."""
    pass


class QuotaExhaustedError(Exception):
    """Raised when the upstream daily quota is spent. Never retried."""

    def __init__(self, reason: Optional[str], message: str):
        self.reason = reason
        super().__init__(f"YouTube API quota exhausted ({reason}): {message}")


class APIRequestError(Exception):
    """Raised for non-retryable upstream failures."""

    def __init__(self, message: str, status: Optional[int] = None, reason: Optional[str] = None):
        self.status = status
        self.reason = reason
        extra = ", ".join(
            part for part in (
                f"status={status}" if status else None,
                f"reason={reason}" if reason else None,
            ) if part
        )
        detail = f" ({extra})" if extra else ""
        super().__init__(f"API request failed{detail}: {message}")


def retry_api_call(max_retries: int = 5, base_delay: float = 2.0, max_delay: float = 120.0):
    """Retry decorator specifically for API calls with longer delays."""
    return retry_with_backoff(
        max_retries=max_retries,
        base_delay=base_delay,
        max_delay=max_delay,
        exceptions=(APIRateLimitError, NetworkError, TemporaryServiceError)
    )
