# src/drivezip/utils/retry.py
"""Retry decorator utility with SSL support."""
import time
import functools
import ssl
import socket
from googleapiclient.errors import HttpError
from drivezip.utils.logger import get_logger

logger = get_logger()

# Define exceptions that are safe to retry
RETRYABLE_ERRORS = (
    ConnectionError,
    TimeoutError,
    socket.timeout,
    ssl.SSLError,
    HttpError,
    OSError
)


def is_retryable_http_error(error: HttpError) -> bool:
    """Only 5xx and 429 responses are worth another attempt."""
    status = getattr(error.resp, "status", None)
    if status is None:
        return True
    return status >= 500 or status == 429


def retry_with_backoff(max_retries=3, initial_delay=2, backoff_factor=2, retryable_exceptions=RETRYABLE_ERRORS):
    """Decorator for exponential backoff retries."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_exception = e

                    # Don't retry 4xx HttpErrors (except 429)
                    if isinstance(e, HttpError) and not is_retryable_http_error(e):
                        raise

                    if attempt == max_retries:
                        break

                    wait_time = initial_delay * (backoff_factor ** attempt)

                    if isinstance(e, ssl.SSLError):
                        logger.warning(f"SSL issue in {func.__name__} (Attempt {attempt+1}): {e}. Retrying in {wait_time}s...")
                    else:
                        logger.warning(f"Network glitch in {func.__name__} (Attempt {attempt+1}): {e}. Retrying in {wait_time}s...")

                    time.sleep(wait_time)

            if max_retries:
                logger.error(f"Permanently failed {func.__name__} after {max_retries} retries.")
            raise last_exception
        return wrapper
    return decorator
