"""Utility modules."""
from .logger import get_logger, configure_logging, set_folder_context
from .exceptions import (
    DriveZipError,
    ConfigError,
    AuthError,
    ApiError,
    FsError
)
from .retry import retry_with_backoff

__all__ = [
    "get_logger",
    "configure_logging",
    "set_folder_context",
    "DriveZipError",
    "ConfigError",
    "AuthError",
    "ApiError",
    "FsError",
    "retry_with_backoff"
]
