"""Custom exception classes for drivezip."""


class DriveZipError(Exception):
    """Base exception for drivezip."""
    pass


class ConfigError(DriveZipError):
    """Configuration-related errors."""
    pass


class AuthError(DriveZipError):
    """Missing or invalid credential material or client configuration."""
    pass


class ApiError(DriveZipError):
    """Transport or remote-service failure on list/get/create."""
    pass


class FsError(DriveZipError):
    """Local filesystem errors (directory creation, file read/write)."""
    pass
