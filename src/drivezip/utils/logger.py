"""Logging infrastructure with folder context."""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional


class FolderContextFilter(logging.Filter):
    """Add folder context to log records."""

    def __init__(self):
        super().__init__()
        self.folder_id: Optional[str] = None

    def filter(self, record):
        """Add folder_id to record."""
        record.folder_id = self.folder_id or "system"
        return True


class DriveZipLogger:
    """Centralized logging manager."""

    def __init__(self, log_level: str = "INFO"):
        self.folder_filter = FolderContextFilter()
        self.formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] [folder:%(folder_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        self.log_file: Optional[Path] = None

        self.logger = logging.getLogger("drivezip")
        self.logger.setLevel(getattr(logging, log_level.upper()))

        # Remove existing handlers
        self.logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(self.formatter)
        console_handler.addFilter(self.folder_filter)
        self.logger.addHandler(console_handler)

    def set_level(self, log_level: str) -> None:
        self.logger.setLevel(getattr(logging, log_level.upper()))

    def add_file_handler(self, log_file: Path, max_file_size_mb: int = 10, backup_count: int = 5) -> None:
        """Attach a rotating file handler; the console handler stays in place."""
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(self.formatter)
        file_handler.addFilter(self.folder_filter)
        self.logger.addHandler(file_handler)
        self.log_file = log_file

    def set_folder_context(self, folder_id: Optional[str]):
        """Set current folder context for logging."""
        self.folder_filter.folder_id = folder_id

    def get_logger(self) -> logging.Logger:
        """Get the configured logger."""
        return self.logger


# Global logger instance
_logger_instance: Optional[DriveZipLogger] = None


def _instance(log_level: str = "INFO") -> DriveZipLogger:
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = DriveZipLogger(log_level)
    return _logger_instance


def get_logger(log_level: str = "INFO") -> logging.Logger:
    """Get or create global logger instance."""
    return _instance(log_level).get_logger()


def configure_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    max_file_size_mb: int = 10,
    backup_count: int = 5
) -> logging.Logger:
    """Apply runtime logging settings to the global logger."""
    instance = _instance(log_level)
    instance.set_level(log_level)
    if log_file and instance.log_file is None:
        instance.add_file_handler(Path(log_file), max_file_size_mb, backup_count)
    return instance.get_logger()


def set_folder_context(folder_id: Optional[str]):
    """Set folder context for logging."""
    if _logger_instance:
        _logger_instance.set_folder_context(folder_id)
