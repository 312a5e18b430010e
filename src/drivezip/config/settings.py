"""Application settings loader from YAML configuration."""
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field

from drivezip.utils.exceptions import ConfigError

DEFAULT_CONFIG_FILE = "config.yaml"


@dataclass
class AppSettings:
    """Application-wide settings loaded from config.yaml."""

    # App info
    app_name: str = "drivezip"
    app_version: str = "1.0.0"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_max_file_size_mb: int = 10
    log_backup_count: int = 5

    # Search
    keyword: str = "Books"
    file_filter: str = ".pdf"

    # Processing
    work_dir: str = "."
    max_workers: int = 1
    chunk_size_mb: int = 5
    page_size: int = 100

    # Retry
    retry_max_retries: int = 3
    retry_initial_delay_seconds: float = 2
    retry_backoff_factor: float = 2

    # Paths
    token_file: str = "token.json"
    client_secrets_file: str = "credentials.json"

    # Google API
    google_api_scopes: List[str] = field(
        default_factory=lambda: ["https://www.googleapis.com/auth/drive"]
    )

    @property
    def chunk_size_bytes(self) -> int:
        return self.chunk_size_mb * 1024 * 1024

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "AppSettings":
        """Load settings from YAML file.

        A missing default file yields the built-in defaults; an explicitly
        given path must exist.
        """
        explicit = config_path is not None
        if config_path is None:
            # Relative to the working directory, like every other path we use
            config_path = Path(DEFAULT_CONFIG_FILE)
        config_path = Path(config_path)

        if not config_path.exists():
            if explicit:
                raise ConfigError(f"Configuration file not found: {config_path}")
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(config, dict):
            raise ConfigError(f"Configuration root must be a mapping: {config_path}")

        return cls.from_dict(config)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "AppSettings":
        """Build settings from a nested mapping, filling gaps with defaults."""
        defaults = cls()

        def section(name: str) -> Dict[str, Any]:
            value = config.get(name) or {}
            if not isinstance(value, dict):
                raise ConfigError(f"Section '{name}' must be a mapping")
            return value

        app = section("app")
        logging_cfg = section("logging")
        search = section("search")
        processing = section("processing")
        retry = section("retry")
        paths = section("paths")
        google_api = section("google_api")

        return cls(
            app_name=app.get("name", defaults.app_name),
            app_version=str(app.get("version", defaults.app_version)),
            log_level=logging_cfg.get("level", defaults.log_level),
            log_file=logging_cfg.get("file", defaults.log_file),
            log_max_file_size_mb=logging_cfg.get("max_file_size_mb", defaults.log_max_file_size_mb),
            log_backup_count=logging_cfg.get("backup_count", defaults.log_backup_count),
            keyword=search.get("keyword", defaults.keyword),
            file_filter=search.get("file_filter", defaults.file_filter),
            work_dir=processing.get("work_dir", defaults.work_dir),
            max_workers=processing.get("max_workers", defaults.max_workers),
            chunk_size_mb=processing.get("chunk_size_mb", defaults.chunk_size_mb),
            page_size=processing.get("page_size", defaults.page_size),
            retry_max_retries=retry.get("max_retries", defaults.retry_max_retries),
            retry_initial_delay_seconds=retry.get("initial_delay_seconds", defaults.retry_initial_delay_seconds),
            retry_backoff_factor=retry.get("backoff_factor", defaults.retry_backoff_factor),
            token_file=paths.get("token_file", defaults.token_file),
            client_secrets_file=paths.get("client_secrets_file", defaults.client_secrets_file),
            google_api_scopes=list(google_api.get("scopes", defaults.google_api_scopes))
        )


def validate_settings(settings: AppSettings) -> Tuple[bool, str]:
    """Validate configuration values."""
    if not settings.keyword:
        return False, "Search keyword is required"

    if not settings.file_filter:
        return False, "File filter is required"

    if settings.max_workers < 1:
        return False, "max_workers must be at least 1"

    if settings.chunk_size_mb < 1:
        return False, "chunk_size_mb must be at least 1"

    if not 1 <= settings.page_size <= 1000:
        return False, "page_size must be between 1 and 1000"

    if settings.retry_max_retries < 0:
        return False, "retry max_retries cannot be negative"

    if not settings.google_api_scopes:
        return False, "At least one Google API scope is required"

    if settings.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        return False, f"Unknown log level: {settings.log_level}"

    return True, "Configuration is valid"


# Global settings instance
_settings: Optional[AppSettings] = None


def get_settings(config_path: Optional[Path] = None) -> AppSettings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None or config_path is not None:
        _settings = AppSettings.load(config_path)
    return _settings
