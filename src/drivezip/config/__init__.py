"""Configuration module."""
from .settings import AppSettings, get_settings, validate_settings

__all__ = ["AppSettings", "get_settings", "validate_settings"]
