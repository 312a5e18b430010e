"""Local archiving module."""
from .zipper import archive_path_for, create_single_entry_zip

__all__ = ["archive_path_for", "create_single_entry_zip"]
