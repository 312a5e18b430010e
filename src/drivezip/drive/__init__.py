"""Google Drive integration module."""
from .models import DriveFile, FileManifestEntry, FolderReference
from .client import DriveClient

__all__ = ["DriveFile", "FileManifestEntry", "FolderReference", "DriveClient"]
