"""Data models for Drive operations."""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
ZIP_MIME_TYPE = "application/zip"


@dataclass(frozen=True)
class FolderReference:
    """A Drive folder matched by the keyword filter."""
    id: str  # Drive folder ID
    name: str


@dataclass(frozen=True)
class DriveFile:
    """Document descriptor inside a folder."""
    id: str  # Drive file ID
    name: str  # Display name


@dataclass(frozen=True)
class FileManifestEntry:
    """A folder together with the documents found in it."""
    folder: FolderReference
    files: Tuple[DriveFile, ...]

    @property
    def folder_id(self) -> str:
        return self.folder.id

    def folder_dir(self, work_dir: Union[str, Path]) -> Path:
        """Local directory for this folder: <work_dir>/<folderId>."""
        return Path(work_dir) / safe_local_name(self.folder.id)

    def local_path(self, work_dir: Union[str, Path], drive_file: DriveFile) -> Path:
        """Local path of a downloaded document: <work_dir>/<folderId>/<fileName>."""
        return self.folder_dir(work_dir) / safe_local_name(drive_file.name)

    def archive_path(self, work_dir: Union[str, Path], drive_file: DriveFile) -> Path:
        """Local path of the zip archive derived from a document."""
        return self.local_path(work_dir, drive_file).with_suffix(".zip")


def safe_local_name(name: str) -> str:
    """Return a display name usable as a single path component.

    Drive names may contain slashes; these are replaced so that a file always
    lands inside its folder directory. Everything else is kept verbatim.
    """
    cleaned = re.sub(r'[/\\\x00]', '_', name).strip()
    if cleaned in ("", ".", ".."):
        cleaned = cleaned.replace(".", "_") or "_"
    return cleaned
