"""Single-entry zip archives for downloaded documents."""
import zipfile
from pathlib import Path
from typing import Optional, Union

from drivezip.utils.exceptions import FsError


def archive_path_for(source: Union[str, Path]) -> Path:
    """Archive path next to source with the extension replaced by .zip."""
    return Path(source).with_suffix(".zip")


def create_single_entry_zip(source: Union[str, Path], destination: Optional[Union[str, Path]] = None) -> Path:
    """
    Compress source into a zip archive holding exactly one entry.

    The entry is named after the source file. An existing archive at the
    destination is replaced, never appended to.

    Args:
        source: File to compress
        destination: Archive path (defaults to archive_path_for(source))

    Returns:
        Path of the written archive

    Raises:
        FsError: If the source is missing or the archive cannot be written
    """
    source = Path(source)
    destination = Path(destination) if destination is not None else archive_path_for(source)

    if not source.is_file():
        raise FsError(f"Source file not found: {source}")

    if destination.resolve() == source.resolve():
        raise FsError(f"Archive would overwrite its own source: {source}")

    try:
        with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.write(source, arcname=source.name)
    except (OSError, zipfile.BadZipFile) as e:
        if destination.is_file():
            try:
                destination.unlink()
            except OSError:
                pass  # the write error below is the one reported
        raise FsError(f"Failed to write archive {destination}: {e}") from e

    return destination
