# src/drivezip/drive/client.py
"""Google Drive client for folder discovery, download and upload."""
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.http import MediaFileUpload, MediaIoBaseDownload

from .models import DriveFile, FolderReference, FOLDER_MIME_TYPE, ZIP_MIME_TYPE
from drivezip.utils.exceptions import ApiError, AuthError
from drivezip.utils.logger import get_logger
from drivezip.utils.retry import retry_with_backoff, RETRYABLE_ERRORS

logger = get_logger()

LIST_FIELDS = "nextPageToken, files(id, name)"

# Anything the HTTP stack can raise for a failed request
TRANSPORT_ERRORS = RETRYABLE_ERRORS + (httplib2.HttpLib2Error,)


def escape_query_value(value: str) -> str:
    """Escape a literal for use inside single quotes in a Drive query."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveClient:
    """Thin wrapper around the Drive v3 files resource."""

    def __init__(
        self,
        credentials=None,
        service=None,
        page_size: int = 100,
        chunk_size: int = 5 * 1024 * 1024,
        max_retries: int = 3,
        initial_delay: float = 2,
        backoff_factor: float = 2
    ):
        if service is None:
            service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        self.service = service
        self.page_size = page_size
        self.chunk_size = chunk_size
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor

    def _with_retry(self, func: Callable[..., Any]) -> Callable[..., Any]:
        return retry_with_backoff(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            backoff_factor=self.backoff_factor,
            retryable_exceptions=RETRYABLE_ERRORS
        )(func)

    def _list_all(self, query: str, **extra) -> List[Dict[str, Any]]:
        """Run a files.list query and follow nextPageToken to exhaustion."""
        files: List[Dict[str, Any]] = []
        page_token: Optional[str] = None

        while True:
            request = self.service.files().list(
                q=query,
                fields=LIST_FIELDS,
                pageSize=self.page_size,
                pageToken=page_token,
                **extra
            )
            response = self._with_retry(request.execute)()
            files.extend(response.get("files", []))

            page_token = response.get("nextPageToken")
            if not page_token:
                return files

    def find_folders(self, keyword: str) -> List[FolderReference]:
        """Find folders whose name contains keyword."""
        query = (
            f"name contains '{escape_query_value(keyword)}' "
            f"and mimeType = '{FOLDER_MIME_TYPE}' "
            f"and trashed = false"
        )

        try:
            results = self._list_all(query, spaces="drive")
        except GoogleAuthError as e:
            logger.error(f"Authorization failed while searching folders: {e}")
            raise AuthError(f"Authorization failed while searching folders: {e}") from e
        except TRANSPORT_ERRORS as e:
            logger.error(f"The API returned an error while searching folders: {e}")
            raise ApiError(f"Folder search for '{keyword}' failed: {e}") from e

        folders = [FolderReference(id=item["id"], name=item["name"]) for item in results]
        logger.info(f"Found {len(folders)} folders matching '{keyword}'")
        return folders

    def list_folder_files(self, folder: FolderReference, name_filter: str) -> List[DriveFile]:
        """List documents directly inside folder whose name contains name_filter."""
        query = (
            f"'{escape_query_value(folder.id)}' in parents "
            f"and name contains '{escape_query_value(name_filter)}' "
            f"and trashed = false"
        )

        try:
            results = self._list_all(query)
        except GoogleAuthError as e:
            logger.error(f"Authorization failed while listing folder {folder.id}: {e}")
            raise AuthError(f"Authorization failed while listing folder {folder.id}: {e}") from e
        except TRANSPORT_ERRORS as e:
            logger.error(f"The API returned an error while listing folder {folder.id}: {e}")
            raise ApiError(f"Listing folder {folder.id} failed: {e}") from e

        files = [DriveFile(id=item["id"], name=item["name"]) for item in results]
        logger.debug(f"Found {len(files)} files in folder {folder.id}")
        return files

    def download_file(self, drive_file: DriveFile, local_path: Path) -> Path:
        """Stream a document's bytes to local_path.

        A partially written file is removed if the transfer fails.
        """
        local_path = Path(local_path)

        def _download():
            request = self.service.files().get_media(fileId=drive_file.id)
            request.headers["Accept-Encoding"] = "gzip"

            with open(local_path, "wb") as f:
                downloader = MediaIoBaseDownload(f, request, chunksize=self.chunk_size)
                done = False
                while not done:
                    status, done = downloader.next_chunk()
                    if status:
                        logger.debug(f"{drive_file.name}: {int(status.progress() * 100)}%")

        try:
            self._with_retry(_download)()
        except Exception:
            if local_path.exists():
                local_path.unlink()
            raise

        logger.debug(f"Downloaded {drive_file.name} to {local_path}")
        return local_path

    def upload_file(self, local_path: Path, folder_id: str, mime_type: str = ZIP_MIME_TYPE) -> str:
        """Create a Drive file under folder_id from local_path; return its ID."""
        local_path = Path(local_path)
        metadata = {
            "name": local_path.name,
            "parents": [folder_id]
        }

        def _upload():
            media = MediaFileUpload(str(local_path), mimetype=mime_type, resumable=True)
            return self.service.files().create(
                body=metadata,
                media_body=media,
                fields="id"
            ).execute()

        created = self._with_retry(_upload)()
        logger.debug(f"Uploaded {local_path.name} as {created.get('id')}")
        return created.get("id")
