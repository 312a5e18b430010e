"""Drive -> local -> zip -> Drive pipeline.

Stages run strictly in order and hand their output to the next stage as a
return value: authenticate, resolve folders, enumerate files, download,
archive, upload. Failures while authenticating, resolving or enumerating
abort the run. Download, archive and upload are best-effort per file: a
failed file is logged and recorded in the stage summary while its siblings
and the later stages carry on.
"""
import concurrent.futures
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from drivezip.archive.zipper import create_single_entry_zip
from drivezip.config.settings import AppSettings
from drivezip.drive.client import DriveClient
from drivezip.drive.models import DriveFile, FileManifestEntry, FolderReference, ZIP_MIME_TYPE
from drivezip.utils.auth import CredentialProvider
from drivezip.utils.exceptions import FsError
from drivezip.utils.logger import get_logger, set_folder_context

logger = get_logger()


class PipelineState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    FOLDERS_RESOLVED = "folders_resolved"
    MANIFEST_BUILT = "manifest_built"
    DOWNLOADED = "downloaded"
    ARCHIVED = "archived"
    UPLOADED = "uploaded"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class FileResult:
    """Outcome of one per-file operation."""
    folder_id: str
    file_name: str
    ok: bool
    path: Optional[Path] = None
    error: Optional[str] = None
    file_id: Optional[str] = None  # Drive file ID of the source document


@dataclass
class StageSummary:
    stage: str
    results: List[FileResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[FileResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[FileResult]:
        return [r for r in self.results if not r.ok]

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)


@dataclass
class PipelineReport:
    state: PipelineState = PipelineState.UNAUTHENTICATED
    folders: Tuple[FolderReference, ...] = ()
    manifest: Tuple[FileManifestEntry, ...] = ()
    stages: Dict[str, StageSummary] = field(default_factory=dict)

    @property
    def files_failed(self) -> int:
        return sum(s.failure_count for s in self.stages.values())


FileTask = Tuple[FileManifestEntry, DriveFile]


def only_succeeded(
    manifest: Sequence[FileManifestEntry],
    summary: Optional[StageSummary]
) -> Tuple[FileManifestEntry, ...]:
    """Narrow manifest to the documents summary reports as succeeded.

    Without a summary the manifest is returned unchanged. Entries left with
    no documents are dropped.
    """
    if summary is None:
        return tuple(manifest)

    done = {(r.folder_id, r.file_id) for r in summary.succeeded}
    narrowed = []
    for entry in manifest:
        files = tuple(f for f in entry.files if (entry.folder_id, f.id) in done)
        if files:
            narrowed.append(FileManifestEntry(folder=entry.folder, files=files))
    return tuple(narrowed)


class ArchivePipeline:
    """Orchestrates the flow: Drive search -> download -> zip -> upload."""

    def __init__(
        self,
        settings: AppSettings,
        credential_provider: Optional[CredentialProvider] = None,
        client_factory: Optional[Callable[..., DriveClient]] = None
    ):
        self.settings = settings
        self.work_dir = Path(settings.work_dir)
        self.credential_provider = credential_provider or CredentialProvider(
            token_path=settings.token_file,
            client_secrets_path=settings.client_secrets_file,
            scopes=settings.google_api_scopes
        )
        self.client_factory = client_factory or self._create_drive_client
        self.state = PipelineState.UNAUTHENTICATED
        self._credentials = None
        self._thread_local = threading.local()

    def _transition(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline state: {self.state.value} -> {state.value}")
        self.state = state

    def _create_drive_client(self, credentials) -> DriveClient:
        return DriveClient(
            credentials=credentials,
            page_size=self.settings.page_size,
            chunk_size=self.settings.chunk_size_bytes,
            max_retries=self.settings.retry_max_retries,
            initial_delay=self.settings.retry_initial_delay_seconds,
            backoff_factor=self.settings.retry_backoff_factor
        )

    def _thread_client(self) -> DriveClient:
        """Drive client owned by the calling worker thread."""
        client = getattr(self._thread_local, "client", None)
        if client is None:
            client = self.client_factory(self._credentials)
            self._thread_local.client = client
        return client

    def authenticate(self) -> DriveClient:
        """Obtain credentials and build the main Drive client."""
        self._credentials = self.credential_provider.obtain()
        self._transition(PipelineState.AUTHENTICATED)
        return self.client_factory(self._credentials)

    def resolve_folders(self, client: DriveClient, keyword: str) -> Tuple[FolderReference, ...]:
        """Find all folders whose name contains keyword."""
        folders = tuple(client.find_folders(keyword))
        logger.info(f"Folders matching '{keyword}': {[f.id for f in folders]}")
        self._transition(PipelineState.FOLDERS_RESOLVED)
        return folders

    def enumerate_files(
        self,
        client: DriveClient,
        folders: Sequence[FolderReference],
        name_filter: Optional[str] = None
    ) -> Tuple[FileManifestEntry, ...]:
        """Build the manifest; folders without matching files get no entry."""
        name_filter = name_filter or self.settings.file_filter
        manifest = []

        for folder in folders:
            files = client.list_folder_files(folder, name_filter)
            if not files:
                logger.info(f"No files found in folder {folder.id} ({folder.name})")
                continue
            manifest.append(FileManifestEntry(folder=folder, files=tuple(files)))

        logger.info(f"Manifest built: {len(manifest)} folders, {sum(len(e.files) for e in manifest)} files")
        self._transition(PipelineState.MANIFEST_BUILT)
        return tuple(manifest)

    def download(self, client: DriveClient, manifest: Sequence[FileManifestEntry]) -> StageSummary:
        """Download every manifest document to <work_dir>/<folderId>/<name>.

        A document whose local or archive path is already taken by an earlier
        document of the same folder is not downloaded and counts as failed.
        """
        summary = StageSummary("download")
        tasks: List[FileTask] = []

        for entry in manifest:
            folder_dir = entry.folder_dir(self.work_dir)
            try:
                folder_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Cannot create directory {folder_dir} for folder {entry.folder_id}: {e}")
                summary.results.extend(
                    FileResult(entry.folder_id, f.name, ok=False, file_id=f.id,
                               error=f"Cannot create directory {folder_dir}: {e}")
                    for f in entry.files
                )
                continue

            claimed: Dict[Path, DriveFile] = {}
            for drive_file in entry.files:
                paths = (entry.local_path(self.work_dir, drive_file), entry.archive_path(self.work_dir, drive_file))
                owner = next((claimed[p] for p in paths if p in claimed), None)
                if owner is not None:
                    logger.error(
                        f"{drive_file.name} ({drive_file.id}) in folder {entry.folder_id} maps to the same "
                        f"local file as {owner.name} ({owner.id}), skipping"
                    )
                    summary.results.append(FileResult(
                        entry.folder_id, drive_file.name, ok=False, file_id=drive_file.id,
                        error=f"Name collides with {owner.name} ({owner.id})"
                    ))
                    continue
                for p in paths:
                    claimed[p] = drive_file
                tasks.append((entry, drive_file))

        summary.results.extend(self._run_file_tasks(client, tasks, self._download_one))
        self._transition(PipelineState.DOWNLOADED)
        return summary

    def _download_one(self, client: DriveClient, entry: FileManifestEntry, drive_file: DriveFile) -> FileResult:
        local_path = entry.local_path(self.work_dir, drive_file)
        logger.info(f"Downloading file {drive_file.name}")
        try:
            client.download_file(drive_file, local_path)
        except Exception as e:
            logger.error(f"Failed to download {drive_file.name} from folder {entry.folder_id}: {e}")
            return FileResult(entry.folder_id, drive_file.name, ok=False, file_id=drive_file.id, error=str(e))

        logger.info(f"Download {drive_file.name} complete")
        return FileResult(entry.folder_id, drive_file.name, ok=True, file_id=drive_file.id, path=local_path)

    def archive(
        self,
        manifest: Sequence[FileManifestEntry],
        downloads: Optional[StageSummary] = None
    ) -> StageSummary:
        """Zip every downloaded document next to itself.

        With a download summary, only documents downloaded successfully in
        this run are archived. Each archive is fully written and closed
        before the next one starts, so the stage is complete on disk when
        this returns.
        """
        summary = StageSummary("archive")

        for entry in only_succeeded(manifest, downloads):
            set_folder_context(entry.folder_id)
            logger.info(f"Creating zips for folder {entry.folder_id}")
            for drive_file in entry.files:
                source = entry.local_path(self.work_dir, drive_file)
                destination = entry.archive_path(self.work_dir, drive_file)
                try:
                    create_single_entry_zip(source, destination)
                except (FsError, OSError) as e:
                    logger.error(f"Failed to archive {drive_file.name} in folder {entry.folder_id}: {e}")
                    summary.results.append(FileResult(
                        entry.folder_id, drive_file.name, ok=False, file_id=drive_file.id, error=str(e)
                    ))
                    continue
                logger.info(f"Zip file {destination.name} created")
                summary.results.append(FileResult(
                    entry.folder_id, drive_file.name, ok=True, file_id=drive_file.id, path=destination
                ))
        set_folder_context(None)

        self._transition(PipelineState.ARCHIVED)
        return summary

    def upload(
        self,
        client: DriveClient,
        manifest: Sequence[FileManifestEntry],
        archives: Optional[StageSummary] = None
    ) -> StageSummary:
        """Upload archives back into their originating folders.

        With an archive summary, only archives written in this run are
        uploaded; leftovers from earlier runs are never sent.
        """
        tasks: List[FileTask] = [(entry, f) for entry in only_succeeded(manifest, archives) for f in entry.files]
        summary = StageSummary("upload", self._run_file_tasks(client, tasks, self._upload_one))
        self._transition(PipelineState.UPLOADED)
        return summary

    def _upload_one(self, client: DriveClient, entry: FileManifestEntry, drive_file: DriveFile) -> FileResult:
        archive = entry.archive_path(self.work_dir, drive_file)
        if not archive.is_file():
            logger.error(f"Archive {archive.name} for folder {entry.folder_id} is missing, skipping upload")
            return FileResult(entry.folder_id, archive.name, ok=False, file_id=drive_file.id,
                              error=f"Archive not found: {archive}")

        try:
            client.upload_file(archive, entry.folder_id, ZIP_MIME_TYPE)
        except Exception as e:
            logger.error(f"Failed to upload {archive.name} to folder {entry.folder_id}: {e}")
            return FileResult(entry.folder_id, archive.name, ok=False, file_id=drive_file.id, error=str(e))

        logger.info(f"Zip file {archive.name} uploaded")
        return FileResult(entry.folder_id, archive.name, ok=True, file_id=drive_file.id, path=archive)

    def _run_file_tasks(
        self,
        client: DriveClient,
        tasks: Sequence[FileTask],
        worker: Callable[[DriveClient, FileManifestEntry, DriveFile], FileResult]
    ) -> List[FileResult]:
        """Run worker for each task, sequentially or on a bounded thread pool.

        Results come back in task order either way.
        """
        max_workers = self.settings.max_workers
        if max_workers <= 1 or len(tasks) <= 1:
            results = []
            for entry, drive_file in tasks:
                set_folder_context(entry.folder_id)
                results.append(worker(client, entry, drive_file))
            set_folder_context(None)
            return results

        def run_in_thread(entry: FileManifestEntry, drive_file: DriveFile) -> FileResult:
            return worker(self._thread_client(), entry, drive_file)

        results = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(run_in_thread, entry, f) for entry, f in tasks]
            for future, (entry, drive_file) in zip(futures, tasks):
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error(f"Critical error processing {drive_file.name} in folder {entry.folder_id}: {e}")
                    results.append(FileResult(
                        entry.folder_id, drive_file.name, ok=False, file_id=drive_file.id, error=str(e)
                    ))
        return results


    def run(self, keyword: Optional[str] = None) -> PipelineReport:
        """Run every stage once and return what happened."""
        keyword = keyword or self.settings.keyword
        report = PipelineReport()

        try:
            client = self.authenticate()
            report.folders = self.resolve_folders(client, keyword)
            if report.folders:
                report.manifest = self.enumerate_files(client, report.folders)
        except Exception:
            self._transition(PipelineState.ABORTED)
            report.state = self.state
            raise

        if not report.manifest:
            logger.info("Nothing to process")
            self._transition(PipelineState.DONE)
            report.state = self.state
            return report

        downloads = self.download(client, report.manifest)
        archives = self.archive(report.manifest, downloads)
        uploads = self.upload(client, report.manifest, archives)
        report.stages.update(download=downloads, archive=archives, upload=uploads)

        self._transition(PipelineState.DONE)
        report.state = self.state
        self._log_summary(report)
        return report

    def _log_summary(self, report: PipelineReport) -> None:
        for name, summary in report.stages.items():
            logger.info(f"{name}: {summary.success_count} succeeded, {summary.failure_count} failed")
            for failure in summary.failed:
                logger.warning(f"{name} failed for {failure.folder_id}/{failure.file_name}: {failure.error}")
