import unittest
import tempfile
from pathlib import Path
from unittest import mock

import httplib2
from googleapiclient.errors import HttpError

import drivezip.drive.client as client_mod
from drivezip.drive.client import DriveClient, LIST_FIELDS, escape_query_value
from drivezip.drive.models import DriveFile, FolderReference
from drivezip.utils.exceptions import ApiError


def http_error(status):
    return HttpError(httplib2.Response({"status": status}), b"error")


class FakeRequest:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.headers = {}

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.response


class FakeListRequest:
    def __init__(self, files_resource, kwargs):
        self.files_resource = files_resource
        self.kwargs = kwargs

    def execute(self):
        self.files_resource.executions += 1
        if self.files_resource.list_errors:
            raise self.files_resource.list_errors.pop(0)
        return self.files_resource.pages[self.kwargs.get("pageToken")]


class FakeFiles:
    def __init__(self, pages=None, list_errors=None):
        # pages: pageToken -> response
        self.pages = pages or {None: {"files": []}}
        self.list_errors = list(list_errors or [])
        self.list_calls = []
        self.executions = 0
        self.media_requests = []
        self.created = []

    def list(self, **kwargs):
        self.list_calls.append(kwargs)
        return FakeListRequest(self, kwargs)

    def get_media(self, fileId):
        request = FakeRequest()
        request.file_id = fileId
        self.media_requests.append(request)
        return request

    def create(self, body, media_body, fields):
        self.created.append((body, media_body, fields))
        return FakeRequest({"id": f"new-{body['name']}"})


class FakeService:
    def __init__(self, files_resource):
        self.files_resource = files_resource

    def files(self):
        return self.files_resource


class FakeDownloader:
    payload = b"%PDF-1.4\n%%EOF"

    def __init__(self, fh, request, chunksize=None):
        self.fh = fh
        self.chunksize = chunksize

    def next_chunk(self):
        self.fh.write(self.payload)
        return None, True


class BrokenDownloader(FakeDownloader):
    def next_chunk(self):
        self.fh.write(b"%PDF-1.4 partial")
        raise ConnectionError("connection reset mid-stream")


class FakeMedia:
    def __init__(self, filename, mimetype=None, resumable=False):
        self.filename = filename
        self.mimetype = mimetype
        self.resumable = resumable


def make_client(files_resource, **kwargs):
    kwargs.setdefault("max_retries", 0)
    kwargs.setdefault("initial_delay", 0)
    return DriveClient(service=FakeService(files_resource), **kwargs)


class TestQueryEscaping(unittest.TestCase):
    def test_quotes_and_backslashes_are_escaped(self):
        self.assertEqual(escape_query_value("Bob's"), "Bob\\'s")
        self.assertEqual(escape_query_value("a\\b"), "a\\\\b")
        self.assertEqual(escape_query_value("Books"), "Books")


class TestFolderSearch(unittest.TestCase):
    def test_find_folders_follows_all_pages(self):
        files = FakeFiles(pages={
            None: {"files": [{"id": "F1", "name": "Books 2023"}], "nextPageToken": "p2"},
            "p2": {"files": [{"id": "F2", "name": "Old Books"}], "nextPageToken": "p3"},
            "p3": {"files": [{"id": "F3", "name": "Books"}]},
        })
        client = make_client(files)

        folders = client.find_folders("Books")

        self.assertEqual([f.id for f in folders], ["F1", "F2", "F3"])
        self.assertEqual(folders[0], FolderReference(id="F1", name="Books 2023"))
        self.assertEqual([c["pageToken"] for c in files.list_calls], [None, "p2", "p3"])

    def test_folder_query_filters_by_name_and_type(self):
        files = FakeFiles()
        client = make_client(files, page_size=50)

        self.assertEqual(client.find_folders("Bob's Books"), [])

        call = files.list_calls[0]
        self.assertIn("name contains 'Bob\\'s Books'", call["q"])
        self.assertIn("mimeType = 'application/vnd.google-apps.folder'", call["q"])
        self.assertEqual(call["fields"], LIST_FIELDS)
        self.assertEqual(call["spaces"], "drive")
        self.assertEqual(call["pageSize"], 50)

    def test_api_failure_raises_api_error(self):
        client = make_client(FakeFiles(list_errors=[http_error(403)]))

        with self.assertRaises(ApiError) as ctx:
            client.find_folders("Books")
        self.assertIsInstance(ctx.exception.__cause__, HttpError)

    def test_unreachable_server_raises_api_error(self):
        client = make_client(FakeFiles(list_errors=[httplib2.ServerNotFoundError("Unable to find the server")]))

        with self.assertRaises(ApiError) as ctx:
            client.find_folders("Books")
        self.assertIsInstance(ctx.exception.__cause__, httplib2.ServerNotFoundError)

    def test_server_error_is_retried(self):
        files = FakeFiles(
            pages={None: {"files": [{"id": "F1", "name": "Books"}]}},
            list_errors=[http_error(503)]
        )
        client = make_client(files, max_retries=2)

        with mock.patch("drivezip.utils.retry.time.sleep") as sleep:
            folders = client.find_folders("Books")

        self.assertEqual(len(folders), 1)
        self.assertEqual(files.executions, 2)
        sleep.assert_called_once()


class TestListFolderFiles(unittest.TestCase):
    def test_lists_matching_files_in_folder(self):
        files = FakeFiles(pages={
            None: {"files": [{"id": "a", "name": "a.pdf"}], "nextPageToken": "t"},
            "t": {"files": [{"id": "b", "name": "b.pdf"}]},
        })
        client = make_client(files)

        result = client.list_folder_files(FolderReference("F1", "Books"), ".pdf")

        self.assertEqual(result, [DriveFile("a", "a.pdf"), DriveFile("b", "b.pdf")])
        query = files.list_calls[0]["q"]
        self.assertIn("'F1' in parents", query)
        self.assertIn("name contains '.pdf'", query)
        self.assertIn("trashed = false", query)

    def test_listing_failure_raises_api_error(self):
        client = make_client(FakeFiles(list_errors=[ConnectionError("down")]))

        with self.assertRaises(ApiError):
            client.list_folder_files(FolderReference("F1", "Books"), ".pdf")

    def test_http_stack_failure_raises_api_error(self):
        client = make_client(FakeFiles(list_errors=[httplib2.RedirectLimit("too many redirects", None, b"")]))

        with self.assertRaises(ApiError):
            client.list_folder_files(FolderReference("F1", "Books"), ".pdf")


class TestDownloadAndUpload(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_download_streams_bytes_with_gzip_encoding(self):
        files = FakeFiles()
        client = make_client(files, chunk_size=1024)
        target = self.dir / "a.pdf"

        with mock.patch.object(client_mod, "MediaIoBaseDownload", FakeDownloader):
            result = client.download_file(DriveFile("file123", "a.pdf"), target)

        self.assertEqual(result, target)
        self.assertEqual(target.read_bytes(), FakeDownloader.payload)
        request = files.media_requests[0]
        self.assertEqual(request.file_id, "file123")
        self.assertEqual(request.headers["Accept-Encoding"], "gzip")

    def test_failed_download_removes_partial_file(self):
        client = make_client(FakeFiles())
        target = self.dir / "a.pdf"

        with mock.patch.object(client_mod, "MediaIoBaseDownload", BrokenDownloader):
            with self.assertRaises(ConnectionError):
                client.download_file(DriveFile("file123", "a.pdf"), target)

        self.assertFalse(target.exists())

    def test_upload_creates_zip_in_parent_folder(self):
        files = FakeFiles()
        client = make_client(files)
        archive = self.dir / "a.zip"
        archive.write_bytes(b"PK")

        with mock.patch.object(client_mod, "MediaFileUpload", FakeMedia):
            file_id = client.upload_file(archive, "F1")

        self.assertEqual(file_id, "new-a.zip")
        body, media, fields = files.created[0]
        self.assertEqual(body, {"name": "a.zip", "parents": ["F1"]})
        self.assertEqual(media.filename, str(archive))
        self.assertEqual(media.mimetype, "application/zip")
        self.assertEqual(fields, "id")


if __name__ == "__main__":
    unittest.main()
