import json
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock, patch

from googleapiclient.errors import HttpError

from drivemirror.errors import (
    AuthExpiredError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    RateLimitError,
)
from drivemirror.gateway.google_drive import (
    GoogleDriveGateway,
    _escape_query,
    _file_dict_to_remote_item,
    load_credentials,
)
from drivemirror.util.mime import FOLDER_MIME
from drivemirror.util.time import to_rfc3339


def _http_error(status: int, reason: str = "", message: str = "err") -> HttpError:
    resp = Mock()
    resp.status = status
    resp.reason = reason
    body = {"error": {"message": message, "errors": [{"reason": reason}]}}
    return HttpError(resp=resp, content=json.dumps(body).encode("utf-8"))


def _folder(item_id: str, name: str, parent: str = "ROOT") -> dict:
    return {"id": item_id, "name": name, "mimeType": FOLDER_MIME, "parents": [parent]}


class TestGoogleDriveHelpers(unittest.TestCase):
    def test_file_dict_to_remote_item_parses_fields(self) -> None:
        dt = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        data = {
            "id": "F1",
            "name": "n.txt",
            "mimeType": "text/plain",
            "parents": ["P1"],
            "modifiedTime": to_rfc3339(dt),
            "createdTime": to_rfc3339(dt),
            "size": "123",
            "webViewLink": "https://view",
            "webContentLink": "https://content",
            "thumbnailLink": "https://thumb",
        }
        item = _file_dict_to_remote_item(data)
        self.assertEqual(item.id, "F1")
        self.assertEqual(item.parent_id, "P1")
        self.assertEqual(item.size_bytes, 123)
        self.assertFalse(item.is_folder)
        self.assertEqual(item.modified_at, dt)
        self.assertEqual(item.share_link, "https://view")
        self.assertEqual(item.download_link, "https://content")
        self.assertEqual(item.thumbnail_link, "https://thumb")

    def test_folder_without_size(self) -> None:
        item = _file_dict_to_remote_item(_folder("D1", "Invoices"))
        self.assertTrue(item.is_folder)
        self.assertEqual(item.size_bytes, 0)
        self.assertIsNone(item.modified_at)

    def test_escape_query(self) -> None:
        self.assertEqual(_escape_query("it's"), "it\\'s")

    def test_load_credentials_missing_file(self) -> None:
        with self.assertRaises(AuthExpiredError):
            load_credentials("/nonexistent/token.json")


class TestGoogleDriveGatewayMocked(unittest.TestCase):
    def _service_with_list(self, *pages):
        service = Mock()
        files_resource = Mock()
        request = Mock()
        service.files.return_value = files_resource
        request.execute.side_effect = list(pages)
        files_resource.list.return_value = request
        return service, files_resource, request

    def test_list_children_query_and_pagination(self) -> None:
        service, files_resource, _ = self._service_with_list(
            {"files": [_folder("D1", "a")], "nextPageToken": "p2"},
            {"files": [{"id": "F1", "name": "b.txt", "mimeType": "text/plain"}]},
        )
        gw = GoogleDriveGateway.from_service(service, supports_all_drives=True)

        items = gw.list_children("P1")

        self.assertEqual([i.id for i in items], ["D1", "F1"])
        first, second = files_resource.list.call_args_list
        self.assertIn("'P1' in parents", first.kwargs["q"])
        self.assertIn("trashed=false", first.kwargs["q"])
        self.assertTrue(first.kwargs.get("supportsAllDrives"))
        self.assertTrue(first.kwargs.get("includeItemsFromAllDrives"))
        self.assertIsNone(first.kwargs["pageToken"])
        self.assertEqual(second.kwargs["pageToken"], "p2")

    def test_root_is_found_by_name_and_cached(self) -> None:
        service, files_resource, _ = self._service_with_list({"files": [_folder("ROOT", "Documents", "x")]})
        gw = GoogleDriveGateway.from_service(service)

        self.assertEqual(gw.root_id, "ROOT")
        self.assertEqual(gw.root_id, "ROOT")
        self.assertEqual(files_resource.list.call_count, 1)
        self.assertIn("name='Documents'", files_resource.list.call_args.kwargs["q"])

    def test_root_is_created_when_missing(self) -> None:
        service, files_resource, _ = self._service_with_list({"files": []})
        create_req = Mock()
        create_req.execute.return_value = _folder("NEW", "Documents", "x")
        files_resource.create.return_value = create_req
        gw = GoogleDriveGateway.from_service(service)

        self.assertEqual(gw.root_id, "NEW")
        body = files_resource.create.call_args.kwargs["body"]
        self.assertEqual(body, {"name": "Documents", "mimeType": FOLDER_MIME})

    def test_get_maps_http_404_to_not_found(self) -> None:
        service = Mock()
        req = Mock()
        service.files.return_value.get.return_value = req
        req.execute.side_effect = _http_error(404, "notFound")

        gw = GoogleDriveGateway.from_service(service)

        with self.assertRaises(NotFoundError):
            gw.get("X")

    def test_retry_on_429(self) -> None:
        service = Mock()
        req = Mock()
        service.files.return_value.get.return_value = req
        http_err = _http_error(429, "rateLimitExceeded", "rate limited")
        # Fail twice, then succeed.
        req.execute.side_effect = [
            http_err,
            http_err,
            {"id": "F1", "name": "n", "mimeType": "text/plain", "parents": []},
        ]

        gw = GoogleDriveGateway.from_service(service)

        with patch("time.sleep", return_value=None):
            item = gw.get("F1")

        self.assertEqual(item.id, "F1")
        self.assertEqual(req.execute.call_count, 3)

    def test_rate_limit_error_after_retries(self) -> None:
        service = Mock()
        req = Mock()
        service.files.return_value.get.return_value = req
        req.execute.side_effect = _http_error(429, "rateLimitExceeded")

        gw = GoogleDriveGateway.from_service(service)

        with patch("time.sleep", return_value=None):
            with self.assertRaises(RateLimitError):
                gw.get("X")
        self.assertEqual(req.execute.call_count, 4)

    def test_create_folder_conflict_when_name_exists(self) -> None:
        gw = GoogleDriveGateway.from_service(Mock())
        gw._root_id = "ROOT"
        with patch.object(gw, "_find_by_query", return_value=[_file_dict_to_remote_item(_folder("D1", "a"))]):
            with self.assertRaises(ConflictError):
                gw.create_folder("Documents/", "a")

    def test_rename_validates_name(self) -> None:
        gw = GoogleDriveGateway.from_service(Mock())
        with self.assertRaises(InvalidArgumentError):
            gw.rename("F1", "a/b")

    def test_share_link_grants_anyone_reader(self) -> None:
        service = Mock()
        service.files.return_value.get.return_value.execute.return_value = {
            "id": "F1", "name": "n", "mimeType": "text/plain", "webViewLink": "https://view/F1",
        }
        gw = GoogleDriveGateway.from_service(service)

        link = gw.share_link("F1")

        self.assertEqual(link, "https://view/F1")
        body = service.permissions.return_value.create.call_args.kwargs["body"]
        self.assertEqual(body, {"role": "reader", "type": "anyone"})

    def test_direct_download_url(self) -> None:
        gw = GoogleDriveGateway.from_service(Mock())
        self.assertEqual(
            gw.direct_download_url("F1"),
            "https://drive.google.com/uc?export=download&id=F1",
        )

    def test_download_rejects_google_docs(self) -> None:
        service = Mock()
        service.files.return_value.get.return_value.execute.return_value = {
            "id": "G1", "name": "doc", "mimeType": "application/vnd.google-apps.document",
        }
        gw = GoogleDriveGateway.from_service(service)
        with self.assertRaises(InvalidArgumentError):
            gw.download("G1")

    def test_watch_returns_lease(self) -> None:
        service = Mock()
        changes = service.changes.return_value
        changes.getStartPageToken.return_value.execute.return_value = {"startPageToken": "42"}
        changes.watch.return_value.execute.return_value = {
            "id": "chan-1",
            "resourceId": "res-9",
            "expiration": "1735689600000",
        }
        gw = GoogleDriveGateway.from_service(service)

        lease = gw.watch("https://example.com/webhook/drive", "chan-1", "secret", 3600)

        self.assertEqual(lease.channel_id, "chan-1")
        self.assertEqual(lease.resource_id, "res-9")
        self.assertEqual(lease.token, "secret")
        self.assertEqual(lease.page_token, "42")
        self.assertEqual(lease.expires_at, datetime(2025, 1, 1, tzinfo=timezone.utc))
        kwargs = changes.watch.call_args.kwargs
        self.assertEqual(kwargs["pageToken"], "42")
        self.assertEqual(kwargs["body"]["type"], "web_hook")
        self.assertEqual(kwargs["body"]["address"], "https://example.com/webhook/drive")

    def test_stop_watch(self) -> None:
        service = Mock()
        gw = GoogleDriveGateway.from_service(service)
        lease = Mock(channel_id="chan-1", resource_id="res-9")

        gw.stop_watch(lease)

        body = service.channels.return_value.stop.call_args.kwargs["body"]
        self.assertEqual(body, {"id": "chan-1", "resourceId": "res-9"})


if __name__ == "__main__":
    unittest.main()
