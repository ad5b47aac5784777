import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError, StatementError

from drivemirror.models import RemoteItem
from drivemirror.store import DocumentRecord, DocumentStore, mutable_fields_from_item, record_from_item

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _item(item_id: str, name: str, folder_path: str = "Documents/", is_folder: bool = False) -> RemoteItem:
    return RemoteItem(
        id=item_id,
        name=name,
        mime_type="x" if is_folder else "text/plain",
        is_folder=is_folder,
        parent_id="root",
        size_bytes=0 if is_folder else 5,
        created_at=T0,
        modified_at=T0,
    ).located(folder_path)


class TestDocumentStore(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = DocumentStore(f"sqlite:///{os.path.join(self._tmp.name, 'mirror.db')}")

    def tearDown(self) -> None:
        self.store.close()
        self._tmp.cleanup()

    def test_insert_and_lookup(self) -> None:
        self.store.insert(record_from_item(_item("F1", "a.txt")))
        row = self.store.get_by_remote_id("F1")
        self.assertIsNotNone(row)
        self.assertEqual(row.path, "Documents/a.txt")
        self.assertEqual(row.size_bytes, 5)
        self.assertEqual(self.store.count(), 1)

    def test_timestamps_come_back_tz_aware(self) -> None:
        self.store.insert(record_from_item(_item("F1", "a.txt")))
        row = self.store.get_by_remote_id("F1")
        self.assertEqual(row.modified_at, T0)
        self.assertIsNotNone(row.modified_at.tzinfo)

    def test_naive_timestamp_rejected(self) -> None:
        record = record_from_item(_item("F1", "a.txt"))
        record.modified_at = datetime(2025, 1, 1)
        with self.assertRaises(StatementError):
            self.store.insert(record)

    def test_remote_id_is_unique(self) -> None:
        self.store.insert(record_from_item(_item("F1", "a.txt")))
        with self.assertRaises(IntegrityError):
            self.store.insert(record_from_item(_item("F1", "b.txt")))
        self.assertEqual(self.store.count(), 1)

    def test_upsert_overwrites_existing_row(self) -> None:
        self.store.insert(record_from_item(_item("F1", "a.txt")))
        item = _item("F1", "a.txt")
        item.share_link = "https://share.example/F1"
        row = self.store.upsert(record_from_item(item))
        self.assertEqual(row.share_link, "https://share.example/F1")
        self.assertEqual(self.store.count(), 1)

        fresh = self.store.upsert(record_from_item(_item("F2", "b.txt")))
        self.assertEqual(fresh.remote_id, "F2")
        self.assertEqual(self.store.count(), 2)

    def test_find_by_equality_filters(self) -> None:
        self.store.insert(record_from_item(_item("F1", "a.txt")))
        self.store.insert(record_from_item(_item("F2", "a.txt", "Documents/Sub/")))
        rows = self.store.find(folder_path="Documents/Sub/", name="a.txt")
        self.assertEqual([r.remote_id for r in rows], ["F2"])
        self.assertIsNone(self.store.find_one(name="missing"))
        with self.assertRaises(ValueError):
            self.store.find(colour="blue")

    def test_update_and_delete(self) -> None:
        self.store.insert(record_from_item(_item("F1", "a.txt")))
        item = _item("F1", "renamed.txt")
        item.modified_at = T0 + timedelta(minutes=5)
        self.assertTrue(self.store.update("F1", **mutable_fields_from_item(item)))
        row = self.store.get_by_remote_id("F1")
        self.assertEqual(row.name, "renamed.txt")
        self.assertEqual(row.modified_at, T0 + timedelta(minutes=5))

        self.assertFalse(self.store.update("missing", name="x"))
        self.assertTrue(self.store.delete("F1"))
        self.assertFalse(self.store.delete("F1"))
        self.assertEqual(self.store.count(), 0)

    def test_list_folder_orders_folders_first(self) -> None:
        self.store.insert(record_from_item(_item("F1", "b.txt")))
        self.store.insert(record_from_item(_item("D1", "zeta", is_folder=True)))
        self.store.insert(record_from_item(_item("F2", "a.txt")))
        self.store.insert(record_from_item(_item("X", "other.txt", "Documents/zeta/")))
        names = [r.name for r in self.store.list_folder("Documents/")]
        self.assertEqual(names, ["zeta", "a.txt", "b.txt"])

    def test_search_is_case_insensitive_and_escapes_wildcards(self) -> None:
        self.store.insert(record_from_item(_item("F1", "Invoice_2025.pdf")))
        self.store.insert(record_from_item(_item("F2", "invoiceX2025.pdf")))
        self.store.insert(record_from_item(_item("D1", "Invoices", is_folder=True)))
        self.assertEqual(
            [r.remote_id for r in self.store.search("INVOICE")],
            ["D1", "F1", "F2"],
        )
        self.assertEqual([r.remote_id for r in self.store.search("invoice_")], ["F1"])
        self.assertEqual(len(self.store.search("invoice", limit=1)), 1)

    def test_to_dict(self) -> None:
        self.store.insert(record_from_item(_item("D1", "Invoices", is_folder=True)))
        data = self.store.get_by_remote_id("D1").to_dict()
        self.assertEqual(data["type"], "folder")
        self.assertEqual(data["path"], "Documents/Invoices/")
        self.assertEqual(data["folder"], "Documents/")


class TestInMemoryStore(unittest.TestCase):
    def test_in_memory_url_shares_one_connection(self) -> None:
        store = DocumentStore("sqlite://")
        store.insert(DocumentRecord(name="a", folder_path="Documents/", remote_id="F1", is_folder=False, size_bytes=0))
        self.assertEqual(store.count(), 1)
        store.close()


if __name__ == "__main__":
    unittest.main()
