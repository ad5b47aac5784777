import io
import unittest
import zipfile

from fakes import FakeGateway

from drivemirror.archive import REPORT_ENTRY, ArchiveBuilder, archive_filename
from drivemirror.errors import NotFoundError


def _open(data: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(data))


class TestArchiveFilename(unittest.TestCase):
    def test_appends_zip_and_sanitizes(self) -> None:
        self.assertEqual(archive_filename("report"), "report.zip")
        self.assertEqual(archive_filename("report.ZIP"), "report.ZIP")
        self.assertEqual(archive_filename("a/b"), "a_b.zip")
        self.assertEqual(archive_filename(None), "files.zip")
        self.assertEqual(archive_filename("  ", default="folder.zip"), "folder.zip")


class TestBuildFromIds(unittest.TestCase):
    def setUp(self) -> None:
        self.gw = FakeGateway()
        self.gw.add_folder("D1", "Sub")
        self.gw.add_file("A", "a.txt", data=b"alpha")
        self.gw.add_file("B", "a.txt", parent_id="D1", data=b"bravo")
        self.gw.add_file("C", "notes", data=b"charlie")
        self.builder = ArchiveBuilder(self.gw)

    def test_files_side_by_side_with_unique_names(self) -> None:
        result = self.builder.build_from_ids(["A", "B", "C"], "bundle")

        self.assertEqual(result.filename, "bundle.zip")
        self.assertTrue(result.complete)
        with _open(result.data) as zf:
            self.assertEqual(zf.namelist(), ["a.txt", "a (1).txt", "notes"])
            self.assertEqual(zf.read("a.txt"), b"alpha")
            self.assertEqual(zf.read("a (1).txt"), b"bravo")

    def test_repeated_ids_are_archived_once(self) -> None:
        result = self.builder.build_from_ids(["A", "A", ""])
        self.assertEqual(result.entries, ["a.txt"])

    def test_failed_download_is_reported_not_fatal(self) -> None:
        self.gw.failing_downloads.add("B")

        result = self.builder.build_from_ids(["A", "B", "missing"])

        self.assertFalse(result.complete)
        self.assertEqual([o.remote_id for o in result.omitted], ["B", "missing"])
        with _open(result.data) as zf:
            self.assertEqual(zf.namelist(), ["a.txt", REPORT_ENTRY])
            report = zf.read(REPORT_ENTRY).decode("utf-8")
        self.assertIn("[B]", report)
        self.assertIn("[missing]", report)

    def test_report_does_not_clash_with_a_file_of_the_same_name(self) -> None:
        self.gw.add_file("R", REPORT_ENTRY, data=b"mine")
        self.gw.failing_downloads.add("B")

        result = self.builder.build_from_ids(["R", "B"])

        with _open(result.data) as zf:
            names = zf.namelist()
            self.assertEqual(names, [REPORT_ENTRY, "MISSING_FILES (1).txt"])
            self.assertEqual(zf.read(REPORT_ENTRY), b"mine")
            self.assertIn("[B]", zf.read("MISSING_FILES (1).txt").decode("utf-8"))

    def test_folder_ids_are_not_archived(self) -> None:
        result = self.builder.build_from_ids(["D1"])
        self.assertEqual(result.entries, [])
        self.assertEqual(result.omitted[0].name, "Sub")

    def test_empty_selection_gives_empty_archive(self) -> None:
        result = self.builder.build_from_ids([])
        with _open(result.data) as zf:
            self.assertEqual(zf.namelist(), [])


class TestBuildFromFolder(unittest.TestCase):
    def setUp(self) -> None:
        self.gw = FakeGateway()
        self.gw.add_folder("P", "Project")
        self.gw.add_file("R", "readme.md", parent_id="P", data=b"# hi")
        self.gw.add_folder("S", "src", parent_id="P")
        self.gw.add_file("M", "main.py", parent_id="S", data=b"print()")
        self.gw.add_folder("E", "empty", parent_id="P")
        self.builder = ArchiveBuilder(self.gw, spool_max_bytes=4)

    def test_keeps_hierarchy_relative_to_folder(self) -> None:
        result = self.builder.build_from_folder("P")

        self.assertEqual(result.filename, "Project.zip")
        with _open(result.data) as zf:
            self.assertEqual(
                sorted(zf.namelist()),
                ["empty/", "readme.md", "src/main.py"],
            )
            self.assertEqual(zf.read("src/main.py"), b"print()")

    def test_explicit_name(self) -> None:
        result = self.builder.build_from_folder("P", "export")
        self.assertEqual(result.filename, "export.zip")

    def test_duplicate_folder_names_do_not_merge(self) -> None:
        self.gw.add_folder("S2", "src", parent_id="P")
        self.gw.add_file("M2", "main.py", parent_id="S2", data=b"other")

        result = self.builder.build_from_folder("P")

        with _open(result.data) as zf:
            self.assertEqual(zf.read("src/main.py"), b"print()")
            self.assertEqual(zf.read("src (1)/main.py"), b"other")

    def test_unknown_folder_raises(self) -> None:
        with self.assertRaises(NotFoundError):
            self.builder.build_from_folder("nope")


if __name__ == "__main__":
    unittest.main()
