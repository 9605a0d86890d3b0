"""Tests for head / tail / list."""

import os
import shutil
import tempfile
import time
import unittest

from d3k.exceptions import LogFileNotFoundError
from d3k.query import head, list_logs, read_lines, tail

SAMPLE = (
    "[2025-01-01T00:00:00.000Z] [SERVER] Starting server...\n"
    "[2025-01-01T00:00:01.000Z] [SERVER] Server started successfully\n"
)


class TestHeadTail(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self.tmpdir, "app-d3k.log")
        with open(self.path, "w") as f:
            f.write(SAMPLE)

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_head(self):
        lines, total = head(self.path, 1)
        self.assertEqual(lines, ["[2025-01-01T00:00:00.000Z] [SERVER] Starting server..."])
        self.assertEqual(total, 2)

    def test_tail(self):
        lines, total = tail(self.path, 1)
        self.assertEqual(lines, ["[2025-01-01T00:00:01.000Z] [SERVER] Server started successfully"])
        self.assertEqual(total, 2)

    def test_more_than_available(self):
        self.assertEqual(len(head(self.path, 50)[0]), 2)
        self.assertEqual(len(tail(self.path, 50)[0]), 2)

    def test_zero_lines(self):
        self.assertEqual(tail(self.path, 0), ([], 2))
        self.assertEqual(head(self.path, 0), ([], 2))

    def test_blank_lines_skipped(self):
        with open(self.path, "a") as f:
            f.write("\n   \n[2025-01-01T00:00:02.000Z] [BROWSER] hi\n\n")
        self.assertEqual(len(read_lines(self.path)), 3)

    def test_missing_file(self):
        with self.assertRaises(LogFileNotFoundError):
            head(os.path.join(self.tmpdir, "nope.log"))
        with self.assertRaises(FileNotFoundError):
            tail(os.path.join(self.tmpdir, "nope.log"))


class TestListLogs(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.current = os.path.join(self.tmpdir, "studio-abc123-d3k.log")
        self.old = os.path.join(self.tmpdir, "studio-abc123-2025-01-01T00-00-00-000Z.log")
        self.newer = os.path.join(self.tmpdir, "studio-abc123-2025-01-02T00-00-00-000Z.log")
        for i, path in enumerate((self.old, self.newer, self.current)):
            with open(path, "w") as f:
                f.write("x" * (i + 1))
            mtime = time.time() - 100 + i * 10
            os.utime(path, (mtime, mtime))
        open(os.path.join(self.tmpdir, "other-2025-01-01T00-00-00-000Z.log"), "w").close()
        open(os.path.join(self.tmpdir, "notes.txt"), "w").close()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_lists_project_files_newest_first(self):
        result = list_logs(self.current)
        self.assertEqual(result["projectName"], "studio-abc123")
        self.assertEqual(result["currentFile"], self.current)
        names = [f["name"] for f in result["files"]]
        self.assertEqual(names, [
            "studio-abc123-d3k.log",
            "studio-abc123-2025-01-02T00-00-00-000Z.log",
            "studio-abc123-2025-01-01T00-00-00-000Z.log",
        ])

    def test_file_fields(self):
        files = list_logs(self.current)["files"]
        current = files[0]
        self.assertTrue(current["isCurrent"])
        self.assertEqual(current["timestamp"], "")
        self.assertEqual(current["size"], 3)
        archived = files[1]
        self.assertFalse(archived["isCurrent"])
        self.assertEqual(archived["timestamp"], "2025-01-02T00:00:00.000Z")
        self.assertEqual(set(archived), {"name", "path", "timestamp", "size", "mtime", "isCurrent"})

    def test_missing_current(self):
        with self.assertRaises(LogFileNotFoundError):
            list_logs(os.path.join(self.tmpdir, "gone-d3k.log"))

    def test_other_projects_with_overlapping_names_excluded(self):
        open(os.path.join(self.tmpdir, "my-studio-abc123-2025-01-03T00-00-00-000Z.log"), "w").close()
        names = [f["name"] for f in list_logs(self.current)["files"]]
        self.assertEqual(len(names), 3)
        self.assertNotIn("my-studio-abc123-2025-01-03T00-00-00-000Z.log", names)

    def test_through_pointer(self):
        pointer = os.path.join(self.tmpdir, "d3k.log")
        os.symlink(self.current, pointer)
        result = list_logs(pointer)
        self.assertEqual(result["projectName"], "studio-abc123")
        self.assertEqual(result["currentFile"], os.path.realpath(self.current))
        self.assertEqual(len(result["files"]), 3)
        self.assertTrue(result["files"][0]["isCurrent"])


if __name__ == "__main__":
    unittest.main()
