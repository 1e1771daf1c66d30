"""Tests for run artifact writer."""

import json
import tempfile
import unittest
from pathlib import Path

from core.run_artifacts import final_status, write_run_report


class TestRunArtifacts(unittest.TestCase):
    def test_write_run_report(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_run_report(
                report={"status": "success", "extraction": {"files_processed": 3}},
                run_id="run-123",
                output_dir=tmpdir,
            )
            self.assertTrue(Path(path).is_file())
            self.assertEqual(Path(path).name, "run-123.json")
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
            self.assertEqual(payload["run_id"], "run-123")
            self.assertEqual(payload["status"], "success")
            self.assertEqual(payload["extraction"], {"files_processed": 3})
            self.assertIn("timestamp_utc", payload)

    def test_write_run_report_creates_missing_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            nested = Path(tmpdir) / "a" / "b"
            path = write_run_report({"status": "failed"}, "r1", output_dir=str(nested))
            self.assertTrue(Path(path).is_file())

    def test_report_run_id_is_not_overwritten(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_run_report({"run_id": "explicit"}, "other", output_dir=tmpdir)
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
            self.assertEqual(payload["run_id"], "explicit")


class TestFinalStatus(unittest.TestCase):
    def test_all_succeeded(self) -> None:
        self.assertEqual(final_status(5, 0), "success")

    def test_some_failed(self) -> None:
        self.assertEqual(final_status(5, 2), "partial_success")

    def test_all_failed(self) -> None:
        self.assertEqual(final_status(3, 3), "failed")

    def test_empty_batch_is_success(self) -> None:
        self.assertEqual(final_status(0, 0), "success")


if __name__ == "__main__":
    unittest.main()
