"""Contract tests for the command-line pipeline runner."""

from __future__ import annotations

import json
import os
import tempfile
import threading
import unittest
from unittest.mock import patch

from extraction.classifier import DEFAULT_VOCABULARY
from run_pipeline import extract_to_jsonl, main, parse_args

JOB = b"""
public class Job {
    void run() {
        Dataset<Row> df = spark.read().csv("in.csv");
        df.write().parquet("out");
    }
}
"""


class TestRunPipeline(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = self._tmp.name
        self.source_dir = os.path.join(self.root, "src")
        os.makedirs(self.source_dir)
        for name, content in (("Job.java", JOB), ("Broken.java", b"class Broken { void m( }")):
            with open(os.path.join(self.source_dir, name), "wb") as f:
                f.write(content)
        self.output_file = os.path.join(self.root, "out", "model.jsonl")
        self.report_dir = os.path.join(self.root, "reports")

    def _report(self) -> dict:
        (name,) = os.listdir(self.report_dir)
        with open(os.path.join(self.report_dir, name), "r", encoding="utf-8") as f:
            return json.load(f)

    def test_parse_args_defaults(self) -> None:
        args = parse_args(["--source-dir", "src"])
        self.assertEqual(args.output_file, "output/code_model.jsonl")
        self.assertIsNone(args.workers)
        self.assertFalse(args.ingest_neo4j)

    def test_extract_to_jsonl_writes_one_line_per_file(self) -> None:
        paths = [os.path.join(self.source_dir, n) for n in ("Job.java", "Broken.java")]
        stats, graph_stats = extract_to_jsonl(
            paths,
            self.output_file,
            vocabulary=DEFAULT_VOCABULARY,
            max_workers=2,
            allow_syntax_errors=False,
            cancel_event=threading.Event(),
        )

        self.assertIsNone(graph_stats)
        self.assertEqual((stats.files_processed, stats.files_failed), (1, 1))
        with open(self.output_file, "r", encoding="utf-8") as f:
            payloads = [json.loads(line) for line in f]
        by_file = {os.path.basename(p["file"]): p for p in payloads}
        self.assertEqual(set(by_file), {"Job.java", "Broken.java"})
        self.assertIn("error", by_file["Broken.java"])
        self.assertEqual(by_file["Job.java"]["classes"][0]["name"], "Job")

    def test_main_partial_success_report(self) -> None:
        main(
            [
                "--source-dir", self.source_dir,
                "--output-file", self.output_file,
                "--report-dir", self.report_dir,
                "--workers", "2",
            ]
        )

        report = self._report()
        self.assertEqual(report["status"], "partial_success")
        self.assertEqual(report["files_discovered"], 2)
        self.assertEqual(report["extraction"]["files_failed"], 1)
        self.assertFalse(report["cancelled"])

    def test_main_missing_source_dir_fails(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            main(
                [
                    "--source-dir", os.path.join(self.root, "missing"),
                    "--report-dir", self.report_dir,
                ]
            )
        self.assertEqual(ctx.exception.code, 1)
        self.assertEqual(self._report()["status"], "failed")

    @patch("graphstore.neo4j_loader.get_neo4j_driver")
    def test_main_graph_connection_failure(self, mock_get_driver) -> None:
        mock_get_driver.side_effect = ConnectionError("unreachable")
        with self.assertRaises(SystemExit):
            main(
                [
                    "--source-dir", self.source_dir,
                    "--output-file", self.output_file,
                    "--report-dir", self.report_dir,
                    "--ingest-neo4j",
                ]
            )
        self.assertEqual(self._report()["error"], "unreachable")

    def test_single_file_mode(self) -> None:
        main(
            [
                "--file", os.path.join(self.source_dir, "Job.java"),
                "--output-file", self.output_file,
                "--report-dir", self.report_dir,
            ]
        )

        report = self._report()
        self.assertEqual(report["status"], "success")
        self.assertEqual(report["files_discovered"], 1)
        with open(self.output_file, "r", encoding="utf-8") as f:
            self.assertEqual(len(f.readlines()), 1)

    def test_single_file_mode_missing_file(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            main(
                [
                    "--file", os.path.join(self.source_dir, "Missing.java"),
                    "--report-dir", self.report_dir,
                ]
            )
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("File does not exist", self._report()["error"])

    def test_file_and_source_dir_are_exclusive(self) -> None:
        with self.assertRaises(SystemExit):
            parse_args(["--source-dir", "src", "--file", "A.java"])

    @patch("run_pipeline.run", side_effect=KeyboardInterrupt)
    def test_aborted_run_still_writes_report(self, mock_run) -> None:
        with self.assertRaises(SystemExit) as ctx:
            main(["--source-dir", self.source_dir, "--report-dir", self.report_dir])

        self.assertEqual(ctx.exception.code, 130)
        report = self._report()
        self.assertEqual(report["status"], "failed")
        self.assertTrue(report["aborted"])


if __name__ == "__main__":
    unittest.main()
