#!/usr/bin/env python3
"""
Top-level pipeline orchestrator for Java code-model extraction.

Discovers Java files, extracts structure and pipeline stages concurrently, and
streams every per-file result to a JSONL file as it completes. Optionally each
result is also written to the Neo4j graph store as it arrives.

Usage:
    python run_pipeline.py --source-dir /path/to/java/repo
    python run_pipeline.py --source-dir ./src --output-file out/model.jsonl --workers 4
    python run_pipeline.py --source-dir ./src --vocabulary spark.yml --ingest-neo4j
    python run_pipeline.py --file src/main/java/Job.java --output-file out/job.jsonl
"""

import argparse
import json
import logging
import os
import signal
import sys
import threading
import time
from typing import Any, Optional

from core.run_artifacts import final_status, write_run_report
from core.startup_config import (
    ConfigValidationError,
    resolve_allow_syntax_errors,
    resolve_max_workers,
    resolve_strict_config_validation,
)
from core.structured_logging import configure_structured_logging, phase_scope, set_run_id
from extraction.classifier import DEFAULT_VOCABULARY, PipelineVocabulary, load_vocabulary
from extraction.config import DEFAULT_MAX_WORKERS
from extraction.discovery import discover_java_files
from extraction.extractor import iter_batch
from extraction.models import ExtractionStats

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Java Code-Model Extraction & Pipeline Classification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python run_pipeline.py --source-dir ./src\n"
            "  python run_pipeline.py --source-dir ./src --ingest-neo4j\n"
            "  python run_pipeline.py --file ./src/Job.java\n"
        ),
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--source-dir",
        help="Path to the Java source directory to extract from.",
    )
    target.add_argument(
        "--file",
        help="Extract a single Java file instead of a directory.",
    )
    parser.add_argument(
        "--output-file",
        default="output/code_model.jsonl",
        help="Path for the JSONL results file. Default: output/code_model.jsonl",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help=(
            "Maximum files processed concurrently. "
            f"Default: EXTRACTION_MAX_WORKERS env or {DEFAULT_MAX_WORKERS}"
        ),
    )
    parser.add_argument(
        "--vocabulary",
        default=None,
        help="YAML file with sources/transformations/sinks operation lists.",
    )
    parser.add_argument(
        "--strict-config",
        action="store_true",
        default=resolve_strict_config_validation(default=False),
        help="Fail on invalid configuration instead of falling back to defaults.",
    )
    parser.add_argument(
        "--allow-syntax-errors",
        action="store_true",
        default=resolve_allow_syntax_errors(default=False),
        help="Extract from partially invalid files instead of reporting a parse error.",
    )
    parser.add_argument(
        "--ingest-neo4j",
        action="store_true",
        default=False,
        help="Also write each file result to the Neo4j graph store.",
    )
    parser.add_argument(
        "--report-dir",
        default="output/run_reports",
        help="Directory for the JSON run report. Default: output/run_reports",
    )
    return parser.parse_args(argv)


def _install_cancel_handler(cancel_event: threading.Event) -> Any:
    """Turn the first Ctrl-C into a batch cancellation."""

    def _handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Interrupt received; cancelling batch (press Ctrl-C again to abort)")
        cancel_event.set()

    return signal.signal(signal.SIGINT, _handler)


def extract_to_jsonl(
    file_paths: list[str],
    output_file: str,
    vocabulary: PipelineVocabulary,
    max_workers: int,
    allow_syntax_errors: bool,
    cancel_event: threading.Event,
    graph_driver: Any = None,
) -> tuple[ExtractionStats, Any]:
    """Run the batch and persist each result as it completes.

    Args:
        file_paths: Java files to process.
        output_file: JSONL path, one wire-shaped result per line.
        vocabulary: Classifier vocabulary.
        max_workers: Worker limit.
        allow_syntax_errors: Partial-tree extraction switch.
        cancel_event: Batch cancellation signal.
        graph_driver: Neo4j driver, or None to skip graph writes.

    Returns:
        (extraction stats, graph ingestion stats or None).
    """
    stats = ExtractionStats()
    graph_stats = None
    if graph_driver is not None:
        from graphstore.neo4j_loader import IngestionStats

        graph_stats = IngestionStats()

    os.makedirs(os.path.dirname(os.path.abspath(output_file)), exist_ok=True)
    with open(output_file, "w", encoding="utf-8") as f:
        for result in iter_batch(
            file_paths,
            vocabulary=vocabulary,
            max_workers=max_workers,
            allow_syntax_errors=allow_syntax_errors,
            cancel_event=cancel_event,
        ):
            stats.record(result)
            f.write(json.dumps(result.to_dict(), ensure_ascii=False) + "\n")
            if graph_driver is not None:
                _ingest_one(graph_driver, result, graph_stats)

    return stats, graph_stats


def _ingest_one(driver: Any, result: Any, graph_stats: Any) -> None:
    from neo4j.exceptions import DriverError, Neo4jError

    from graphstore.neo4j_loader import ingest_file_result

    try:
        ingest_file_result(driver, result, stats=graph_stats)
    except (DriverError, Neo4jError) as e:
        graph_stats.write_errors += 1
        logger.error("Failed to write %s to graph: %s", result.path, e)


def _resolve_targets(args: argparse.Namespace) -> list[str]:
    """Files to extract: the single --file, or everything under --source-dir."""
    if args.file:
        path = os.path.abspath(args.file)
        if not os.path.isfile(path):
            raise FileNotFoundError(f"File does not exist: {path}")
        return [path]
    return discover_java_files(args.source_dir)


def run(args: argparse.Namespace, run_id: str) -> dict[str, Any]:
    """Execute the pipeline and return the run report payload."""
    report: dict[str, Any] = {
        "run_id": run_id,
        "pipeline": "extraction",
        "source": os.path.abspath(args.file or args.source_dir),
        "output_file": os.path.abspath(args.output_file),
        "strict_config": args.strict_config,
        "allow_syntax_errors": args.allow_syntax_errors,
        "status": "failed",
    }

    vocabulary = DEFAULT_VOCABULARY
    if args.vocabulary:
        vocabulary = load_vocabulary(args.vocabulary, strict=args.strict_config)
    max_workers = args.workers or resolve_max_workers(DEFAULT_MAX_WORKERS)
    report["max_workers"] = max_workers

    with phase_scope("discovery"):
        file_paths = _resolve_targets(args)
    report["files_discovered"] = len(file_paths)
    if not file_paths:
        logger.warning("No Java files found under %s", args.source_dir)
        report["status"] = "success"
        return report

    driver = None
    if args.ingest_neo4j:
        from graphstore.neo4j_loader import get_neo4j_driver, init_graph_schema

        with phase_scope("graph_connect"):
            driver = get_neo4j_driver()
            init_graph_schema(driver)

    cancel_event = threading.Event()
    previous_handler = _install_cancel_handler(cancel_event)
    t0 = time.time()
    try:
        with phase_scope("extract"):
            stats, graph_stats = extract_to_jsonl(
                file_paths,
                args.output_file,
                vocabulary=vocabulary,
                max_workers=max_workers,
                allow_syntax_errors=args.allow_syntax_errors,
                cancel_event=cancel_event,
                graph_driver=driver,
            )
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        if driver is not None:
            driver.close()

    elapsed = time.time() - t0
    logger.info("Extraction completed in %.2fs: %s", elapsed, stats)
    report["elapsed_s"] = round(elapsed, 3)
    report["extraction"] = stats.to_dict()
    if graph_stats is not None:
        report["graph_ingestion"] = graph_stats.to_dict()
    report["cancelled"] = cancel_event.is_set()

    handled = stats.files_processed + stats.files_failed
    report["status"] = final_status(handled, stats.files_failed)
    if cancel_event.is_set() and report["status"] == "success":
        report["status"] = "partial_success"
    return report


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the pipeline."""
    configure_structured_logging(level=logging.INFO)

    args = parse_args(argv)
    run_id = set_run_id()

    logger.info("")
    logger.info("*" * 80)
    logger.info(" Java Code-Model Extraction Pipeline")
    logger.info(" Run ID: %s", run_id)
    logger.info("*" * 80)
    logger.info("")

    run_report: dict[str, Any] = {"run_id": run_id, "status": "failed"}
    try:
        run_report = run(args, run_id)
    except FileNotFoundError as e:
        logger.error("File error: %s", e)
        run_report["error"] = str(e)
    except ConfigValidationError as e:
        logger.error("Configuration error: %s", e)
        run_report["error"] = str(e)
    except ConnectionError as e:
        logger.error("Neo4j connection error: %s", e)
        run_report["error"] = str(e)
    except KeyboardInterrupt:
        logger.error("Run aborted by user")
        run_report["error"] = "aborted by user"
        run_report["aborted"] = True
    except Exception as e:
        logger.error("Pipeline failed: %s", e, exc_info=True)
        run_report["error"] = str(e)

    report_path = write_run_report(run_report, run_id, output_dir=args.report_dir)
    logger.info("Run report written: %s", report_path)

    # Per-file failures are reported, not fatal
    if run_report.get("aborted"):
        sys.exit(130)
    if "error" in run_report:
        sys.exit(1)

    logger.info("*" * 80)
    logger.info(" Pipeline finished: %s", run_report["status"])
    logger.info("*" * 80)


if __name__ == "__main__":
    main()
