"""
High-level orchestrator for Java code-model extraction.

This module provides the file processor (parse -> structural extraction ->
pipeline classification for one file) and the batch runner that fans it out
over many files. Per-file failures are returned as ``FileExtractionError``
values; they never abort a batch.
"""

import contextvars
import logging
import os
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Dict, Iterable, Iterator, List, Optional

from extraction.classifier import DEFAULT_VOCABULARY, PipelineClassifier, PipelineVocabulary
from extraction.config import DEFAULT_ALLOW_SYNTAX_ERRORS, DEFAULT_MAX_WORKERS
from extraction.errors import MalformedTreeError, ParseError
from extraction.models import (
    BatchResult,
    ExtractionStats,
    FileExtraction,
    FileExtractionError,
    FileResult,
)
from extraction.parser import ParseOutcome, parse_bytes, parse_file
from extraction.traversal import extract_structure

logger = logging.getLogger(__name__)


def _extract_parsed(
    file_path: str,
    outcome: ParseOutcome,
    classifier: PipelineClassifier,
) -> FileResult:
    """Run both extractors over a parse outcome, capturing every failure."""
    if isinstance(outcome, ParseError):
        return FileExtractionError(path=file_path, reason=f"Parse error: {outcome.message}")

    try:
        source_file, types = extract_structure(outcome, file_path)
        stages = classifier.classify(outcome, file_path)
    except MalformedTreeError as e:
        logger.warning("Malformed syntax tree for %s: %s", file_path, e)
        return FileExtractionError(path=file_path, reason=f"Malformed tree: {e}")
    except Exception as e:
        logger.error("Unexpected error extracting %s: %s", file_path, e, exc_info=True)
        return FileExtractionError(
            path=file_path,
            reason=f"Extraction failed: {type(e).__name__}: {e}",
        )

    if outcome.error_count:
        logger.warning(
            "File %s contains syntax errors (%d error nodes)",
            file_path,
            outcome.error_count,
        )

    return FileExtraction(
        source_file=source_file,
        types=tuple(types),
        stages=tuple(stages),
        parse_error_count=outcome.error_count,
    )


def process_source(
    file_path: str,
    source_bytes: bytes,
    classifier: Optional[PipelineClassifier] = None,
    allow_syntax_errors: bool = DEFAULT_ALLOW_SYNTAX_ERRORS,
) -> FileResult:
    """Extract the code model of in-memory Java source.

    Args:
        file_path: Path recorded on the result.
        source_bytes: Java source as bytes.
        classifier: Pipeline classifier; the default Spark vocabulary is used
            when omitted.
        allow_syntax_errors: Extract partial trees instead of failing.

    Returns:
        ``FileExtraction`` or ``FileExtractionError``.
    """
    if classifier is None:
        classifier = PipelineClassifier()
    if not isinstance(source_bytes, bytes):
        return FileExtractionError(
            path=file_path,
            reason=f"Source must be bytes, got {type(source_bytes).__name__}",
        )
    outcome = parse_bytes(source_bytes, allow_syntax_errors=allow_syntax_errors)
    return _extract_parsed(file_path, outcome, classifier)


def process_file(
    file_path: str,
    classifier: Optional[PipelineClassifier] = None,
    allow_syntax_errors: bool = DEFAULT_ALLOW_SYNTAX_ERRORS,
) -> FileResult:
    """Extract the code model of one Java file.

    Never raises for per-file problems: unreadable files, syntax errors and
    extractor failures all come back as ``FileExtractionError``.

    Args:
        file_path: Path to the .java file. Recorded as an absolute path.
        classifier: Pipeline classifier; the default Spark vocabulary is used
            when omitted.
        allow_syntax_errors: Extract partial trees instead of failing.

    Returns:
        ``FileExtraction`` or ``FileExtractionError``.

    Example:
        >>> result = process_file("src/main/java/Job.java")
        >>> result.to_dict()["file"]
        '/abs/path/src/main/java/Job.java'
    """
    if classifier is None:
        classifier = PipelineClassifier()
    file_path = os.path.abspath(file_path)

    outcome = parse_file(file_path, allow_syntax_errors=allow_syntax_errors)
    result = _extract_parsed(file_path, outcome, classifier)

    if isinstance(result, FileExtraction):
        logger.debug(
            "Extracted %d types and %d stages from %s",
            len(result.types),
            len(result.stages),
            file_path,
        )
    return result


def _validate_paths(file_paths: Iterable[Any]) -> List[str]:
    """Materialize the input list before any processing starts."""
    if isinstance(file_paths, (str, bytes)):
        raise TypeError("file_paths must be a list of paths, not a single string")
    try:
        paths = list(file_paths)
    except TypeError as e:
        raise TypeError(f"file_paths is not iterable: {e}") from e

    for path in paths:
        if not isinstance(path, (str, os.PathLike)):
            raise TypeError(f"Invalid file path entry: {path!r}")
    return [os.fspath(p) for p in paths]


def iter_batch(
    file_paths: Iterable[str],
    vocabulary: PipelineVocabulary = DEFAULT_VOCABULARY,
    max_workers: int = DEFAULT_MAX_WORKERS,
    allow_syntax_errors: bool = DEFAULT_ALLOW_SYNTAX_ERRORS,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[FileResult]:
    """Process files concurrently, yielding each result as it completes.

    Exactly one result is yielded per input path (in completion order) unless
    ``cancel_event`` is set, in which case no further files are submitted and
    results of in-flight files are discarded rather than yielded.

    Args:
        file_paths: Candidate Java files (already filtered by the caller).
        vocabulary: Pipeline vocabulary injected into the classifier.
        max_workers: Upper bound on concurrently processed files.
        allow_syntax_errors: Extract partial trees instead of failing.
        cancel_event: Optional cancellation signal.

    Yields:
        ``FileExtraction`` or ``FileExtractionError`` per file.

    Raises:
        TypeError: If ``file_paths`` is not a list of paths.
        ValueError: If ``max_workers`` is less than 1.
    """
    paths = _validate_paths(file_paths)
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")
    if not paths:
        return

    classifier = PipelineClassifier(vocabulary)
    cancelled = cancel_event.is_set if cancel_event is not None else (lambda: False)
    queue_limit = max_workers * 2
    next_index = 0
    in_flight: Dict[Future, str] = {}

    logger.info("Processing %d files with %d workers", len(paths), max_workers)

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="extract") as executor:
        while next_index < len(paths) or in_flight:
            while next_index < len(paths) and len(in_flight) < queue_limit and not cancelled():
                path = paths[next_index]
                next_index += 1
                # Carry run_id/phase logging context into the worker thread
                context = contextvars.copy_context()
                future = executor.submit(
                    context.run, process_file, path, classifier, allow_syntax_errors
                )
                in_flight[future] = path

            if cancelled():
                for future in in_flight:
                    future.cancel()
                logger.warning(
                    "Batch cancelled: discarded %d in-flight and %d unsubmitted files",
                    len(in_flight),
                    len(paths) - next_index,
                )
                return

            done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
            for future in done:
                path = in_flight.pop(future)
                if cancelled():
                    continue
                try:
                    result = future.result()
                except Exception as e:
                    logger.error("Worker failed for %s: %s", path, e, exc_info=True)
                    result = FileExtractionError(
                        path=os.path.abspath(path),
                        reason=f"Worker failed: {type(e).__name__}: {e}",
                    )
                if isinstance(result, FileExtractionError):
                    logger.warning("Failed to extract %s: %s", result.path, result.reason)
                yield result


def run_batch(
    file_paths: Iterable[str],
    vocabulary: PipelineVocabulary = DEFAULT_VOCABULARY,
    max_workers: int = DEFAULT_MAX_WORKERS,
    allow_syntax_errors: bool = DEFAULT_ALLOW_SYNTAX_ERRORS,
    cancel_event: Optional[threading.Event] = None,
) -> BatchResult:
    """Process a list of files and collect every result.

    Returns:
        A ``BatchResult`` with one entry per input path and batch statistics.

    Example:
        >>> batch = run_batch(["A.java", "B.java"])
        >>> len(batch.results)
        2
    """
    stats = ExtractionStats()
    results: List[FileResult] = []
    for result in iter_batch(
        file_paths,
        vocabulary=vocabulary,
        max_workers=max_workers,
        allow_syntax_errors=allow_syntax_errors,
        cancel_event=cancel_event,
    ):
        stats.record(result)
        results.append(result)

    logger.info("Extraction complete: %s", stats)
    return BatchResult(results=tuple(results), stats=stats)


def iter_batch_dicts(
    file_paths: Iterable[str],
    vocabulary: PipelineVocabulary = DEFAULT_VOCABULARY,
    max_workers: int = DEFAULT_MAX_WORKERS,
    allow_syntax_errors: bool = DEFAULT_ALLOW_SYNTAX_ERRORS,
) -> Iterator[Dict[str, Any]]:
    """Stream per-file results in their wire shape, ready for JSON serialization."""
    for result in iter_batch(
        file_paths,
        vocabulary=vocabulary,
        max_workers=max_workers,
        allow_syntax_errors=allow_syntax_errors,
    ):
        yield result.to_dict()
