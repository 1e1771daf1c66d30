"""
Read-only queries over one batch's accumulated result set.

``CodeModelIndex`` answers structural lookups (by file, by type), free-text
search over method names/bodies and type/file names, and pipeline queries
(stages by binding identifier, flow edges). It is built once per batch run
and never mutated afterwards.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from extraction.models import (
    BatchResult,
    Field,
    FileExtraction,
    FileExtractionError,
    FileResult,
    FlowEdge,
    Method,
    PipelineStage,
    StageTag,
    TypeDeclaration,
    file_result_from_dict,
)
from navigation.flow import resolve_flow_edges

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 50


@dataclass(frozen=True)
class MethodMatch:
    """A method hit from ``search_methods``."""

    file_path: str
    type_name: str
    method: Method
    matched_in: str  # "name" or "body"


@dataclass(frozen=True)
class TypeMatch:
    """A type hit from ``search_types`` / ``list_types``."""

    file_path: str
    type_decl: TypeDeclaration
    type_index: int = 0  # position in the file's flattened type list


def _contains(haystack: Optional[str], needle: str) -> bool:
    return haystack is not None and needle in haystack.lower()


def _normalize_term(term: str) -> str:
    if not isinstance(term, str):
        raise TypeError(f"search term must be str, got {type(term).__name__}")
    return term.strip().lower()


class CodeModelIndex:
    """Query surface over one batch run.

    Later results for the same path replace earlier ones, so an index built
    from a JSONL file with re-runs appended keeps the latest entry per file.

    Example:
        >>> index = CodeModelIndex(run_batch(paths))
        >>> index.methods_of_type("/repo/Job.java", "Job")
        [Method(name='run', ...)]
    """

    def __init__(self, batch: BatchResult):
        self._results: Dict[str, FileResult] = {}
        for result in batch.results:
            path = result.path
            if path in self._results:
                logger.debug("Replacing earlier result for %s", path)
            self._results[path] = result

    @classmethod
    def from_results(cls, results: Iterable[FileResult]) -> "CodeModelIndex":
        return cls(BatchResult(results=tuple(results)))

    @classmethod
    def from_dicts(cls, payloads: Iterable[Dict[str, Any]]) -> "CodeModelIndex":
        return cls.from_results(file_result_from_dict(p) for p in payloads)

    @classmethod
    def from_jsonl(cls, path: str) -> "CodeModelIndex":
        """Load an index from a JSONL file of wire-shaped file results.

        Raises:
            ValueError: If a non-empty line is not valid JSON.
        """
        payloads = []
        with open(path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    payloads.append(json.loads(line))
                except json.JSONDecodeError as exc:
                    raise ValueError(f"{path}:{lineno}: invalid JSON ({exc.msg})") from exc
        logger.info("Loaded %d file results from %s", len(payloads), path)
        return cls.from_dicts(payloads)

    # ------------------------------------------------------------------
    # By-file lookups
    # ------------------------------------------------------------------

    @property
    def file_paths(self) -> List[str]:
        return sorted(self._results)

    def get_result(self, file_path: str) -> Optional[FileResult]:
        return self._results.get(file_path)

    def get_file(self, file_path: str) -> Optional[FileExtraction]:
        """Successful extraction for a path, or None (unknown or failed)."""
        result = self._results.get(file_path)
        if isinstance(result, FileExtraction):
            return result
        return None

    def get_error(self, file_path: str) -> Optional[FileExtractionError]:
        result = self._results.get(file_path)
        if isinstance(result, FileExtractionError):
            return result
        return None

    def types_in_file(self, file_path: str) -> List[TypeDeclaration]:
        extraction = self.get_file(file_path)
        return list(extraction.types) if extraction else []

    # ------------------------------------------------------------------
    # By-type lookups
    # ------------------------------------------------------------------

    def get_type(self, file_path: str, type_name: str) -> Optional[TypeDeclaration]:
        """First type named ``type_name`` in the file.

        Nested types are flattened by simple name, so two nested types with
        the same name in one file resolve to the first in document order.
        """
        for type_decl in self.types_in_file(file_path):
            if type_decl.name == type_name:
                return type_decl
        return None

    def methods_of_type(self, file_path: str, type_name: str) -> List[Method]:
        type_decl = self.get_type(file_path, type_name)
        return list(type_decl.methods) if type_decl else []

    def fields_of_type(self, file_path: str, type_name: str) -> List[Field]:
        type_decl = self.get_type(file_path, type_name)
        return list(type_decl.fields) if type_decl else []

    def get_method(
        self, file_path: str, type_name: str, method_name: str
    ) -> List[Method]:
        """All overloads of ``type_name.method_name`` in the file, in declaration order."""
        return [m for m in self.methods_of_type(file_path, type_name) if m.name == method_name]

    def list_types(self) -> List[TypeMatch]:
        """Every type in the batch, ordered by file path then document order."""
        return [
            TypeMatch(file_path=path, type_decl=type_decl, type_index=i)
            for path in self.file_paths
            for i, type_decl in enumerate(self.types_in_file(path))
        ]

    # ------------------------------------------------------------------
    # Free-text search (case-insensitive substring)
    # ------------------------------------------------------------------

    def search_methods(
        self, term: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> List[MethodMatch]:
        """Find methods whose name or raw body text contains ``term``.

        Name hits and body hits are reported once per method; a name hit wins.
        An empty term matches nothing.
        """
        needle = _normalize_term(term)
        if not needle:
            return []

        matches: List[MethodMatch] = []
        for match in self.list_types():
            for method in match.type_decl.methods:
                if _contains(method.name, needle):
                    matched_in = "name"
                elif _contains(method.body, needle):
                    matched_in = "body"
                else:
                    continue
                matches.append(
                    MethodMatch(
                        file_path=match.file_path,
                        type_name=match.type_decl.name,
                        method=method,
                        matched_in=matched_in,
                    )
                )
                if len(matches) >= limit:
                    return matches
        return matches

    def search_types(self, term: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[TypeMatch]:
        needle = _normalize_term(term)
        if not needle:
            return []
        return [m for m in self.list_types() if _contains(m.type_decl.name, needle)][:limit]

    def search_files(self, term: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[str]:
        """Paths of files (successful or failed) whose path contains ``term``."""
        needle = _normalize_term(term)
        if not needle:
            return []
        return [p for p in self.file_paths if _contains(p, needle)][:limit]

    # ------------------------------------------------------------------
    # Pipeline queries
    # ------------------------------------------------------------------

    def stages_in_file(
        self, file_path: str, tag: Optional[StageTag] = None
    ) -> List[PipelineStage]:
        extraction = self.get_file(file_path)
        if extraction is None:
            return []
        if tag is None:
            return list(extraction.stages)
        return extraction.stages_for(tag)

    def stages_by_binding(self, file_path: str, binding_identifier: str) -> List[PipelineStage]:
        """Stages in one file whose binding identifier equals ``binding_identifier``."""
        return [
            s for s in self.stages_in_file(file_path)
            if s.binding_identifier == binding_identifier
        ]

    def flow_edges(self, file_path: str) -> List[FlowEdge]:
        extraction = self.get_file(file_path)
        if extraction is None:
            return []
        return resolve_flow_edges(extraction)

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def repository_stats(self) -> Dict[str, Any]:
        """Counts across the batch, failed files included."""
        extractions = [r for r in self._results.values() if isinstance(r, FileExtraction)]
        types = [t for e in extractions for t in e.types]
        stage_counts: Dict[str, int] = {tag.wire_key: 0 for tag in StageTag}
        for extraction in extractions:
            for stage in extraction.stages:
                stage_counts[stage.tag.wire_key] += 1

        return {
            "files": len(self._results),
            "failedFiles": len(self._results) - len(extractions),
            "classes": sum(1 for t in types if not t.is_interface),
            "interfaces": sum(1 for t in types if t.is_interface),
            "methods": sum(len(t.methods) for t in types),
            "fields": sum(len(t.fields) for t in types),
            "pipelineStages": stage_counts,
        }

    def pipeline_files(self) -> List[Tuple[str, int]]:
        """(path, stage count) for every file with at least one stage."""
        return [
            (path, len(self.stages_in_file(path)))
            for path in self.file_paths
            if self.stages_in_file(path)
        ]
