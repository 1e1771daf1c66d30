"""
Layer 1: Extraction Engine

Tree-sitter-based Java source parser, structural extractor and pipeline-stage
classifier. Produces one immutable result per input file.
"""

from extraction.models import (
    BatchResult,
    CallReference,
    ExtractionStats,
    Field,
    FileExtraction,
    FileExtractionError,
    FileResult,
    FlowEdge,
    LocalVariable,
    Method,
    Parameter,
    PipelineStage,
    SourceFile,
    StageTag,
    TypeDeclaration,
    TypeKind,
    file_result_from_dict,
)
from extraction.errors import MalformedTreeError, ParseError
from extraction.parser import ParseTree, create_parser, parse_bytes, parse_file, count_error_nodes
from extraction.traversal import extract_structure
from extraction.classifier import (
    DEFAULT_VOCABULARY,
    PipelineClassifier,
    PipelineVocabulary,
    load_vocabulary,
)
from extraction.extractor import (
    process_file,
    process_source,
    iter_batch,
    iter_batch_dicts,
    run_batch,
)
from extraction.discovery import discover_java_files

__all__ = [
    # Data models
    "BatchResult",
    "CallReference",
    "ExtractionStats",
    "Field",
    "FileExtraction",
    "FileExtractionError",
    "FileResult",
    "FlowEdge",
    "LocalVariable",
    "Method",
    "Parameter",
    "PipelineStage",
    "SourceFile",
    "StageTag",
    "TypeDeclaration",
    "TypeKind",
    "file_result_from_dict",
    # Errors
    "MalformedTreeError",
    "ParseError",
    # Low-level parsing
    "ParseTree",
    "create_parser",
    "parse_bytes",
    "parse_file",
    "count_error_nodes",
    # Mid-level extraction
    "extract_structure",
    "DEFAULT_VOCABULARY",
    "PipelineClassifier",
    "PipelineVocabulary",
    "load_vocabulary",
    # High-level orchestration
    "process_file",
    "process_source",
    "iter_batch",
    "iter_batch_dicts",
    "run_batch",
    "discover_java_files",
]
