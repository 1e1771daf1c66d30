"""
Configuration constants for Java AST extraction and pipeline classification.

Defines the tree-sitter node type strings used for entity extraction and the
default operation vocabularies used to classify pipeline stages.
"""

import os
from typing import FrozenSet, Set

# Root node type produced by the Java grammar
PROGRAM_NODE: str = "program"

# Type declarations we extract (anything else is traversed, not emitted)
CLASS_NODE: str = "class_declaration"
INTERFACE_NODE: str = "interface_declaration"
TYPE_DECLARATION_NODES: Set[str] = {CLASS_NODE, INTERFACE_NODE}

# Type header nodes
SUPERCLASS_NODE: str = "superclass"
SUPER_INTERFACES_NODE: str = "super_interfaces"
EXTENDS_INTERFACES_NODE: str = "extends_interfaces"
TYPE_LIST_NODE: str = "type_list"

# Member nodes
METHOD_NODE: str = "method_declaration"
FIELD_NODES: Set[str] = {
    "field_declaration",
    "constant_declaration",  # interface constants
}
MODIFIERS_NODE: str = "modifiers"

# Parameter nodes
FORMAL_PARAMETER_NODE: str = "formal_parameter"
SPREAD_PARAMETER_NODE: str = "spread_parameter"

# Body nodes
METHOD_INVOCATION_NODE: str = "method_invocation"
VARIABLE_DECLARATOR_NODE: str = "variable_declarator"
ENHANCED_FOR_NODE: str = "enhanced_for_statement"
RESOURCE_NODE: str = "resource"
ASSIGNMENT_NODE: str = "assignment_expression"
FIELD_ACCESS_NODE: str = "field_access"
IDENTIFIER_NODE: str = "identifier"

# File header nodes
PACKAGE_NODE: str = "package_declaration"
IMPORT_NODE: str = "import_declaration"
QUALIFIED_NAME_NODES: Set[str] = {"identifier", "scoped_identifier"}

# Type name nodes
GENERIC_TYPE_NODE: str = "generic_type"
SCOPED_TYPE_NODE: str = "scoped_type_identifier"

# Comment nodes are named children but never call arguments
COMMENT_NODES: Set[str] = {"line_comment", "block_comment", "comment"}

# Java file extensions (used by the discovery collaborator only)
JAVA_EXTENSIONS: Set[str] = {".java"}

# Directories the discovery collaborator never descends into
EXCLUDED_DIRECTORIES: Set[str] = {
    "build",
    "target",
    "out",
    "bin",
    "node_modules",
    "venv",
    "__pycache__",
    "dist",
}

# ---------------------------------------------------------------------------
# Default pipeline vocabularies (Apache Spark operation names).
# csv/json/parquet/orc/jdbc appear in both sources and sinks on purpose.
# ---------------------------------------------------------------------------
DEFAULT_SOURCE_OPERATIONS: FrozenSet[str] = frozenset({
    "read", "readStream", "readText", "csv", "json", "parquet", "orc", "jdbc",
})

DEFAULT_TRANSFORMATION_OPERATIONS: FrozenSet[str] = frozenset({
    "select", "filter", "where", "groupBy", "agg", "join", "withColumn", "map",
    "flatMap", "reduce", "transform", "sort", "orderBy", "limit", "dropDuplicates",
    "union", "intersect", "subtract", "cache", "persist", "unpersist", "repartition",
    "coalesce", "sample", "rdd", "toDF", "createOrReplaceTempView", "window",
})

DEFAULT_SINK_OPERATIONS: FrozenSet[str] = frozenset({
    "write", "writeStream", "save", "saveAsTable", "insertInto", "csv", "json", "parquet",
    "orc", "jdbc", "text", "format", "mode", "option", "options", "partitionBy", "bucketBy",
})

# Batch runner defaults
DEFAULT_MAX_WORKERS: int = min(8, (os.cpu_count() or 1) + 4)

# Extraction policy defaults
DEFAULT_ALLOW_SYNTAX_ERRORS: bool = False
