"""
Persistence: Neo4j graph store for per-file extraction results.
"""

from graphstore.config import Neo4jSettings, resolve_neo4j_settings
from graphstore.neo4j_loader import (
    IngestionStats,
    build_file_payload,
    delete_file_graph,
    get_neo4j_driver,
    ingest_file_result,
    ingest_results,
    init_graph_schema,
)

__all__ = [
    "Neo4jSettings",
    "resolve_neo4j_settings",
    "IngestionStats",
    "build_file_payload",
    "delete_file_graph",
    "get_neo4j_driver",
    "ingest_file_result",
    "ingest_results",
    "init_graph_schema",
]
