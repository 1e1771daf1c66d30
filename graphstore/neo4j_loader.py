"""
Neo4j graph store for extracted Java code models.

Persists one file result at a time, so callers can write results as the batch
runner yields them. Graph layout::

    (:File)-[:DECLARES]->(:Type)-[:HAS_METHOD]->(:Method)-[:CALLS_NAME]->(:Call)
    (:Method)-[:DECLARES_VARIABLE]->(:Variable)
    (:Type)-[:HAS_FIELD]->(:Field)
    (:File)-[:HAS_STAGE]->(:Stage)-[:FLOWS_TO]->(:Stage)

Every node below a File carries the ``CodeEntity`` label and the owning
``file_path``. Writing a file first deletes its previous subtree, so a
re-indexed file never keeps stale children. Failed files are stored as a
``File`` node with an ``error`` property and no children.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from neo4j import Driver, GraphDatabase, ManagedTransaction
from neo4j.exceptions import (
    DriverError,
    Neo4jError,
    ServiceUnavailable,
    SessionExpired,
    TransientError,
)
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.uri_contract import create_method_uri, create_type_uri
from extraction.models import FileExtraction, FileExtractionError, FileResult
from graphstore.config import (
    NEO4J_CONNECTION_RETRIES,
    NEO4J_RETRY_MAX_WAIT,
    NEO4J_RETRY_MIN_WAIT,
    NEO4J_WRITE_RETRIES,
    Neo4jSettings,
    resolve_neo4j_settings,
)
from navigation.flow import resolve_flow_edges, stage_id

logger = logging.getLogger(__name__)

_RETRYABLE_EXCEPTIONS = (ServiceUnavailable, SessionExpired, TransientError)


@dataclass
class IngestionStats:
    """Statistics for graph ingestion."""

    files_written: int = 0
    error_files_written: int = 0
    nodes_written: int = 0
    relationships_written: int = 0
    write_errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_written": self.files_written,
            "error_files_written": self.error_files_written,
            "nodes_written": self.nodes_written,
            "relationships_written": self.relationships_written,
            "write_errors": self.write_errors,
        }

    def __str__(self) -> str:
        return (
            f"GraphIngestionStats(files={self.files_written}, "
            f"error_files={self.error_files_written}, nodes={self.nodes_written}, "
            f"relationships={self.relationships_written}, errors={self.write_errors})"
        )


# ---------------------------------------------------------------------------
# Connection and schema
# ---------------------------------------------------------------------------


@retry(
    retry=retry_if_exception_type(_RETRYABLE_EXCEPTIONS),
    wait=wait_exponential(multiplier=1, min=NEO4J_RETRY_MIN_WAIT, max=NEO4J_RETRY_MAX_WAIT),
    stop=stop_after_attempt(NEO4J_CONNECTION_RETRIES),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def _connect(settings: Neo4jSettings) -> Driver:
    driver = GraphDatabase.driver(settings.uri, auth=(settings.username, settings.password))
    try:
        driver.verify_connectivity()
    except Exception:
        driver.close()
        raise
    return driver


def get_neo4j_driver(settings: Optional[Neo4jSettings] = None) -> Driver:
    """Connect to Neo4j, retrying while the server is unavailable.

    Args:
        settings: Connection settings; resolved from env/docker-compose when None.

    Returns:
        Connected Neo4j Driver instance.

    Raises:
        ConnectionError: If unable to connect after retries.

    Example:
        >>> driver = get_neo4j_driver()
        >>> init_graph_schema(driver)
    """
    settings = settings or resolve_neo4j_settings()
    logger.info("Connecting to Neo4j at %s...", settings.uri)
    try:
        driver = _connect(settings)
    except (DriverError, Neo4jError, OSError) as exc:
        raise ConnectionError(
            f"Failed to connect to Neo4j at {settings.uri} "
            f"after {NEO4J_CONNECTION_RETRIES} attempts"
        ) from exc
    logger.info("Connected to Neo4j at %s", settings.uri)
    return driver


def init_graph_schema(driver: Driver, database: Optional[str] = None) -> None:
    """Create the File path constraint and lookup indexes (idempotent)."""
    with driver.session(database=database) as session:
        logger.info("Initializing Neo4j schema...")
        session.run(
            """
            CREATE CONSTRAINT file_path IF NOT EXISTS
            FOR (f:File) REQUIRE f.path IS UNIQUE
            """
        )

        indexes = [
            ("code_entity_file_idx", "CodeEntity", "file_path"),
            ("type_name_idx", "Type", "name"),
            ("method_name_idx", "Method", "name"),
            ("stage_uri_idx", "Stage", "uri"),
            ("stage_binding_idx", "Stage", "binding_identifier"),
        ]
        for idx_name, label, field_name in indexes:
            session.run(
                f"""
                CREATE INDEX {idx_name} IF NOT EXISTS
                FOR (n:{label}) ON (n.{field_name})
                """
            )
            logger.debug("Created index: %s", idx_name)
        logger.info("Neo4j schema initialized")


# ---------------------------------------------------------------------------
# Payload construction (pure)
# ---------------------------------------------------------------------------


def build_file_payload(result: FileResult) -> dict[str, Any]:
    """Flatten one file result into Cypher parameters.

    Types are addressed by their index within the file so that nested types
    sharing a simple name stay distinct.
    """
    if isinstance(result, FileExtractionError):
        return {
            "path": result.path,
            "package": None,
            "imports": [],
            "error": result.reason,
            "types": [],
            "methods": [],
            "stages": [],
            "edges": [],
        }

    path = result.path
    types = []
    methods = []
    for type_index, type_decl in enumerate(result.types):
        types.append(
            {
                "type_index": type_index,
                "uri": create_type_uri(path, type_decl.is_interface, type_decl.name, type_index),
                "name": type_decl.name,
                "kind": type_decl.kind.value,
                "extends": list(type_decl.extends),
                "implements": list(type_decl.implements),
                "fields": [
                    {
                        "name": f.name,
                        "type": f.type,
                        "is_public": f.is_public,
                        "is_static": f.is_static,
                        "initial_value": f.initial_value,
                    }
                    for f in type_decl.fields
                ],
            }
        )
        for method in type_decl.methods:
            parameter_types = [p.type for p in method.parameters]
            methods.append(
                {
                    "type_index": type_index,
                    "uri": create_method_uri(path, type_decl.name, method.name, parameter_types),
                    "name": method.name,
                    "return_type": method.return_type,
                    "is_public": method.is_public,
                    "is_static": method.is_static,
                    "parameter_names": [p.name for p in method.parameters],
                    "parameter_types": parameter_types,
                    "body": method.body,
                    "calls": [
                        {"name": call.name, "position": i}
                        for i, call in enumerate(method.method_calls)
                    ],
                    "variables": [
                        {"name": v.name, "type": v.type, "initial_value": v.initial_value}
                        for v in method.variables
                    ],
                }
            )

    stages = [
        {
            "uri": stage_id(path, stage),
            "tag": stage.tag.value,
            "operation": stage.operation,
            "arguments": list(stage.arguments),
            "binding_identifier": stage.binding_identifier,
            "line": stage.line,
            "ordinal": stage.ordinal,
        }
        for stage in result.stages
    ]
    edges = [
        {
            "upstream": stage_id(path, edge.upstream),
            "downstream": stage_id(path, edge.downstream),
            "binding_identifier": edge.binding_identifier,
        }
        for edge in resolve_flow_edges(result)
    ]

    return {
        "path": path,
        "package": result.source_file.package,
        "imports": list(result.source_file.imports),
        "error": None,
        "types": types,
        "methods": methods,
        "stages": stages,
        "edges": edges,
    }


def payload_counts(payload: dict[str, Any]) -> tuple[int, int]:
    """(nodes, relationships) that writing ``payload`` creates."""
    fields = sum(len(t["fields"]) for t in payload["types"])
    calls = sum(len(m["calls"]) for m in payload["methods"])
    variables = sum(len(m["variables"]) for m in payload["methods"])
    children = (
        len(payload["types"])
        + fields
        + len(payload["methods"])
        + calls
        + variables
        + len(payload["stages"])
    )
    # Every child hangs off exactly one parent; edges add FLOWS_TO
    return 1 + children, children + len(payload["edges"])


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

_DELETE_FILE_QUERY = """
MATCH (n:CodeEntity {file_path: $path})
DETACH DELETE n
"""

_MERGE_FILE_QUERY = """
MERGE (f:File {path: $path})
SET f.package = $package,
    f.imports = $imports,
    f.error = $error
"""

_CREATE_TYPES_QUERY = """
MATCH (f:File {path: $path})
UNWIND $types AS t
CREATE (f)-[:DECLARES]->(ty:CodeEntity:Type {
    file_path: $path,
    type_index: t.type_index,
    uri: t.uri,
    name: t.name,
    kind: t.kind,
    extends: t.extends,
    implements: t.implements
})
FOREACH (fd IN t.fields |
    CREATE (ty)-[:HAS_FIELD]->(:CodeEntity:Field {
        file_path: $path,
        name: fd.name,
        type: fd.type,
        is_public: fd.is_public,
        is_static: fd.is_static,
        initial_value: fd.initial_value
    })
)
"""

_CREATE_METHODS_QUERY = """
UNWIND $methods AS m
MATCH (ty:Type {file_path: $path, type_index: m.type_index})
CREATE (ty)-[:HAS_METHOD]->(me:CodeEntity:Method {
    file_path: $path,
    uri: m.uri,
    name: m.name,
    return_type: m.return_type,
    is_public: m.is_public,
    is_static: m.is_static,
    parameter_names: m.parameter_names,
    parameter_types: m.parameter_types,
    body: m.body
})
FOREACH (c IN m.calls |
    CREATE (me)-[:CALLS_NAME]->(:CodeEntity:Call {
        file_path: $path, name: c.name, position: c.position
    })
)
FOREACH (v IN m.variables |
    CREATE (me)-[:DECLARES_VARIABLE]->(:CodeEntity:Variable {
        file_path: $path, name: v.name, type: v.type, initial_value: v.initial_value
    })
)
"""

_CREATE_STAGES_QUERY = """
MATCH (f:File {path: $path})
UNWIND $stages AS s
CREATE (f)-[:HAS_STAGE]->(:CodeEntity:Stage {
    file_path: $path,
    uri: s.uri,
    tag: s.tag,
    operation: s.operation,
    arguments: s.arguments,
    binding_identifier: s.binding_identifier,
    line: s.line,
    ordinal: s.ordinal
})
"""

_CREATE_FLOWS_QUERY = """
UNWIND $edges AS e
MATCH (up:Stage {file_path: $path, uri: e.upstream})
MATCH (down:Stage {file_path: $path, uri: e.downstream})
CREATE (up)-[:FLOWS_TO {binding_identifier: e.binding_identifier}]->(down)
"""


def _write_file_tx(tx: ManagedTransaction, payload: dict[str, Any]) -> None:
    path = payload["path"]
    tx.run(_DELETE_FILE_QUERY, path=path)
    tx.run(
        _MERGE_FILE_QUERY,
        path=path,
        package=payload["package"],
        imports=payload["imports"],
        error=payload["error"],
    )
    if payload["types"]:
        tx.run(_CREATE_TYPES_QUERY, path=path, types=payload["types"])
    if payload["methods"]:
        tx.run(_CREATE_METHODS_QUERY, path=path, methods=payload["methods"])
    if payload["stages"]:
        tx.run(_CREATE_STAGES_QUERY, path=path, stages=payload["stages"])
    if payload["edges"]:
        tx.run(_CREATE_FLOWS_QUERY, path=path, edges=payload["edges"])


def _delete_file_tx(tx: ManagedTransaction, path: str) -> None:
    tx.run(_DELETE_FILE_QUERY, path=path)
    tx.run("MATCH (f:File {path: $path}) DETACH DELETE f", path=path)


@retry(
    retry=retry_if_exception_type(_RETRYABLE_EXCEPTIONS),
    wait=wait_exponential(multiplier=1, min=NEO4J_RETRY_MIN_WAIT, max=NEO4J_RETRY_MAX_WAIT),
    stop=stop_after_attempt(NEO4J_WRITE_RETRIES),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def delete_file_graph(driver: Driver, file_path: str, database: Optional[str] = None) -> None:
    """Remove a file and everything it owns from the graph."""
    with driver.session(database=database) as session:
        session.execute_write(_delete_file_tx, file_path)
    logger.debug("Deleted graph for %s", file_path)


@retry(
    retry=retry_if_exception_type(_RETRYABLE_EXCEPTIONS),
    wait=wait_exponential(multiplier=1, min=NEO4J_RETRY_MIN_WAIT, max=NEO4J_RETRY_MAX_WAIT),
    stop=stop_after_attempt(NEO4J_WRITE_RETRIES),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def _write_payload(driver: Driver, payload: dict[str, Any], database: Optional[str]) -> None:
    with driver.session(database=database) as session:
        session.execute_write(_write_file_tx, payload)


def ingest_file_result(
    driver: Driver,
    result: FileResult,
    stats: Optional[IngestionStats] = None,
    database: Optional[str] = None,
) -> IngestionStats:
    """Replace one file's subgraph with ``result`` in a single transaction.

    Transient server errors are retried; anything else propagates.

    Args:
        driver: Connected Neo4j driver.
        result: One file result from the batch runner.
        stats: Accumulator to update; a fresh one is created when None.
        database: Target database (server default when None).

    Returns:
        The updated stats.
    """
    stats = stats if stats is not None else IngestionStats()
    payload = build_file_payload(result)
    _write_payload(driver, payload, database)

    nodes, relationships = payload_counts(payload)
    stats.nodes_written += nodes
    stats.relationships_written += relationships
    if isinstance(result, FileExtraction):
        stats.files_written += 1
    else:
        stats.error_files_written += 1
    logger.debug(
        "Wrote %s to graph (%d nodes, %d relationships)", result.path, nodes, relationships
    )
    return stats


def ingest_results(
    driver: Driver,
    results: Iterable[FileResult],
    database: Optional[str] = None,
) -> IngestionStats:
    """Write many file results; a failed write is counted and does not stop the rest."""
    stats = IngestionStats()
    for result in results:
        try:
            ingest_file_result(driver, result, stats=stats, database=database)
        except (DriverError, Neo4jError) as exc:
            stats.write_errors += 1
            logger.error("Failed to write %s to graph: %s", result.path, exc)
    logger.info("Graph ingestion complete: %s", stats)
    return stats
