"""
Bounded, JSON-serializable answers for LLM tool calls.

Each tool takes a ``CodeModelIndex`` plus plain arguments and returns a dict
with a ``metadata`` entry describing the outcome. Results are truncated to a
fixed size so that a single answer never floods a model context window.
Entities are addressed by the URIs built in ``core.uri_contract``.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Literal, Optional

from core.uri_contract import (
    create_method_uri,
    create_type_uri,
    make_signature_hash,
    parse_entity_uri,
)
from extraction.models import Method, StageTag
from navigation.flow import flow_edge_to_dict, stage_to_node
from navigation.query import CodeModelIndex

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 100
DEFAULT_MAX_BODY_CHARS = 8000
DEFAULT_MAX_FILE_CHARS = 1024 * 1024

QueryStatus = Literal["ok", "missing_file", "missing_entity", "empty_result", "truncated"]


@dataclass
class QueryMetadata:
    """Typed metadata describing a tool answer's outcome."""

    status: QueryStatus = "ok"
    reason: str = ""
    total_count: int = 0
    returned_count: int = 0


def _answer(metadata: QueryMetadata, **payload: Any) -> Dict[str, Any]:
    payload["metadata"] = asdict(metadata)
    return payload


def _bounded(items: List[Any], max_items: int, metadata: QueryMetadata) -> List[Any]:
    metadata.total_count = len(items)
    if not items:
        metadata.status = "empty_result"
        metadata.reason = "no_matches"
    elif len(items) > max_items:
        metadata.status = "truncated"
        metadata.reason = f"showing first {max_items} of {len(items)}"
        items = items[:max_items]
    metadata.returned_count = len(items)
    return items


def _method_uri(file_path: str, type_name: str, method: Method) -> str:
    return create_method_uri(
        file_path, type_name, method.name, [p.type for p in method.parameters]
    )


def _method_summary(file_path: str, type_name: str, method: Method) -> Dict[str, Any]:
    return {
        "id": _method_uri(file_path, type_name, method),
        "name": method.name,
        "returnType": method.return_type,
        "isPublic": method.is_public,
        "isStatic": method.is_static,
        "parameters": [p.to_dict() for p in method.parameters],
    }


def list_files(index: CodeModelIndex, max_items: int = DEFAULT_MAX_ITEMS) -> Dict[str, Any]:
    """All files in the batch with their package, failed files flagged."""
    metadata = QueryMetadata()
    entries = []
    for path in index.file_paths:
        extraction = index.get_file(path)
        entry: Dict[str, Any] = {"path": path}
        if extraction is None:
            entry["error"] = index.get_error(path).reason
        else:
            entry["package"] = extraction.source_file.package
        entries.append(entry)
    return _answer(metadata, files=_bounded(entries, max_items, metadata))


def file_outline(
    index: CodeModelIndex, file_path: str, max_items: int = DEFAULT_MAX_ITEMS
) -> Dict[str, Any]:
    """Classes, methods and fields of one file, without method bodies."""
    metadata = QueryMetadata()
    extraction = index.get_file(file_path)
    if extraction is None:
        metadata.status = "missing_file"
        error = index.get_error(file_path)
        metadata.reason = error.reason if error else "file_not_indexed"
        return _answer(metadata, file=file_path, classes=[])

    classes = [
        {
            "id": create_type_uri(file_path, t.is_interface, t.name, type_index),
            "name": t.name,
            "isInterface": t.is_interface,
            "extends": list(t.extends),
            "implements": list(t.implements),
            "methods": [_method_summary(file_path, t.name, m) for m in t.methods],
            "fields": [f.to_dict() for f in t.fields],
        }
        for type_index, t in enumerate(extraction.types)
    ]
    return _answer(
        metadata,
        file=file_path,
        package=extraction.source_file.package,
        classes=_bounded(classes, max_items, metadata),
    )


def method_code(
    index: CodeModelIndex, method_id: str, max_body_chars: int = DEFAULT_MAX_BODY_CHARS
) -> Dict[str, Any]:
    """Signature and body of one method addressed by its URI.

    Raises:
        ValueError: If ``method_id`` is not a method URI.
    """
    parsed = parse_entity_uri(method_id)
    if parsed["entity_type"] != "Method" or "." not in parsed["entity_name"]:
        raise ValueError(f"Not a method URI: {method_id}")

    metadata = QueryMetadata()
    file_path = parsed["file_path"]
    if index.get_file(file_path) is None:
        metadata.status = "missing_file"
        metadata.reason = "file_not_indexed"
        return _answer(metadata, id=method_id)

    type_name, method_name = parsed["entity_name"].rsplit(".", 1)
    signature = parsed.get("discriminator")
    for method in index.get_method(file_path, type_name, method_name):
        if signature and make_signature_hash([p.type for p in method.parameters]) != signature:
            continue
        body = method.body
        metadata.total_count = metadata.returned_count = 1
        if body is not None and len(body) > max_body_chars:
            metadata.status = "truncated"
            metadata.reason = f"body truncated to {max_body_chars} characters"
            body = body[:max_body_chars]
        return _answer(
            metadata,
            id=method_id,
            filePath=file_path,
            className=type_name,
            methodName=method.name,
            returnType=method.return_type,
            parameters=[p.to_dict() for p in method.parameters],
            isPublic=method.is_public,
            isStatic=method.is_static,
            body=body,
            methodCalls=[c.name for c in method.method_calls],
        )

    metadata.status = "missing_entity"
    metadata.reason = "method_not_found"
    return _answer(metadata, id=method_id)


def search_code(
    index: CodeModelIndex, query: str, max_items: int = DEFAULT_MAX_ITEMS
) -> Dict[str, Any]:
    """Case-insensitive substring search over methods, types and file paths.

    ``max_items`` bounds each of the three result lists separately.
    """
    metadata = QueryMetadata()
    if not query or not query.strip():
        metadata.status = "empty_result"
        metadata.reason = "empty_query"
        return _answer(metadata, query=query, methods=[], classes=[], files=[])

    # Fetch one extra hit per list so truncation can be reported
    methods = [
        dict(
            _method_summary(m.file_path, m.type_name, m.method),
            className=m.type_name,
            filePath=m.file_path,
            matchedIn=m.matched_in,
        )
        for m in index.search_methods(query, limit=max_items + 1)
    ]
    classes = [
        {
            "id": create_type_uri(
                t.file_path, t.type_decl.is_interface, t.type_decl.name, t.type_index
            ),
            "name": t.type_decl.name,
            "filePath": t.file_path,
        }
        for t in index.search_types(query, limit=max_items + 1)
    ]
    files = index.search_files(query, limit=max_items + 1)

    total = len(methods) + len(classes) + len(files)
    metadata.total_count = total
    truncated = any(len(items) > max_items for items in (methods, classes, files))
    methods, classes, files = methods[:max_items], classes[:max_items], files[:max_items]
    metadata.returned_count = len(methods) + len(classes) + len(files)
    if total == 0:
        metadata.status = "empty_result"
        metadata.reason = f'No results found for query: "{query}"'
    elif truncated:
        metadata.status = "truncated"
        metadata.reason = f"each list limited to {max_items} items"

    return _answer(metadata, query=query, methods=methods, classes=classes, files=files)


def flow_summary(
    index: CodeModelIndex, file_path: str, max_items: int = DEFAULT_MAX_ITEMS
) -> Dict[str, Any]:
    """Sources, transformations, sinks and flow edges of one file."""
    metadata = QueryMetadata()
    extraction = index.get_file(file_path)
    if extraction is None:
        metadata.status = "missing_file"
        error = index.get_error(file_path)
        metadata.reason = error.reason if error else "file_not_indexed"
        return _answer(metadata, file=file_path, hasPipeline=False)

    if not extraction.stages:
        metadata.status = "empty_result"
        metadata.reason = "No pipeline elements found in this file"
        return _answer(metadata, file=file_path, hasPipeline=False)

    stages = {
        tag.wire_key: [stage_to_node(file_path, s) for s in extraction.stages_for(tag)]
        for tag in StageTag
    }
    edges = _bounded(
        [flow_edge_to_dict(file_path, e) for e in index.flow_edges(file_path)],
        max_items,
        metadata,
    )
    if metadata.status == "empty_result":
        # Stages without linkable bindings are still a pipeline
        metadata.status = "ok"
        metadata.reason = "no_flow_edges"
    return _answer(metadata, file=file_path, hasPipeline=True, edges=edges, **stages)


def read_file_content(
    index: CodeModelIndex, file_path: str, max_chars: int = DEFAULT_MAX_FILE_CHARS
) -> Dict[str, Any]:
    """Raw text of an indexed file.

    Only paths present in the batch can be read, so a tool call cannot reach
    arbitrary files on disk.
    """
    metadata = QueryMetadata()
    if index.get_result(file_path) is None:
        metadata.status = "missing_file"
        metadata.reason = "file_not_indexed"
        return _answer(metadata, file=file_path)

    try:
        with open(file_path, "r", encoding="utf-8", errors="replace") as f:
            content = f.read()
    except OSError as e:
        logger.warning("Cannot read indexed file %s: %s", file_path, e)
        metadata.status = "missing_file"
        metadata.reason = f"Cannot read file: {e}"
        return _answer(metadata, file=file_path)

    metadata.total_count = metadata.returned_count = 1
    if len(content) > max_chars:
        metadata.status = "truncated"
        metadata.reason = f"content truncated to {max_chars} characters"
        content = content[:max_chars]
    return _answer(metadata, file=file_path, content=content)


ToolFunc = Callable[..., Dict[str, Any]]

TOOLS: Dict[str, ToolFunc] = {
    "list_files": list_files,
    "file_outline": file_outline,
    "method_code": method_code,
    "search_code": search_code,
    "flow_summary": flow_summary,
    "read_file_content": read_file_content,
}

TOOL_ARGUMENTS: Dict[str, List[str]] = {
    "list_files": [],
    "file_outline": ["file_path"],
    "method_code": ["method_id"],
    "search_code": ["query"],
    "flow_summary": ["file_path"],
    "read_file_content": ["file_path"],
}


def call_tool(
    index: CodeModelIndex, name: str, arguments: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Dispatch a tool call by name with keyword arguments.

    Raises:
        KeyError: If the tool name is unknown.
        ValueError: If a required argument is missing or an unexpected one is given.
    """
    if name not in TOOLS:
        raise KeyError(f"Unknown tool '{name}'. Available tools: {', '.join(sorted(TOOLS))}")

    arguments = dict(arguments or {})
    expected = TOOL_ARGUMENTS[name]
    missing = [arg for arg in expected if arg not in arguments]
    unexpected = sorted(set(arguments) - set(expected))
    if missing or unexpected:
        raise ValueError(
            f"Tool '{name}' expects arguments {expected}; "
            f"missing={missing} unexpected={unexpected}"
        )

    logger.debug("Tool call %s(%s)", name, arguments)
    return TOOLS[name](index, **arguments)
