"""
Layer 2: Navigation

Read-only queries, flow-edge resolution and LLM tool answers over the
results of one extraction batch.
"""

from navigation.flow import (
    FLOW_DIRECTIONS,
    flow_edge_to_dict,
    flow_graph,
    resolve_flow_edges,
    stage_id,
)
from navigation.query import CodeModelIndex, MethodMatch, TypeMatch
from navigation.tools import QueryMetadata, TOOLS, call_tool

__all__ = [
    "FLOW_DIRECTIONS",
    "flow_edge_to_dict",
    "flow_graph",
    "resolve_flow_edges",
    "stage_id",
    "CodeModelIndex",
    "MethodMatch",
    "TypeMatch",
    "QueryMetadata",
    "TOOLS",
    "call_tool",
]
