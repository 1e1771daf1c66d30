"""
Flow-edge resolution (scope linking) for one file's pipeline stages.

Stages are joined on their binding identifier by plain string equality. This
is not dataflow analysis: two unrelated variables sharing a name in the same
file are linked, and an alias (``Dataset b = a;``) breaks the chain.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List

from core.uri_contract import create_stage_uri
from extraction.models import FileExtraction, FlowEdge, PipelineStage, StageTag

logger = logging.getLogger(__name__)

# (upstream tag, downstream tag) pairs that form an edge
FLOW_DIRECTIONS = frozenset(
    {
        (StageTag.SOURCE, StageTag.TRANSFORMATION),
        (StageTag.TRANSFORMATION, StageTag.TRANSFORMATION),
        (StageTag.TRANSFORMATION, StageTag.SINK),
    }
)


def group_by_binding(stages: List[PipelineStage]) -> Dict[str, List[PipelineStage]]:
    """Group linkable stages by binding identifier, keeping emission order."""
    groups: Dict[str, List[PipelineStage]] = defaultdict(list)
    for stage in stages:
        if stage.binding_identifier is not None:
            groups[stage.binding_identifier].append(stage)
    return dict(groups)


def resolve_flow_edges(extraction: FileExtraction) -> List[FlowEdge]:
    """Materialize flow edges for one file.

    An edge is produced for every ordered pair of distinct stages sharing a
    binding identifier whose tags form one of ``FLOW_DIRECTIONS``. Stages
    with no binding identifier never take part in an edge.

    Args:
        extraction: Successful extraction of one file.

    Returns:
        Edges ordered by (upstream ordinal, downstream ordinal).

    Example:
        >>> # df = spark.read().csv(p); df.filter(c); df.write().parquet(o);
        >>> [(e.upstream.operation, e.downstream.operation)
        ...  for e in resolve_flow_edges(extraction)]
        [('csv', 'filter'), ('filter', 'write')]
    """
    edges: List[FlowEdge] = []
    for binding, group in group_by_binding(list(extraction.stages)).items():
        for upstream in group:
            for downstream in group:
                if upstream.ordinal == downstream.ordinal:
                    continue
                if (upstream.tag, downstream.tag) not in FLOW_DIRECTIONS:
                    continue
                edges.append(
                    FlowEdge(
                        upstream=upstream,
                        downstream=downstream,
                        binding_identifier=binding,
                    )
                )

    edges.sort(key=lambda e: (e.upstream.ordinal, e.downstream.ordinal))
    logger.debug("Resolved %d flow edges in %s", len(edges), extraction.path)
    return edges


def stage_id(file_path: str, stage: PipelineStage) -> str:
    """Stable identifier of a stage within its file."""
    return create_stage_uri(file_path, stage.tag.value, stage.ordinal)


def _stage_ref(file_path: str, stage: PipelineStage) -> Dict[str, Any]:
    return {
        "tag": stage.tag.value,
        "operation": stage.operation,
        "line": stage.line,
        "id": stage_id(file_path, stage),
    }


def flow_edge_to_dict(file_path: str, edge: FlowEdge) -> Dict[str, Any]:
    """Wire shape of a flow edge for graph-rendering consumers."""
    return {
        "upstream": _stage_ref(file_path, edge.upstream),
        "downstream": _stage_ref(file_path, edge.downstream),
        "bindingIdentifier": edge.binding_identifier,
    }


def stage_to_node(file_path: str, stage: PipelineStage) -> Dict[str, Any]:
    """Graph node payload of one stage (stage wire fields plus tag and id)."""
    payload = stage.to_dict()
    payload["tag"] = stage.tag.value
    payload["id"] = stage_id(file_path, stage)
    return payload


def flow_graph(extraction: FileExtraction) -> Dict[str, Any]:
    """Nodes and edges of one file's pipeline, for rendering."""
    nodes = [stage_to_node(extraction.path, stage) for stage in extraction.stages]
    edges = [flow_edge_to_dict(extraction.path, e) for e in resolve_flow_edges(extraction)]
    return {"file": extraction.path, "nodes": nodes, "edges": edges}
