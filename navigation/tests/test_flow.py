"""Tests for flow-edge resolution."""

import unittest

from extraction.extractor import process_source
from extraction.models import FileExtraction, PipelineStage, SourceFile, StageTag
from navigation.flow import flow_edge_to_dict, flow_graph, resolve_flow_edges

PIPELINE = b"""
class Job {
    void run(SparkSession spark) {
        Dataset<Row> df = spark.read().csv("in.csv");
        df.filter(col("age").gt(20));
        df.write().parquet("out");
    }
}
"""


def _extract(source: bytes) -> FileExtraction:
    result = process_source("/repo/Job.java", source)
    assert isinstance(result, FileExtraction), result
    return result


def _pairs(edges):
    return [
        (e.upstream.tag, e.upstream.operation, e.downstream.tag, e.downstream.operation)
        for e in edges
    ]


def _stage(tag, operation, binding, ordinal):
    return PipelineStage(
        tag=tag, operation=operation, binding_identifier=binding, line=ordinal + 1, ordinal=ordinal
    )


class TestResolveFlowEdges(unittest.TestCase):
    def test_read_filter_write_yields_two_edges(self):
        edges = resolve_flow_edges(_extract(PIPELINE))

        self.assertEqual(
            _pairs(edges),
            [
                (StageTag.SOURCE, "csv", StageTag.TRANSFORMATION, "filter"),
                (StageTag.TRANSFORMATION, "filter", StageTag.SINK, "write"),
            ],
        )
        self.assertTrue(all(e.binding_identifier == "df" for e in edges))

    def test_chained_sink_has_no_outgoing_edges(self):
        edges = resolve_flow_edges(_extract(PIPELINE))
        parquet = [e for e in edges if "parquet" in (e.upstream.operation, e.downstream.operation)]
        self.assertEqual(parquet, [])

    def test_transformations_link_both_ways_without_self_pairs(self):
        extraction = FileExtraction(
            source_file=SourceFile(path="/repo/T.java"),
            stages=(
                _stage(StageTag.TRANSFORMATION, "select", "df", 0),
                _stage(StageTag.TRANSFORMATION, "limit", "df", 1),
            ),
        )
        self.assertEqual(
            _pairs(resolve_flow_edges(extraction)),
            [
                (StageTag.TRANSFORMATION, "select", StageTag.TRANSFORMATION, "limit"),
                (StageTag.TRANSFORMATION, "limit", StageTag.TRANSFORMATION, "select"),
            ],
        )

    def test_source_and_sink_are_not_linked_directly(self):
        extraction = FileExtraction(
            source_file=SourceFile(path="/repo/T.java"),
            stages=(
                _stage(StageTag.SOURCE, "csv", "df", 0),
                _stage(StageTag.SINK, "save", "df", 1),
            ),
        )
        self.assertEqual(resolve_flow_edges(extraction), [])

    def test_same_name_variables_are_linked(self):
        source = b"""
        class Job {
            void a() { df.select(x); }
            void b() { df.limit(1); }
        }
        """
        self.assertEqual(len(resolve_flow_edges(_extract(source))), 2)

    def test_aliases_are_not_followed(self):
        source = b"""
        class Job {
            void a() {
                Dataset<Row> df = spark.read().csv("in");
                Dataset<Row> other = df;
                other.select(x);
            }
        }
        """
        edges = resolve_flow_edges(_extract(source))
        self.assertEqual([e for e in edges if e.upstream.operation == "csv"], [])

    def test_unbound_stages_never_link(self):
        source = b"class Job { void a() { select(x); limit(1); } }"
        self.assertEqual(resolve_flow_edges(_extract(source)), [])


class TestFlowSerialization(unittest.TestCase):
    def test_edge_dict_shape(self):
        extraction = _extract(PIPELINE)
        edge = resolve_flow_edges(extraction)[0]
        payload = flow_edge_to_dict(extraction.path, edge)

        self.assertEqual(payload["bindingIdentifier"], "df")
        self.assertEqual(set(payload["upstream"]), {"tag", "operation", "line", "id"})
        self.assertEqual(payload["upstream"]["tag"], "source")
        self.assertTrue(payload["upstream"]["id"].startswith("/repo/Job.java::Stage::source::#"))
        self.assertNotEqual(payload["upstream"]["id"], payload["downstream"]["id"])

    def test_flow_graph_contains_every_stage(self):
        extraction = _extract(PIPELINE)
        graph = flow_graph(extraction)

        self.assertEqual(graph["file"], "/repo/Job.java")
        self.assertEqual(len(graph["nodes"]), len(extraction.stages))
        self.assertEqual(len(graph["edges"]), 2)
        node_ids = {n["id"] for n in graph["nodes"]}
        for edge in graph["edges"]:
            self.assertIn(edge["upstream"]["id"], node_ids)
            self.assertIn(edge["downstream"]["id"], node_ids)


if __name__ == "__main__":
    unittest.main()
