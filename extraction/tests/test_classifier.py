"""
Unit tests for classifier.py

Tests vocabulary matching, multi-tagging, argument capture and binding
identifier resolution.
"""

import os
import tempfile
import unittest

from core.startup_config import ConfigValidationError
from extraction.classifier import (
    DEFAULT_VOCABULARY,
    PipelineClassifier,
    PipelineVocabulary,
    load_vocabulary,
)
from extraction.models import StageTag
from extraction.parser import parse_bytes


def _classify(body: str, vocabulary: PipelineVocabulary = DEFAULT_VOCABULARY):
    source = f"class Job {{\n void run() {{\n{body}\n }}\n}}\n".encode("utf-8")
    return PipelineClassifier(vocabulary).classify(parse_bytes(source))


def _summary(stages):
    return [(s.tag, s.operation, s.binding_identifier) for s in stages]


class TestClassification(unittest.TestCase):
    def test_filter_with_nested_call_argument(self):
        stages = _classify('df.filter(col("age").gt(20));')

        self.assertEqual(len(stages), 1)
        stage = stages[0]
        self.assertEqual(stage.tag, StageTag.TRANSFORMATION)
        self.assertEqual(stage.operation, "filter")
        self.assertEqual(stage.binding_identifier, "df")
        self.assertEqual(stage.arguments, ('col("age").gt(20)',))

    def test_source_and_sink_name_is_tagged_twice(self):
        stages = _classify('reader.csv("in.csv");')

        self.assertEqual(
            _summary(stages),
            [
                (StageTag.SOURCE, "csv", "reader"),
                (StageTag.SINK, "csv", "reader"),
            ],
        )

    def test_chained_receiver_has_no_binding(self):
        stages = _classify('df.write().parquet("out");')

        self.assertEqual(
            _summary(stages),
            [
                (StageTag.SOURCE, "parquet", None),
                (StageTag.SINK, "parquet", None),
                (StageTag.SINK, "write", "df"),
            ],
        )

    def test_source_binds_to_declared_variable(self):
        stages = _classify('Dataset<Row> df = spark.read().csv("in.csv");')

        self.assertEqual(
            _summary(stages),
            [
                (StageTag.SOURCE, "csv", "df"),
                (StageTag.SINK, "csv", None),
                (StageTag.SOURCE, "read", "spark"),
            ],
        )

    def test_source_binds_to_assigned_variable(self):
        stages = _classify('df = spark.read().json(path);')
        self.assertEqual(stages[0].operation, "json")
        self.assertEqual(stages[0].tag, StageTag.SOURCE)
        self.assertEqual(stages[0].binding_identifier, "df")

    def test_transformation_result_binds_to_receiver_not_variable(self):
        stages = _classify("Dataset<Row> adults = people.filter(cond);")
        self.assertEqual(_summary(stages), [(StageTag.TRANSFORMATION, "filter", "people")])

    def test_unqualified_call_has_no_binding(self):
        stages = _classify("select(a, b);")
        self.assertEqual(_summary(stages), [(StageTag.TRANSFORMATION, "select", None)])
        self.assertEqual(stages[0].arguments, ("a", "b"))

    def test_matching_is_case_sensitive(self):
        self.assertEqual(_classify("df.Filter(x); df.filterRows(x);"), [])

    def test_calls_outside_methods_are_classified(self):
        source = b"""
        class Job {
            private Dataset<Row> cached = base.cache();
            static { other.persist(); }
        }
        """
        stages = PipelineClassifier().classify(parse_bytes(source))
        self.assertEqual(
            _summary(stages),
            [
                (StageTag.TRANSFORMATION, "cache", "base"),
                (StageTag.TRANSFORMATION, "persist", "other"),
            ],
        )

    def test_line_and_ordinal(self):
        stages = _classify("df.select(a);\n\ndf.limit(10);")
        self.assertEqual([s.ordinal for s in stages], [0, 1])
        self.assertEqual(stages[1].line - stages[0].line, 2)
        self.assertEqual(stages[0].line, 3)

    def test_no_arguments(self):
        stages = _classify("df.cache();")
        self.assertEqual(stages[0].arguments, ())


class TestVocabulary(unittest.TestCase):
    def test_injected_vocabulary_replaces_defaults(self):
        vocabulary = PipelineVocabulary(sources={"load"}, transformations=(), sinks=())
        stages = _classify("x.load(p); x.filter(c);", vocabulary)
        self.assertEqual(_summary(stages), [(StageTag.SOURCE, "load", "x")])

    def test_fields_are_frozensets(self):
        vocabulary = PipelineVocabulary(sources=["a"], transformations=("b",), sinks={"c"})
        self.assertIsInstance(vocabulary.sources, frozenset)
        self.assertIsInstance(vocabulary.transformations, frozenset)
        self.assertIsInstance(vocabulary.sinks, frozenset)

    def test_tags_for_overlapping_name(self):
        self.assertEqual(DEFAULT_VOCABULARY.tags_for("json"), [StageTag.SOURCE, StageTag.SINK])
        self.assertEqual(DEFAULT_VOCABULARY.tags_for("join"), [StageTag.TRANSFORMATION])
        self.assertEqual(DEFAULT_VOCABULARY.tags_for("println"), [])

    def test_from_mapping_keeps_default_sections(self):
        vocabulary = PipelineVocabulary.from_mapping({"sinks": ["export"]})
        self.assertEqual(vocabulary.sinks, frozenset({"export"}))
        self.assertEqual(vocabulary.sources, DEFAULT_VOCABULARY.sources)

    def test_from_mapping_rejects_unknown_section(self):
        with self.assertRaises(ValueError):
            PipelineVocabulary.from_mapping({"actions": ["collect"]})

    def test_from_mapping_rejects_non_list(self):
        with self.assertRaises(ValueError):
            PipelineVocabulary.from_mapping({"sources": "read"})

    def test_from_mapping_rejects_empty_names(self):
        with self.assertRaises(ValueError):
            PipelineVocabulary.from_mapping({"sources": ["read", ""]})


class TestLoadVocabulary(unittest.TestCase):
    def _write(self, content: str) -> str:
        handle = tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False)
        handle.write(content)
        handle.close()
        self.addCleanup(os.unlink, handle.name)
        return handle.name

    def test_load_from_yaml(self):
        path = self._write("sources: [scan]\ntransformations: [project]\nsinks: [emit]\n")
        vocabulary = load_vocabulary(path)
        self.assertEqual(vocabulary.sources, frozenset({"scan"}))
        self.assertEqual(vocabulary.transformations, frozenset({"project"}))
        self.assertEqual(vocabulary.sinks, frozenset({"emit"}))

    def test_missing_file_non_strict_uses_defaults(self):
        self.assertIs(load_vocabulary("/missing/vocab.yml"), DEFAULT_VOCABULARY)

    def test_invalid_vocabulary_strict_raises(self):
        path = self._write("sources: read\n")
        with self.assertRaises(ConfigValidationError):
            load_vocabulary(path, strict=True)
        self.assertIs(load_vocabulary(path, strict=False), DEFAULT_VOCABULARY)


if __name__ == "__main__":
    unittest.main()
