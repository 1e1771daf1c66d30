"""Tests for the wire shape of extraction results."""

import json

import pytest

from extraction.extractor import process_source
from extraction.models import (
    BatchResult,
    FileExtraction,
    FileExtractionError,
    Method,
    StageTag,
    TypeDeclaration,
    file_result_from_dict,
)
from navigation.flow import flow_graph

SOURCE = b"""
public class Job {
    int limit = 5;
    abstract void plan();
    public void run() {
        Dataset<Row> df = spark.read().json("in.json");
        df.select(name);
    }
}
"""


@pytest.fixture(scope="module")
def payload():
    result = process_source("/repo/Job.java", SOURCE)
    assert isinstance(result, FileExtraction)
    return result.to_dict()


def test_success_top_level_keys(payload) -> None:
    assert set(payload) == {"file", "package", "imports", "classes", "pipelineStages"}
    assert payload["file"] == "/repo/Job.java"
    assert payload["package"] is None
    assert payload["imports"] == []
    assert set(payload["pipelineStages"]) == {"sources", "transformations", "sinks"}


def test_type_and_method_shape(payload) -> None:
    job = payload["classes"][0]
    assert set(job) == {"name", "isInterface", "extends", "implements", "methods", "fields"}
    assert job["isInterface"] is False

    plan, run = job["methods"]
    assert "body" not in plan
    assert plan["methodCalls"] == []
    assert plan["variables"] == []
    assert set(run) == {
        "name", "returnType", "isPublic", "isStatic", "parameters", "body",
        "methodCalls", "variables",
    }
    assert run["variables"][0]["initialValue"] == 'spark.read().json("in.json")'


def test_field_shape(payload) -> None:
    field = payload["classes"][0]["fields"][0]
    assert field == {
        "name": "limit",
        "type": "int",
        "isPublic": False,
        "isStatic": False,
        "initialValue": "5",
    }


def test_stage_shape(payload) -> None:
    stages = payload["pipelineStages"]
    source = stages["sources"][0]
    assert set(source) == {"operation", "arguments", "bindingIdentifier", "line", "ordinal"}
    assert source["operation"] == "json"
    assert source["bindingIdentifier"] == "df"
    # The sink tag of the same json() call cannot be linked
    assert stages["sinks"][0]["bindingIdentifier"] is None
    assert stages["transformations"][0]["operation"] == "select"


def test_payload_is_json_serializable(payload) -> None:
    assert json.loads(json.dumps(payload)) == payload


def test_result_from_dict_restores_structure(payload) -> None:
    restored = file_result_from_dict(payload)
    original = process_source("/repo/Job.java", SOURCE)
    assert isinstance(restored, FileExtraction)
    assert restored.types == original.types
    assert restored.source_file == original.source_file
    assert sorted((s.tag, s.operation, s.line) for s in restored.stages) == sorted(
        (s.tag, s.operation, s.line) for s in original.stages
    )
    assert sorted(s.ordinal for s in restored.stages) == list(range(len(original.stages)))


def test_stage_ids_survive_wire_round_trip() -> None:
    original = process_source("/repo/Job.java", SOURCE)
    restored = file_result_from_dict(json.loads(json.dumps(original.to_dict())))
    assert restored.stages == original.stages
    assert flow_graph(restored) == flow_graph(original)


def test_payload_without_ordinals_gets_unique_ones() -> None:
    payload = process_source("/repo/Job.java", SOURCE).to_dict()
    for stages in payload["pipelineStages"].values():
        for stage in stages:
            del stage["ordinal"]
    restored = file_result_from_dict(payload)
    assert sorted(s.ordinal for s in restored.stages) == list(range(len(restored.stages)))


def test_error_shape_round_trip() -> None:
    error = FileExtractionError(path="/repo/Bad.java", reason="Parse error: x")
    assert error.to_dict() == {"file": "/repo/Bad.java", "error": "Parse error: x"}
    assert file_result_from_dict(error.to_dict()) == error


def test_type_name_must_be_non_empty() -> None:
    with pytest.raises(ValueError):
        TypeDeclaration(name="")


def test_method_without_body_omits_key() -> None:
    method = Method(name="m", return_type="void", is_public=False, is_static=False)
    assert "body" not in method.to_dict()


def test_batch_result_partitions() -> None:
    ok = process_source("/repo/Job.java", SOURCE)
    bad = FileExtractionError(path="/repo/Bad.java", reason="x")
    batch = BatchResult(results=(ok, bad))
    assert batch.extractions == [ok]
    assert batch.errors == [bad]
    assert [d["file"] for d in batch.to_dict_list()] == ["/repo/Job.java", "/repo/Bad.java"]


def test_stage_tag_wire_keys() -> None:
    assert [t.wire_key for t in StageTag] == ["sources", "transformations", "sinks"]
