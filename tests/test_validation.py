"""Tests for producer-uniqueness and orphaned-input validation."""

import pytest

from bakepipe.codes import ValidationCode
from bakepipe.kernel.errors import GraphValidationError
from bakepipe.kernel.graph import build_graph, build_pipeline
from bakepipe.kernel.records import ScriptRecord
from bakepipe.kernel.validation import (
    check_orphaned_inputs,
    check_single_producer,
    collect_graph_issues,
    validate_graph,
)


def test_multiple_producers_names_artifact_and_all_producers():
    graph = build_graph([
        ScriptRecord(script="script2.py", externals=["other.csv"], outputs=["duplicate.csv"]),
        ScriptRecord(script="script1.py", externals=["input.csv"], outputs=["duplicate.csv"]),
    ])

    issues = check_single_producer(graph)
    assert len(issues) == 1
    issue = issues[0]
    assert issue.code == ValidationCode.MULTIPLE_PRODUCERS
    assert issue.path == "duplicate.csv"
    assert issue.scripts == ["script1.py", "script2.py"]
    assert "duplicate.csv" in issue.message
    assert "script1.py" in issue.message and "script2.py" in issue.message


def test_orphaned_plain_input_fails():
    graph = build_graph([ScriptRecord(script="report.py", inputs=["sales.csv"])])

    issues = check_orphaned_inputs(graph)
    assert [i.code for i in issues] == [ValidationCode.ORPHANED_INPUT]
    assert issues[0].path == "sales.csv"
    assert issues[0].scripts == ["report.py"]
    assert "external_in()" in issues[0].message
    assert "file_out()" in issues[0].message


def test_same_path_as_external_input_is_valid():
    graph = build_graph([ScriptRecord(script="report.py", externals=["sales.csv"])])

    assert collect_graph_issues(graph) == []
    validate_graph(graph)  # Does not raise


def test_all_violations_are_collected():
    """Validation is not fail-fast: every problem is reported in one pass."""
    graph = build_graph([
        ScriptRecord(script="a.py", inputs=["missing1.csv"], outputs=["x.csv", "y.csv"]),
        ScriptRecord(script="b.py", inputs=["missing2.csv"], outputs=["x.csv"]),
        ScriptRecord(script="c.py", inputs=["missing1.csv"], outputs=["y.csv"]),
    ])

    with pytest.raises(GraphValidationError) as exc_info:
        validate_graph(graph)

    err = exc_info.value
    assert err.codes == [
        ValidationCode.MULTIPLE_PRODUCERS,
        ValidationCode.MULTIPLE_PRODUCERS,
        ValidationCode.ORPHANED_INPUT,
        ValidationCode.ORPHANED_INPUT,
    ]
    assert [i.path for i in err.issues] == ["x.csv", "y.csv", "missing1.csv", "missing2.csv"]
    assert err.issues[2].scripts == ["a.py", "c.py"]
    message = str(err)
    for path in ("x.csv", "y.csv", "missing1.csv", "missing2.csv"):
        assert path in message


def test_build_pipeline_validates_before_returning():
    with pytest.raises(GraphValidationError):
        build_pipeline([
            ScriptRecord(script="a.py", outputs=["same.csv"]),
            ScriptRecord(script="b.py", outputs=["same.csv"]),
        ])
