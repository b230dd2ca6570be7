"""Tests for staleness.py."""

from bakepipe.kernel.fingerprint import FileState, FingerprintStore
from bakepipe.kernel.graph import build_pipeline
from bakepipe.kernel.records import ScriptRecord
from bakepipe.kernel.staleness import StaleReason, compute_staleness, mark_reachable


def _track_everything(root, graph):
    store = FingerprintStore(root)
    for path in graph.nodes:
        store.record(path)
    return store


def _lineage_project(tmp_path, write):
    """A.py -> out.csv -> B.py -> final.csv, plus a disconnected C.py -> other.csv."""
    records = [
        ScriptRecord(script="A.py", externals=["raw.csv"], outputs=["out.csv"]),
        ScriptRecord(script="B.py", inputs=["out.csv"], outputs=["final.csv"]),
        ScriptRecord(script="C.py", outputs=["other.csv"]),
    ]
    write(tmp_path, {
        "A.py": "a", "B.py": "b", "C.py": "c",
        "raw.csv": "raw", "out.csv": "out", "final.csv": "final", "other.csv": "other",
    })
    graph = build_pipeline(records)
    return graph, _track_everything(tmp_path, graph)


def test_untracked_project_is_entirely_stale(tmp_path, linear_project, linear_records):
    graph = build_pipeline(linear_records)
    result = compute_staleness(graph, FingerprintStore(linear_project))

    assert result.stale == frozenset(graph.nodes)
    assert result.leaf_states["s1.py"] is FileState.NEW
    assert result.leaf_states["a.csv"] is FileState.NEW  # Not created yet
    assert result.reasons["s1.py"] is StaleReason.NEW_FILE


def test_everything_tracked_and_unchanged_is_fresh(tmp_path, write):
    graph, store = _lineage_project(tmp_path, write)
    result = compute_staleness(graph, store)

    assert result.stale == frozenset()
    assert result.fresh == frozenset(graph.nodes)
    assert result.reasons == {}


def test_lineage_break_marks_producer_and_downstream(tmp_path, write):
    """Hand-editing out.csv re-asserts A.py and recomputes everything after it."""
    graph, store = _lineage_project(tmp_path, write)
    (tmp_path / "out.csv").write_text("edited by hand", encoding="utf-8")

    result = compute_staleness(graph, store)

    assert result.leaf_states["out.csv"] is FileState.MODIFIED
    assert result.stale == {"A.py", "out.csv", "B.py", "final.csv"}
    assert result.reasons["A.py"] is StaleReason.LINEAGE_BREAK
    assert result.causes["A.py"] == "out.csv"
    assert result.reasons["out.csv"] is StaleReason.MODIFIED
    assert result.reasons["B.py"] is StaleReason.UPSTREAM_STALE
    # Unrelated script stays fresh; so does the producer's external input
    assert not result.is_stale("C.py")
    assert not result.is_stale("other.csv")
    assert not result.is_stale("raw.csv")


def test_deleted_artifact_is_rebuilt_not_an_error(tmp_path, write):
    graph, store = _lineage_project(tmp_path, write)
    (tmp_path / "final.csv").unlink()

    result = compute_staleness(graph, store)

    assert result.leaf_states["final.csv"] is FileState.DELETED
    assert result.reasons["final.csv"] is StaleReason.DELETED
    assert result.stale == {"B.py", "final.csv"}


def test_modified_external_marks_consumers(tmp_path, write):
    graph, store = _lineage_project(tmp_path, write)
    (tmp_path / "raw.csv").write_text("new raw", encoding="utf-8")

    result = compute_staleness(graph, store)

    assert result.stale == {"raw.csv", "A.py", "out.csv", "B.py", "final.csv"}
    assert result.reasons["A.py"] is StaleReason.UPSTREAM_STALE
    assert result.causes["B.py"] == "raw.csv"


def test_partial_downstream_rerun(tmp_path, linear_project, linear_records, write):
    """Changing only S2's text leaves S1 fresh and makes S2 and S3 stale."""
    write(linear_project, {"a.csv": "a", "b.csv": "b", "c.csv": "c"})
    graph = build_pipeline(linear_records)
    store = _track_everything(linear_project, graph)
    write(linear_project, {"s2.py": "# stage 2, revised\n"})

    result = compute_staleness(graph, store)

    order = ["s1.py", "s2.py", "s3.py"]
    assert result.stale_scripts(order) == ["s2.py", "s3.py"]
    assert not result.is_stale("s1.py")
    assert not result.is_stale("a.csv")
    assert result.reasons["s2.py"] is StaleReason.MODIFIED
    assert result.reasons["s3.py"] is StaleReason.UPSTREAM_STALE


def test_leaf_reason_wins_over_propagated_reason(tmp_path, linear_project, linear_records, write):
    write(linear_project, {"a.csv": "a", "b.csv": "b", "c.csv": "c"})
    graph = build_pipeline(linear_records)
    store = _track_everything(linear_project, graph)
    write(linear_project, {"s1.py": "# changed\n", "s3.py": "# changed too\n"})

    result = compute_staleness(graph, store)

    assert result.reasons["s3.py"] is StaleReason.MODIFIED
    assert result.reasons["s2.py"] is StaleReason.UPSTREAM_STALE


def test_new_script_added_to_tracked_project(tmp_path, write):
    graph, store = _lineage_project(tmp_path, write)
    records = list(graph.records.values()) + [ScriptRecord(script="D.py", inputs=["final.csv"])]
    write(tmp_path, {"D.py": "d"})

    result = compute_staleness(build_pipeline(records), store)

    assert result.stale == {"D.py"}
    assert result.reasons["D.py"] is StaleReason.NEW_FILE


def test_mark_reachable_returns_union(linear_records):
    graph = build_pipeline(linear_records)
    marked = mark_reachable(graph, "b.csv", set())
    assert marked == {"b.csv", "s3.py", "c.csv"}

    marked = mark_reachable(graph, "s2.py", marked)
    assert marked == {"s2.py", "b.csv", "s3.py", "c.csv"}
