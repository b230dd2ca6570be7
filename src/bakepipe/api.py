"""Public API for bakepipe.

High-level functions that return complete, structured results:
validate, status, run and clean.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from bakepipe.codes import ValidationCode
from bakepipe.config import BakepipeConfig
from bakepipe.kernel.errors import CycleDetectedError, ScannerRecordError
from bakepipe.kernel.fingerprint import FingerprintStore
from bakepipe.kernel.graph import PipelineGraph, build_graph, build_pipeline, detect_cycle, topological_sort
from bakepipe.kernel.records import ScriptRecord, load_manifest, records_from_dict
from bakepipe.kernel.run import RunResult, ScriptExecutor, run_pipeline
from bakepipe.kernel.staleness import StalenessResult, compute_staleness
from bakepipe.kernel.validation import collect_graph_issues

logger = logging.getLogger(__name__)

RecordsSource = Union[Iterable[ScriptRecord], Dict, str, os.PathLike, Path]


def load_records(source: RecordsSource) -> List[ScriptRecord]:
    """Accept records, a manifest dict, or a manifest file path."""
    if isinstance(source, dict):
        return records_from_dict(source)
    if isinstance(source, (str, os.PathLike)):
        return load_manifest(Path(source))
    return list(source)


class ValidationIssue(BaseModel):
    """A single validation issue."""
    code: str  # e.g., "MULTIPLE_PRODUCERS", "ORPHANED_INPUT", "CYCLE_DETECTED", "INVALID_MANIFEST"
    message: str
    path: Optional[str] = None  # Offending path (artifact, input or cycle node)
    scripts: List[str] = Field(default_factory=list)  # Scripts involved
    cycle_path: Optional[List[str]] = None  # For CYCLE_DETECTED errors


class ValidationResult(BaseModel):
    """Result of validation/preflight check."""
    ok: bool
    errors: List[ValidationIssue]


def validate(records: RecordsSource) -> ValidationResult:
    """Check a pipeline for every configuration error without raising.

    Producer and orphan issues are all reported; cycle detection runs on the
    resolved part of the graph as well.
    """
    try:
        records = load_records(records)
    except ScannerRecordError as e:
        issue = ValidationIssue(code=ValidationCode.INVALID_MANIFEST.value, message=str(e), scripts=[e.script])
        return ValidationResult(ok=False, errors=[issue])

    graph = build_graph(records)
    errors = [
        ValidationIssue(
            code=issue.code.value,
            message=issue.message,
            path=issue.path,
            scripts=issue.scripts,
        )
        for issue in collect_graph_issues(graph)
    ]
    try:
        detect_cycle(graph)
    except CycleDetectedError as e:
        errors.append(ValidationIssue(
            code=ValidationCode.CYCLE_DETECTED.value,
            message=str(e),
            path=e.node,
            cycle_path=e.cycle,
        ))

    return ValidationResult(ok=not errors, errors=errors)


class FileStatus(BaseModel):
    """Freshness of one file referenced by a script."""
    path: str
    kind: Literal["script", "artifact", "external"]
    state: Literal["fresh", "stale"]
    file_state: str  # fresh | new | modified | deleted


class ScriptStatus(BaseModel):
    """Freshness of one script and the files it declares."""
    script: str
    state: Literal["fresh", "stale"]
    reason: Optional[str] = None  # NEW_FILE, MODIFIED, DELETED, LINEAGE_BREAK, UPSTREAM_STALE
    cause: Optional[str] = None  # Leaf-stale node that made this script stale
    inputs: List[FileStatus] = Field(default_factory=list)
    externals: List[FileStatus] = Field(default_factory=list)
    outputs: List[FileStatus] = Field(default_factory=list)


class StatusReport(BaseModel):
    """Status of every script, in execution order."""
    scripts: List[ScriptStatus]
    fresh_count: int
    stale_count: int
    stale_paths: List[str]  # Every stale node, sorted


def _state(graph: PipelineGraph, path: str) -> str:
    return "stale" if graph.nodes[path].stale else "fresh"


def _file_status(graph: PipelineGraph, staleness: StalenessResult, path: str) -> FileStatus:
    return FileStatus(
        path=path,
        kind=graph.kind_of(path).value,
        state=_state(graph, path),
        file_state=staleness.leaf_states[path].value,
    )


def build_status_report(graph: PipelineGraph, staleness: StalenessResult) -> StatusReport:
    """Render a StatusReport from a graph and its staleness, without touching disk."""
    graph = graph.with_staleness(staleness.stale)
    scripts = []
    for script in topological_sort(graph, scripts_only=True):
        record = graph.records[script]
        reason = staleness.reasons.get(script)
        scripts.append(ScriptStatus(
            script=script,
            state=_state(graph, script),
            reason=reason.value if reason is not None else None,
            cause=staleness.causes.get(script),
            inputs=[_file_status(graph, staleness, p) for p in record.inputs],
            externals=[_file_status(graph, staleness, p) for p in record.externals],
            outputs=[_file_status(graph, staleness, p) for p in record.outputs],
        ))
    stale_count = sum(1 for s in scripts if s.state == "stale")
    return StatusReport(
        scripts=scripts,
        fresh_count=len(scripts) - stale_count,
        stale_count=stale_count,
        stale_paths=sorted(staleness.stale),
    )


def _resolve(config: Optional[BakepipeConfig], records: Optional[RecordsSource]) -> tuple[BakepipeConfig, List[ScriptRecord]]:
    config = config or BakepipeConfig()
    if records is None:
        records = config.manifest_path
    return config, load_records(records)


def status(
    config: Optional[BakepipeConfig] = None,
    records: Optional[RecordsSource] = None,
) -> StatusReport:
    """Validate, order and compute staleness without executing anything.

    Raises:
        KernelValidationError: On any configuration error
        StateFileError: If the fingerprint state cannot be read
    """
    config, records = _resolve(config, records)
    graph = build_pipeline(records)
    store = FingerprintStore.load(config.root, config.state_file)
    staleness = compute_staleness(graph, store)
    return build_status_report(graph, staleness)


def run(
    config: Optional[BakepipeConfig] = None,
    executor: Optional[ScriptExecutor] = None,
    records: Optional[RecordsSource] = None,
) -> RunResult:
    """Run every stale script and update the fingerprint store.

    Uses a SubprocessExecutor built from config when no executor is given.

    Raises:
        KernelValidationError: On any configuration error (nothing is executed)
        ScriptExecutionError: If a script fails (later scripts are not run)
    """
    config, records = _resolve(config, records)
    graph = build_pipeline(records)
    store = FingerprintStore.load(config.root, config.state_file)
    if executor is None:
        from bakepipe.adapters.subprocess_executor import SubprocessExecutor
        executor = SubprocessExecutor(config.root, interpreter=config.interpreter, timeout=config.timeout)
    return run_pipeline(graph, store, executor)


def clean(
    config: Optional[BakepipeConfig] = None,
    records: Optional[RecordsSource] = None,
) -> List[str]:
    """Delete every artifact file and forget its fingerprint.

    Scripts and external inputs are left untouched. The graph is built but not
    validated, so a pipeline with configuration errors can still be cleaned.

    Returns:
        Sorted list of artifact paths that were removed from disk
    """
    config, records = _resolve(config, records)
    graph = build_graph(records)
    store = FingerprintStore.load(config.root, config.state_file)

    removed = []
    for artifact in sorted(graph.artifacts):
        file_path = store.resolve(artifact)
        if file_path.is_file():
            file_path.unlink()
            removed.append(artifact)
            logger.info("Removed artifact '%s'", artifact)
    store.reset(graph.artifacts)
    store.save()
    return removed
