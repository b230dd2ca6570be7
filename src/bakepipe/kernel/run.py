"""Incremental run: execute stale scripts in topological order.

Validate -> Order -> ComputeStaleness -> ExecuteLoop -> Persist.
Validation happens when the graph is built (build_pipeline); this module
starts from a validated, acyclic graph.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Set

from .errors import ScriptExecutionError
from .fingerprint import FingerprintStore
from .graph import PipelineGraph, topological_sort
from .staleness import StalenessResult, compute_staleness, mark_reachable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionOutcome:
    """What the executor reports for one script."""
    script: str
    ok: bool
    message: str = ""
    returncode: Optional[int] = None


class ScriptExecutor(Protocol):
    """Runs one script to completion. Implementations must not raise for script failures."""

    def execute(self, script: str) -> ExecutionOutcome:
        ...


@dataclass
class RunResult:
    """Result of one incremental run."""
    order: List[str]  # Execution order (all scripts)
    executed: List[str]  # Scripts run in this invocation, in order
    skipped: List[str]  # Fresh scripts that were not run
    outputs: List[str]  # Declared outputs (re)created by executed scripts
    changed: List[str] = field(default_factory=list)  # Outputs whose content differs from the previous fingerprint
    staleness: Optional[StalenessResult] = None


def _persist_script(
    graph: PipelineGraph,
    store: FingerprintStore,
    script: str,
) -> tuple[List[str], List[str]]:
    """Fingerprint a script that just succeeded, with its inputs and outputs.

    Returns (existing outputs, outputs whose checksum changed).
    """
    record = graph.records[script]
    store.record(script)
    for path in record.inputs + record.externals:
        store.record(path)

    produced, changed = [], []
    for output in record.outputs:
        previous = store.get(output)
        current = store.record(output)
        if current is None:
            logger.warning("Script '%s' succeeded but did not create declared output '%s'", script, output)
            continue
        produced.append(output)
        if previous is None or previous.checksum != current.checksum:
            changed.append(output)
    return produced, changed


def _forget_unfinished(store: FingerprintStore, remaining: List[str], stale: Set[str]) -> None:
    """Drop the records of stale scripts an aborted run did not finish.

    Earlier scripts in the run may have re-fingerprinted files these scripts
    read; a forgotten script reads NEW on the next run.
    """
    unfinished = [script for script in remaining if script in stale]
    for script in unfinished:
        store.forget(script)
    if unfinished:
        logger.info("Run aborted; %d script(s) left stale: %s", len(unfinished), ", ".join(unfinished))


def run_pipeline(
    graph: PipelineGraph,
    store: FingerprintStore,
    executor: ScriptExecutor,
    save: bool = True,
) -> RunResult:
    """Run every stale script of a validated graph, in execution order.

    A failing script stops the run immediately: later scripts never run and
    fingerprints recorded for scripts that already succeeded are kept (the
    store is saved before the error propagates). The failing script and every
    stale script after it lose their records, so the next run executes them.

    When an executed script writes an output whose content differs from its
    previous fingerprint, everything downstream of that output is treated as
    stale for the rest of the run.

    Raises:
        ScriptExecutionError: If the executor reports a failure
    """
    order = topological_sort(graph, scripts_only=True)
    staleness = compute_staleness(graph, store)
    stale: Set[str] = set(staleness.stale)
    result = RunResult(order=order, executed=[], skipped=[], outputs=[], staleness=staleness)

    logger.info(
        "%d script(s) in pipeline, %d stale",
        len(order), len(staleness.stale_scripts(order)),
    )

    position = 0
    finished = False
    try:
        for position, script in enumerate(order):
            if script not in stale:
                logger.info("Skipping fresh script '%s'", script)
                result.skipped.append(script)
                continue

            logger.info("Running '%s'", script)
            outcome = executor.execute(script)
            if not outcome.ok:
                message = outcome.message or f"exited with code {outcome.returncode}"
                logger.error("Script '%s' failed: %s", script, message)
                raise ScriptExecutionError(script, message)

            result.executed.append(script)
            produced, changed = _persist_script(graph, store, script)
            for output in produced:
                if output not in result.outputs:
                    result.outputs.append(output)
            for output in changed:
                result.changed.append(output)
                stale = mark_reachable(graph, output, stale)
        finished = True
    finally:
        if not finished:
            _forget_unfinished(store, order[position:], stale)
        if save:
            store.save()

    return result
