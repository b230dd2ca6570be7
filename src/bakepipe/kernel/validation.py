"""Producer-uniqueness and orphaned-input checks over a built graph.

Both checks collect every violation before failing so the user sees all
problems in one pass.
"""

from typing import List

from bakepipe.codes import ValidationCode

from .errors import GraphIssue, GraphValidationError
from .graph import PipelineGraph


def check_single_producer(graph: PipelineGraph) -> List[GraphIssue]:
    """One issue per declared output that more than one script produces."""
    issues = []
    for path in sorted(graph.producers):
        producers = sorted(set(graph.producers[path]))
        if len(producers) > 1:
            quoted = ", ".join(f"'{script}'" for script in producers)
            issues.append(GraphIssue(
                code=ValidationCode.MULTIPLE_PRODUCERS,
                message=f"Artifact '{path}' has multiple producers: {quoted}",
                path=path,
                scripts=producers,
            ))
    return issues


def check_orphaned_inputs(graph: PipelineGraph) -> List[GraphIssue]:
    """One issue per plain input that no script produces.

    External inputs are exempt: external_in() declares a file supplied from
    outside the pipeline, file_in() declares one produced inside it.
    """
    issues = []
    for path in sorted(graph.unresolved_inputs):
        consumers = sorted(set(graph.unresolved_inputs[path]))
        quoted = ", ".join(f"'{script}'" for script in consumers)
        issues.append(GraphIssue(
            code=ValidationCode.ORPHANED_INPUT,
            message=(
                f"Input '{path}' (read by {quoted}) is not produced by any script. "
                f"Add a script that declares it with file_out(), "
                f"or declare it with external_in() if it is supplied by the user."
            ),
            path=path,
            scripts=consumers,
        ))
    return issues


def collect_graph_issues(graph: PipelineGraph) -> List[GraphIssue]:
    """Run every graph check and return all issues (producer issues first)."""
    return check_single_producer(graph) + check_orphaned_inputs(graph)


def validate_graph(graph: PipelineGraph) -> None:
    """Raise GraphValidationError listing every producer and orphan violation."""
    issues = collect_graph_issues(graph)
    if issues:
        raise GraphValidationError(issues)
