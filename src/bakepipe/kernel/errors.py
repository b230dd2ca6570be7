"""Exception hierarchy shared by the bakepipe kernel."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bakepipe.codes import ValidationCode


class GraphIssue(BaseModel):
    """A single configuration problem found in a pipeline graph."""
    code: ValidationCode
    message: str
    path: Optional[str] = None  # Offending artifact/input path
    scripts: List[str] = Field(default_factory=list)  # Scripts involved (sorted)

    model_config = ConfigDict(frozen=True)


class BakepipeError(Exception):
    """Base exception for all bakepipe errors."""
    code: Optional[ValidationCode] = None


class KernelValidationError(BakepipeError):
    """Base exception for pipeline configuration errors.

    Configuration errors are never retried and block both run and status.
    """
    pass


class ScannerRecordError(KernelValidationError):
    """Raised when a scanner record cannot be turned into a ScriptRecord."""
    code = ValidationCode.INVALID_MANIFEST

    def __init__(self, script: str, field: str, detail: str):
        self.script = script
        self.field = field
        self.detail = detail
        super().__init__(f"Invalid dependency record for script '{script}' ({field}): {detail}")


class CycleDetectedError(KernelValidationError):
    """Raised when a cycle is detected in the dependency graph."""
    code = ValidationCode.CYCLE_DETECTED

    def __init__(self, node: str, cycle: list[str] | None = None, unsorted: list[str] | None = None):
        self.node = node
        self.cycle = cycle or [node]
        self.unsorted = unsorted or []
        if self.unsorted:
            msg = (
                "Cannot perform topological sort: graph contains cycles\n"
                f"  Unsorted nodes: {', '.join(self.unsorted)}"
            )
        else:
            msg = f"Cycle detected in dependency graph involving node: {node}"
            if len(self.cycle) > 1:
                msg += "\n  Cycle: " + " -> ".join(self.cycle) + f" -> {self.cycle[0]}"
        super().__init__(msg)


class GraphValidationError(KernelValidationError):
    """Raised when the built graph violates producer or orphan invariants.

    Carries every issue found so the whole pipeline can be fixed in one pass.
    """

    def __init__(self, issues: List[GraphIssue]):
        self.issues = issues
        lines = [f"Pipeline graph is invalid ({len(issues)} problem(s)):"]
        lines.extend(f"  - {issue.message}" for issue in issues)
        super().__init__("\n".join(lines))

    @property
    def codes(self) -> list[ValidationCode]:
        return [issue.code for issue in self.issues]


class UnknownNodeError(BakepipeError, KeyError):
    """Raised when a graph query names a node that is not in the graph."""

    def __init__(self, node: str):
        self.node = node
        super().__init__(f"Node '{node}' not found in graph")

    def __str__(self) -> str:
        return self.args[0]


class ScriptExecutionError(BakepipeError):
    """Raised when the executor reports a failed script."""
    code = ValidationCode.EXECUTION_FAILED

    def __init__(self, script: str, message: str):
        self.script = script
        self.message = message
        super().__init__(f"Script '{script}' failed: {message}")


class StateFileError(BakepipeError):
    """Raised when the persisted fingerprint state cannot be read."""
    code = ValidationCode.STATE_FILE_ERROR

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"Could not read state file '{path}': {detail}")

