"""bakepipe: incremental builds for script pipelines with declared file dependencies."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("bakepipe")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from bakepipe.api import validate, status, run, clean, ValidationResult, StatusReport
from bakepipe.config import BakepipeConfig
from bakepipe.codes import ValidationCode
from bakepipe.kernel.errors import (
    BakepipeError,
    KernelValidationError,
    GraphValidationError,
    CycleDetectedError,
    ScannerRecordError,
    ScriptExecutionError,
    StateFileError,
)
from bakepipe.kernel.records import ScriptRecord
from bakepipe.kernel.run import RunResult, ExecutionOutcome

__all__ = [
    "__version__",
    "validate",
    "status",
    "run",
    "clean",
    "ValidationResult",
    "StatusReport",
    "RunResult",
    "ExecutionOutcome",
    "BakepipeConfig",
    "ValidationCode",
    "ScriptRecord",
    "BakepipeError",
    "KernelValidationError",
    "GraphValidationError",
    "CycleDetectedError",
    "ScannerRecordError",
    "ScriptExecutionError",
    "StateFileError",
]
