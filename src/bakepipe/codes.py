"""Error code constants for bakepipe validation and run failures.

These constants prevent stringly-typed error codes and ensure
client code uses the correct codes.
"""

from enum import Enum


class ValidationCode(str, Enum):
    """Validation and run error codes."""

    # Configuration errors (blocking run and status)
    MULTIPLE_PRODUCERS = "MULTIPLE_PRODUCERS"
    ORPHANED_INPUT = "ORPHANED_INPUT"
    CYCLE_DETECTED = "CYCLE_DETECTED"
    INVALID_MANIFEST = "INVALID_MANIFEST"

    # Run errors
    EXECUTION_FAILED = "EXECUTION_FAILED"
    STATE_FILE_ERROR = "STATE_FILE_ERROR"
