"""Executor that runs each script in a child process.

Scripts run one at a time with the project root as working directory, so the
relative paths declared through marker calls resolve the same way they do
for the engine.
"""

import logging
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Union

from bakepipe.kernel.run import ExecutionOutcome

logger = logging.getLogger(__name__)

_STDERR_TAIL_LINES = 20


class SubprocessExecutor:
    """Run ``<interpreter> <script>`` from the project root."""

    def __init__(
        self,
        root: Union[str, Path],
        interpreter: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.root = Path(root)
        self.interpreter = interpreter or sys.executable
        self.timeout = timeout

    def command(self, script: str) -> List[str]:
        return [self.interpreter, script]

    def execute(self, script: str) -> ExecutionOutcome:
        if not (self.root / script).is_file():
            return ExecutionOutcome(script=script, ok=False, message=f"Script file not found: {script}")

        cmd = self.command(script)
        logger.debug("Executing %s in %s", cmd, self.root)
        try:
            completed = subprocess.run(
                cmd,
                cwd=self.root,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return ExecutionOutcome(script=script, ok=False, message=f"Timed out after {self.timeout}s")
        except OSError as e:
            return ExecutionOutcome(script=script, ok=False, message=f"Could not start {cmd[0]}: {e}")

        if completed.returncode == 0:
            return ExecutionOutcome(script=script, ok=True, returncode=0)

        message = f"exited with code {completed.returncode}"
        stderr = (completed.stderr or "").strip()
        if stderr:
            tail = "\n".join(stderr.splitlines()[-_STDERR_TAIL_LINES:])
            message += f"\n{tail}"
        return ExecutionOutcome(script=script, ok=False, message=message, returncode=completed.returncode)
