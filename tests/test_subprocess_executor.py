"""Tests for the subprocess script executor."""

import sys

from bakepipe.adapters.subprocess_executor import SubprocessExecutor


def test_runs_script_from_project_root(tmp_path, write):
    write(tmp_path, {
        "scripts/make.py": "from pathlib import Path\nPath('out.txt').write_text('done')\n",
    })
    executor = SubprocessExecutor(tmp_path)

    outcome = executor.execute("scripts/make.py")

    assert outcome.ok is True
    assert outcome.returncode == 0
    assert (tmp_path / "out.txt").read_text() == "done"


def test_default_interpreter_is_current_python(tmp_path):
    executor = SubprocessExecutor(tmp_path)
    assert executor.command("a.py") == [sys.executable, "a.py"]


def test_nonzero_exit_reports_stderr_tail(tmp_path, write):
    lines = "".join(f"sys.stderr.write('line {i}\\n')\n" for i in range(30))
    write(tmp_path, {"fail.py": "import sys\n" + lines + "sys.exit(3)\n"})

    outcome = SubprocessExecutor(tmp_path).execute("fail.py")

    assert outcome.ok is False
    assert outcome.returncode == 3
    assert outcome.message.startswith("exited with code 3")
    assert "line 29" in outcome.message
    assert "line 9\n" not in outcome.message


def test_missing_script(tmp_path):
    outcome = SubprocessExecutor(tmp_path).execute("ghost.py")
    assert outcome.ok is False
    assert "Script file not found" in outcome.message


def test_timeout(tmp_path, write):
    write(tmp_path, {"slow.py": "import time\ntime.sleep(10)\n"})
    outcome = SubprocessExecutor(tmp_path, timeout=0.5).execute("slow.py")
    assert outcome.ok is False
    assert "Timed out" in outcome.message


def test_interpreter_that_cannot_start(tmp_path, write):
    write(tmp_path, {"a.py": "print(1)\n"})
    executor = SubprocessExecutor(tmp_path, interpreter=str(tmp_path / "no-such-interpreter"))
    outcome = executor.execute("a.py")
    assert outcome.ok is False
    assert "Could not start" in outcome.message
