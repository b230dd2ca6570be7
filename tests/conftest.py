"""Pytest configuration and shared fixtures.

No sys.path hacks - tests should import from installed bakepipe package.
"""

import hashlib
from pathlib import Path

import pytest

from bakepipe.kernel.records import ScriptRecord
from bakepipe.kernel.run import ExecutionOutcome


def pytest_addoption(parser):
    """Add gated perf test option."""
    parser.addoption(
        "--run-perf",
        action="store_true",
        default=False,
        help="Run performance sentinel benchmarks (gated)."
    )


def pytest_collection_modifyitems(config, items):
    """Skip perf-marked tests unless --run-perf is set."""
    if config.getoption("--run-perf"):
        return
    skip_perf = pytest.mark.skip(reason="perf tests gated; pass --run-perf")
    for item in items:
        if "perf" in item.keywords:
            item.add_marker(skip_perf)


class RecordingExecutor:
    """Stand-in for a script runner.

    Writes every declared output of a script with content derived from the
    script text and its inputs, so re-running an unchanged script reproduces
    identical files.
    """

    def __init__(self, root: Path, records):
        self.root = Path(root)
        self.records = {r.script: r for r in records}
        self.calls = []
        self.fail_on = set()
        self.skip_outputs = set()

    def execute(self, script: str) -> ExecutionOutcome:
        self.calls.append(script)
        if script in self.fail_on:
            return ExecutionOutcome(script=script, ok=False, message="boom", returncode=2)

        record = self.records[script]
        hasher = hashlib.sha256((self.root / script).read_bytes())
        for path in record.inputs + record.externals:
            hasher.update((self.root / path).read_bytes())
        for output in record.outputs:
            if output in self.skip_outputs:
                continue
            target = self.root / output
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(f"{output} from {script}: {hasher.hexdigest()}\n", encoding="utf-8")
        return ExecutionOutcome(script=script, ok=True, returncode=0)


def write_files(root: Path, files: dict) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


@pytest.fixture
def linear_records():
    """S1 -> a.csv -> S2 -> b.csv -> S3 -> c.csv, with raw.csv supplied externally."""
    return [
        ScriptRecord(script="s1.py", externals=["raw.csv"], outputs=["a.csv"]),
        ScriptRecord(script="s2.py", inputs=["a.csv"], outputs=["b.csv"]),
        ScriptRecord(script="s3.py", inputs=["b.csv"], outputs=["c.csv"]),
    ]


@pytest.fixture
def linear_project(tmp_path, linear_records):
    """A project directory with the linear pipeline's scripts and external input."""
    write_files(tmp_path, {
        "s1.py": "# stage 1\n",
        "s2.py": "# stage 2\n",
        "s3.py": "# stage 3\n",
        "raw.csv": "id,value\n1,10\n",
    })
    return tmp_path


@pytest.fixture
def make_executor():
    def _make(root, records):
        return RecordingExecutor(root, records)
    return _make


@pytest.fixture
def write():
    """write(root, {relative_path: content}) helper."""
    return write_files
