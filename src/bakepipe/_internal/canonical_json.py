"""Deterministic JSON for everything bakepipe prints or persists.

Unchanged data must give byte-identical output, so an idempotent run leaves
the state file untouched and `--json` reports can be diffed.
"""

import json
from pathlib import Path
from typing import Any, Union


def canonical_dumps(obj: Any) -> str:
    """Serialize with sorted keys, compact separators and raw UTF-8.

    Lists keep the order given; callers sort them when order carries no meaning.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def write_canonical_json(path: Union[str, Path], obj: Any) -> Path:
    """Write obj as one canonical JSON line, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(canonical_dumps(obj) + "\n", encoding="utf-8")
    return target
