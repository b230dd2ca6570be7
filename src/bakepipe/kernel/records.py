"""Pydantic models for scanner output (per-script dependency records)."""

import json
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ScannerRecordError

MARKER_FIELDS = ("inputs", "outputs", "externals")


def normalize_path(path: str) -> str:
    """Normalize a declared path to a POSIX relative form ("./a//b.csv" -> "a/b.csv")."""
    return PurePosixPath(path.replace("\\", "/")).as_posix()


class ScriptRecord(BaseModel):
    """Dependencies declared by one script through its marker calls.

    inputs are files produced inside the pipeline (file_in), outputs are files the
    script writes (file_out) and externals are files supplied by the user (external_in).
    """
    script: str  # Identifier: path relative to the project root
    inputs: tuple[str, ...] = Field(default=(), description="Canonicalized tuple of plain inputs (sorted, no duplicates)")
    outputs: tuple[str, ...] = Field(default=(), description="Canonicalized tuple of outputs (sorted, no duplicates)")
    externals: tuple[str, ...] = Field(default=(), description="Canonicalized tuple of external inputs (sorted, no duplicates)")

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("script", mode="before")
    @classmethod
    def validate_script(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError(f"Script identifier must be a non-empty string, got {v!r}")
        return normalize_path(v)

    @field_validator("inputs", "outputs", "externals", mode="before")
    @classmethod
    def validate_paths(cls, v: Any) -> tuple[str, ...]:
        """Validate and canonicalize declared paths.

        Rules:
        - Marker arguments must be string literals; anything else means the
          scanner could not resolve the argument and the record is incomplete
        - Duplicates collapse (a file read twice is one dependency)
        - Canonicalized to a sorted tuple for order-agnostic semantics
        """
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        paths = set()
        for item in v:
            if not isinstance(item, str):
                raise ValueError(
                    f"Marker arguments must be string literals, got {type(item).__name__} {item!r}"
                )
            if not item.strip():
                raise ValueError("Marker arguments must be non-empty paths")
            paths.add(normalize_path(item))
        return tuple(sorted(paths))


def _record_error(script: str, exc: ValidationError) -> ScannerRecordError:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "record"
    return ScannerRecordError(script, field, first.get("msg", str(exc)))


def make_record(script: str, data: Dict[str, Any] | None = None) -> ScriptRecord:
    """Build a ScriptRecord from a scanner result, raising ScannerRecordError on bad input."""
    data = dict(data or {})
    unknown = sorted(set(data) - set(MARKER_FIELDS))
    if unknown:
        raise ScannerRecordError(script, unknown[0], f"Unknown fields: {', '.join(unknown)}")
    try:
        return ScriptRecord(script=script, **data)
    except ValidationError as e:
        raise _record_error(script, e) from e


def records_from_dict(data: Dict[str, Any]) -> List[ScriptRecord]:
    """Load records from a manifest dict: {"scripts": {script: {inputs, outputs, externals}}}.

    Order of scripts is preserved (it is the node registration order).
    """
    if not isinstance(data, dict) or not isinstance(data.get("scripts"), dict):
        raise ScannerRecordError("<manifest>", "scripts", "Manifest must contain a 'scripts' object")
    records: List[ScriptRecord] = []
    seen: set[str] = set()
    for script, entry in data["scripts"].items():
        if entry is not None and not isinstance(entry, dict):
            raise ScannerRecordError(script, "record", f"Expected an object, got {type(entry).__name__}")
        record = make_record(script, entry)
        if record.script in seen:
            raise ScannerRecordError(script, "script", f"Duplicate script identifier '{record.script}'")
        seen.add(record.script)
        records.append(record)
    return records


def load_manifest(path: Union[str, Path]) -> List[ScriptRecord]:
    """Load scanner output from a JSON manifest file."""
    manifest_path = Path(path)
    with open(manifest_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ScannerRecordError("<manifest>", str(manifest_path), f"Invalid JSON: {e}") from e
    return records_from_dict(data)
