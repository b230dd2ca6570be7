"""Generate JSON schemas from Pydantic models and save to schemas/ directory."""

import json
from pathlib import Path

from bakepipe.api import StatusReport, ValidationResult
from bakepipe.kernel.fingerprint import StateFileModel
from bakepipe.kernel.records import ScriptRecord

SCHEMAS = {
    "script_record.schema.json": ScriptRecord,
    "state_file.schema.json": StateFileModel,
    "validation_result.schema.json": ValidationResult,
    "status_report.schema.json": StatusReport,
}


def generate_schemas(schemas_dir: Path | None = None):
    """Generate JSON schemas for all models."""
    schemas_dir = schemas_dir or Path(__file__).parent.parent / "schemas"
    schemas_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for filename, model in SCHEMAS.items():
        schema_path = schemas_dir / filename
        with open(schema_path, 'w', encoding='utf-8') as f:
            json.dump(model.model_json_schema(), f, indent=2, ensure_ascii=False)
        print(f"Generated: {schema_path}")
        written.append(schema_path)

    print("\nSchema generation complete!")
    return written


if __name__ == "__main__":
    generate_schemas()
