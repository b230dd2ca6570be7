"""Project configuration."""

import sys
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bakepipe.kernel.fingerprint import DEFAULT_STATE_FILE

DEFAULT_MANIFEST = "bakepipe.json"


class BakepipeConfig(BaseModel):
    """Where a project lives and how its scripts are run.

    manifest and state_file are resolved against root unless absolute.
    """
    root: Path = Field(default_factory=Path.cwd)
    manifest: Path = Path(DEFAULT_MANIFEST)  # Scanner output
    state_file: Path = Path(DEFAULT_STATE_FILE)  # Fingerprint store
    interpreter: str = Field(default_factory=lambda: sys.executable)
    timeout: Optional[float] = None  # Seconds per script; None = no limit

    model_config = ConfigDict(extra="forbid")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"timeout must be positive, got {v}")
        return v

    @property
    def manifest_path(self) -> Path:
        return self.manifest if self.manifest.is_absolute() else self.root / self.manifest

    @property
    def state_path(self) -> Path:
        return self.state_file if self.state_file.is_absolute() else self.root / self.state_file
