"""Content hashing for tracked files.

Checksums are SHA256 hex digests prefixed with the algorithm name
("sha256:<hex>") so that a change of algorithm can never be mistaken for
a content change that happens to match.
"""

import hashlib
from pathlib import Path
from typing import Union

CHECKSUM_PREFIX = "sha256:"
_CHUNK_SIZE = 1024 * 1024


def hash_file(path: Union[str, Path]) -> str:
    """Compute SHA256 hash of a file's bytes, reading it in chunks.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return f"{CHECKSUM_PREFIX}{hasher.hexdigest()}"
