from __future__ import annotations

import hashlib
from pathlib import Path

DEFAULT_CHUNK_SIZE = 1024 * 1024


def sha256_file(path: Path | str, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Digest of a media, prompt or output file, read in chunks so large recordings stay out of memory."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as file_obj:
        for block in iter(lambda: file_obj.read(chunk_size), b""):
            digest.update(block)
    return digest.hexdigest()


def sha256_text(text: str) -> str:
    """Digest of provider output as UTF-8, used to fingerprint accepted transcripts."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
