"""Filesystem helpers shared by engines and the render driver."""

from __future__ import annotations

import hashlib
from pathlib import Path


def dir_and_stem(path: str | Path) -> tuple[Path, str]:
    """Return the parent directory and the stem of ``path``."""
    candidate = Path(path)
    return candidate.parent, candidate.stem


def remove_if_exists(path: str | Path) -> bool:
    """Delete ``path`` when present, returning whether a file was removed."""
    target = Path(path)
    if not target.exists():
        return False
    target.unlink()
    return True


def canonical_path(path: str | Path) -> Path:
    """Return the absolute real path of an existing file."""
    return Path(path).resolve(strict=True)


def file_digest(path: str | Path) -> str:
    """Return the SHA-256 digest of a file's contents."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


__all__ = [
    "canonical_path",
    "dir_and_stem",
    "file_digest",
    "remove_if_exists",
]
