"""
Path safety -- normalize relative paths and keep clones inside their root.

Everything here is pure: no globals, no caches, nothing but the input.
Relative paths use "/" as the single canonical separator and "." for
the root itself.

Expected failures (unsafe input, escapes through symlinks) come back
as a Resolution with an error kind instead of an exception, so callers
can skip one record and carry on with the batch.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

SEPARATOR = "/"
ROOT = "."

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


class PathError(str, Enum):
    """Why a relative path could not be resolved."""

    UNSAFE = "unsafe"
    OUT_OF_SCOPE = "out_of_scope"


@dataclass(frozen=True)
class Resolution:
    """Result of resolving a relative path against a root.

    Attributes:
        path: The canonical absolute target, when resolution succeeded.
        error: The failure kind, when it did not.
        detail: Human-readable explanation of the failure.
    """

    path: Optional[Path] = None
    error: Optional[PathError] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None and self.path is not None


def _unify(path: str) -> str:
    return path.strip().replace("\\", SEPARATOR)


def normalize(path: Optional[str]) -> str:
    """Normalize a relative path to its canonical form.

    Trims whitespace, turns backslashes into "/", collapses repeated
    separators and drops "." segments. Empty input maps to ".".
    A leading separator and a drive designator are preserved so
    is_unsafe() still sees them.

    Args:
        path: Raw relative path (may be None).

    Returns:
        str: The normalized path. normalize(normalize(p)) == normalize(p).
    """
    if path is None:
        return ROOT

    unified = _unify(path)
    if not unified:
        return ROOT

    leading = unified.startswith(SEPARATOR)
    parts = [p for p in unified.split(SEPARATOR) if p and p != ROOT]

    if not parts:
        return SEPARATOR if leading else ROOT

    joined = SEPARATOR.join(parts)
    return SEPARATOR + joined if leading else joined


def is_unsafe(path: Optional[str]) -> bool:
    """Check whether a relative path could escape its root.

    Args:
        path: Raw or normalized relative path.

    Returns:
        bool: True if it starts with a separator, carries a drive
        designator, or contains a ".." segment anywhere.
    """
    if path is None:
        return False

    unified = _unify(path)
    if unified.startswith(SEPARATOR):
        return True
    if _DRIVE_RE.match(unified):
        return True
    return any(part.strip() == ".." for part in unified.split(SEPARATOR))


def join(root: Union[str, Path], relative_path: str) -> str:
    """Join a root and a normalized relative path into a full path string."""
    rel = normalize(relative_path)
    if rel == ROOT:
        return str(Path(root))
    return str(Path(root).joinpath(*rel.split(SEPARATOR)))


def same_path(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two absolute paths case-insensitively, ignoring trailing separators."""
    if not a or not b:
        return (a or "") == (b or "")

    def _key(p: str) -> str:
        return _unify(p).rstrip(SEPARATOR).casefold()

    return _key(a) == _key(b)


def _is_within(root: Path, target: Path) -> bool:
    root_key = str(root).casefold()
    target_key = str(target).casefold()
    if target_key == root_key:
        return True
    prefix = root_key if root_key.endswith(os.sep) else root_key + os.sep
    return target_key.startswith(prefix)


def resolve_within_root(root: Union[str, Path], relative_path: str) -> Resolution:
    """Resolve a relative path under root and verify it stays there.

    The joined path is canonicalized with Path.resolve(), which follows
    symlinks, and must still have root as a case-insensitive prefix.

    Args:
        root: Destination root directory.
        relative_path: Path relative to root.

    Returns:
        Resolution: with .path set on success, .error otherwise.
    """
    if is_unsafe(relative_path):
        return Resolution(
            error=PathError.UNSAFE,
            detail=f"unsafe relative path: {relative_path!r}",
        )

    canonical_root = Path(root).expanduser().resolve()
    target = Path(join(canonical_root, relative_path)).resolve()

    if not _is_within(canonical_root, target):
        return Resolution(
            error=PathError.OUT_OF_SCOPE,
            detail=f"{relative_path!r} resolves outside {canonical_root}",
        )

    return Resolution(path=target)
