"""
Fatal error types.

Only conditions that abort a whole run are exceptions. Per-record
problems (bad paths, failed clones, filtered entries) are reported
as CloneOutcome values and never raised.
"""

from __future__ import annotations


class SkReposError(Exception):
    """Base class for errors that abort a run."""


class GitNotFoundError(SkReposError):
    """Raised when the git executable cannot be located."""


class ManifestError(SkReposError):
    """Raised when a manifest exists but cannot be parsed."""


class ManifestWriteError(SkReposError):
    """Raised when the merged manifest cannot be written."""
