"""
Inventory data models -- records, clone requests and outcomes.

RepositoryRecord is the unit that travels through the manifest.
Keys serialize in PascalCase (RootPath, RelativePath, ...) so the
manifest stays readable by every machine on the mesh regardless of
which codec wrote it.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_pascal

from . import paths


class RepositoryRecord(BaseModel):
    """One git checkout on some machine.

    Attributes:
        root_path: Absolute scan root the record belongs to.
        relative_path: Checkout path relative to root_path ("." = root).
        full_path: root_path joined with relative_path.
        remote_name: Configured remote (usually "origin").
        remote_url: URL of that remote; empty when none is configured.
        user_name: Per-checkout user.name, if set.
        user_email: Per-checkout user.email, if set.
        status_date: Most recent ref activity.
        is_remote_accessible: True/False when probed, None when unknown.
        system_filter: Machine patterns that should materialize this record.
    """

    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        validate_assignment=True,
    )

    root_path: str = ""
    relative_path: str = paths.ROOT
    full_path: str = ""
    remote_name: str = ""
    remote_url: str = ""
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    status_date: Optional[datetime] = None
    is_remote_accessible: Optional[bool] = None
    system_filter: Optional[str] = None

    @field_validator("relative_path", mode="before")
    @classmethod
    def _normalize_relative_path(cls, value: Optional[str]) -> str:
        return paths.normalize(value)

    @field_validator("remote_name", "remote_url", "root_path", "full_path", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Optional[str]) -> str:
        return "" if value is None else str(value).strip()

    @property
    def key(self) -> str:
        """Case-insensitive identity key."""
        return self.relative_path.casefold()

    def rooted(self, root: Union[str, Path]) -> "RepositoryRecord":
        """Return a copy re-anchored under another root."""
        root_str = str(root)
        return self.model_copy(
            update={
                "root_path": root_str,
                "full_path": paths.join(root_str, self.relative_path),
            }
        )


class CloneRequest(BaseModel):
    """A manifest-only record queued for cloning."""

    relative_path: str
    remote_url: str = ""
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    system_filter: Optional[str] = None

    @classmethod
    def from_record(cls, record: RepositoryRecord) -> "CloneRequest":
        return cls(
            relative_path=record.relative_path,
            remote_url=record.remote_url,
            user_name=record.user_name,
            user_email=record.user_email,
            system_filter=record.system_filter,
        )


class CloneStatus(str, Enum):
    """Final state of one clone attempt."""

    CLONED = "cloned"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(str, Enum):
    """Why a queued clone was not attempted."""

    MISSING_URL = "missing_url"
    EMPTY_PATH = "empty_path"
    FILTERED = "filtered"
    OUT_OF_SCOPE = "out_of_scope"
    ALREADY_EXISTS = "already_exists"
    REMOVE_FAILED = "remove_failed"
    DRY_RUN = "dry_run"


class ExistingPolicy(str, Enum):
    """What to do when a clone target already exists."""

    SKIP = "skip"
    DEFAULT = "default"
    FORCE = "force"


class CloneOutcome(BaseModel):
    """Result of materializing one queued record."""

    remote_url: str = ""
    target_path: str = ""
    relative_path: str = ""
    status: CloneStatus
    reason: Optional[SkipReason] = None
    exit_code: Optional[int] = None
    message: str = ""

    @classmethod
    def cloned(cls, request: CloneRequest, target: Path) -> "CloneOutcome":
        return cls(
            remote_url=request.remote_url,
            relative_path=request.relative_path,
            target_path=str(target),
            status=CloneStatus.CLONED,
        )

    @classmethod
    def skipped(
        cls,
        request: CloneRequest,
        reason: SkipReason,
        message: str = "",
        target: Optional[Path] = None,
    ) -> "CloneOutcome":
        return cls(
            remote_url=request.remote_url,
            relative_path=request.relative_path,
            target_path=str(target) if target else "",
            status=CloneStatus.SKIPPED,
            reason=reason,
            message=message,
        )

    @classmethod
    def failed(
        cls, request: CloneRequest, target: Path, exit_code: int, message: str = ""
    ) -> "CloneOutcome":
        return cls(
            remote_url=request.remote_url,
            relative_path=request.relative_path,
            target_path=str(target),
            status=CloneStatus.FAILED,
            exit_code=exit_code,
            message=message,
        )


class ReconcileResult(BaseModel):
    """Output of one reconciliation pass."""

    records: list[RepositoryRecord] = Field(default_factory=list)
    changed: bool = False
    to_clone: list[CloneRequest] = Field(default_factory=list)
