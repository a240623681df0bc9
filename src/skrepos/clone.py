"""
Clone orchestration -- materialize manifest-only checkouts.

Each queued entry is gated (URL, path, system filter, root scope,
existing target) and then cloned. One bad entry never stops the
batch: every entry produces exactly one CloneOutcome.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import sys
from pathlib import Path
from typing import Iterable, Optional, Protocol, Union

from . import paths
from .models import (
    CloneOutcome,
    CloneRequest,
    CloneStatus,
    ExistingPolicy,
    RepositoryRecord,
    SkipReason,
)
from .system_filter import matches

logger = logging.getLogger("skrepos.clone")


class CloneBackend(Protocol):
    """What the orchestrator needs from a git client."""

    def clone(self, url: str, target: Path) -> int: ...

    def configure_identity(
        self,
        target: Path,
        user_name: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> bool: ...


def _make_writable_and_retry(func, path, _exc_info) -> None:
    """rmtree error hook: git object files are often read-only."""
    os.chmod(path, stat.S_IWRITE | stat.S_IREAD)
    func(path)


def remove_tree(target: Path) -> None:
    """Delete a directory tree, clearing read-only bits as needed."""
    if target.is_symlink() or target.is_file():
        target.unlink()
        return
    if sys.version_info >= (3, 12):
        shutil.rmtree(target, onexc=_make_writable_and_retry)
    else:
        shutil.rmtree(target, onerror=_make_writable_and_retry)


def requests_from_records(
    records: Iterable[RepositoryRecord],
) -> tuple[list[CloneRequest], list[CloneOutcome]]:
    """Turn manifest records into a clone queue.

    Records with unsafe relative paths never reach the queue; they come
    back as out-of-scope outcomes instead.

    Returns:
        (queue, rejected outcomes)
    """
    queue: list[CloneRequest] = []
    rejected: list[CloneOutcome] = []
    for record in records:
        request = CloneRequest.from_record(record)
        if paths.is_unsafe(record.relative_path):
            logger.warning("Rejecting unsafe path: %s", record.relative_path)
            rejected.append(
                CloneOutcome.skipped(
                    request, SkipReason.OUT_OF_SCOPE, "unsafe relative path"
                )
            )
            continue
        queue.append(request)
    return queue, rejected


class CloneOrchestrator:
    """Clones queued entries into a destination root.

    Args:
        git: Backend that performs clone and identity config. May be
            None for dry runs, which never reach it.
        machine_identity: Name matched against each entry's system filter.
        dry_run: Report what would happen without touching disk.
    """

    def __init__(
        self,
        git: Optional[CloneBackend],
        machine_identity: str,
        dry_run: bool = False,
    ):
        self.git = git
        self.machine_identity = machine_identity
        self.dry_run = dry_run

    def materialize(
        self,
        queue: Iterable[CloneRequest],
        destination_root: Union[str, Path],
        policy: ExistingPolicy = ExistingPolicy.SKIP,
    ) -> list[CloneOutcome]:
        """Process the queue in order.

        Args:
            queue: Entries to materialize.
            destination_root: Directory every clone must land under.
            policy: Handling of targets that already exist.

        Returns:
            list[CloneOutcome]: One per queued entry, in queue order.
        """
        outcomes = [
            self._materialize_one(request, destination_root, policy)
            for request in queue
        ]

        cloned = sum(1 for o in outcomes if o.status == CloneStatus.CLONED)
        failed = sum(1 for o in outcomes if o.status == CloneStatus.FAILED)
        logger.info(
            "Materialize finished: %d cloned, %d failed, %d skipped",
            cloned, failed, len(outcomes) - cloned - failed,
        )
        return outcomes

    def _materialize_one(
        self,
        request: CloneRequest,
        destination_root: Union[str, Path],
        policy: ExistingPolicy,
    ) -> CloneOutcome:
        if not request.remote_url:
            logger.warning("Skipping %s: no remote URL", request.relative_path)
            return CloneOutcome.skipped(request, SkipReason.MISSING_URL, "no remote URL")

        if paths.normalize(request.relative_path) == paths.ROOT:
            logger.warning("Skipping %s: empty relative path", request.remote_url)
            return CloneOutcome.skipped(request, SkipReason.EMPTY_PATH, "empty relative path")

        if not matches(request.system_filter, self.machine_identity):
            logger.info(
                "Skipping %s: system filter %r excludes %s",
                request.relative_path, request.system_filter, self.machine_identity,
            )
            return CloneOutcome.skipped(
                request,
                SkipReason.FILTERED,
                f"filter {request.system_filter!r} excludes {self.machine_identity}",
            )

        resolution = paths.resolve_within_root(destination_root, request.relative_path)
        if not resolution.ok:
            logger.warning("Skipping %s: %s", request.relative_path, resolution.detail)
            return CloneOutcome.skipped(
                request, SkipReason.OUT_OF_SCOPE, resolution.detail
            )
        target = resolution.path

        if target.exists():
            if policy == ExistingPolicy.SKIP:
                logger.info("Skipping %s: target exists", target)
                return CloneOutcome.skipped(
                    request, SkipReason.ALREADY_EXISTS, "target exists", target
                )
            if policy == ExistingPolicy.DEFAULT:
                logger.warning(
                    "Target %s already exists; not cloning %s. "
                    "Use force to replace it.",
                    target, request.remote_url,
                )
                return CloneOutcome.skipped(
                    request,
                    SkipReason.ALREADY_EXISTS,
                    "target exists (use force to replace)",
                    target,
                )
            if self.dry_run:
                return CloneOutcome.skipped(
                    request, SkipReason.DRY_RUN, "would replace and clone", target
                )
            try:
                remove_tree(target)
            except OSError as exc:
                logger.error("Could not remove %s: %s", target, exc)
                return CloneOutcome.skipped(
                    request, SkipReason.REMOVE_FAILED, str(exc), target
                )
            logger.info("Removed existing %s before clone", target)

        if self.dry_run:
            logger.info("[dry-run] would clone %s -> %s", request.remote_url, target)
            return CloneOutcome.skipped(request, SkipReason.DRY_RUN, "would clone", target)

        logger.info("Cloning %s -> %s", request.remote_url, target)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            exit_code = self.git.clone(request.remote_url, target)
        except OSError as exc:
            logger.error("Could not clone %s into %s: %s", request.remote_url, target, exc)
            return CloneOutcome.failed(request, target, -1, str(exc))
        if exit_code != 0:
            return CloneOutcome.failed(
                request, target, exit_code, f"git clone exited with {exit_code}"
            )

        if request.user_name or request.user_email:
            try:
                configured = self.git.configure_identity(
                    target, request.user_name, request.user_email
                )
            except OSError as exc:
                logger.warning("Identity config failed for %s: %s", target, exc)
                configured = False
            if not configured:
                logger.warning("Cloned %s but could not set its identity", target)

        return CloneOutcome.cloned(request, target)
