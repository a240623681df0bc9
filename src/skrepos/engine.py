"""
Sync Engine -- one end-to-end inventory sync.

    start -> load_manifest -> scan_local -> reconcile
          -> clone_missing -> persist -> done

    skrepos sync     ->  load -> scan -> merge -> clone -> write if changed
    skrepos restore  ->  clone every manifest record into a root

Dry-run swaps every mutating step (root creation, clones, the manifest
write) for a no-op that records what would have happened.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field

from .clone import CloneOrchestrator, requests_from_records
from .git import GitClient
from .manifest import ManifestFormat, load_manifest, save_manifest
from .models import (
    CloneOutcome,
    CloneStatus,
    ExistingPolicy,
    RepositoryRecord,
    SkipReason,
)
from .reconcile import reconcile
from .scanner import RepositoryScanner
from .system_filter import current_machine_identity

logger = logging.getLogger("skrepos.engine")


class SyncPhase(str, Enum):
    """States a sync run passes through."""

    START = "start"
    LOAD_MANIFEST = "load_manifest"
    SCAN_LOCAL = "scan_local"
    RECONCILE = "reconcile"
    CLONE_MISSING = "clone_missing"
    PERSIST = "persist"
    DONE = "done"


class SyncResult(BaseModel):
    """Everything a sync run produced."""

    records: list[RepositoryRecord] = Field(default_factory=list)
    outcomes: list[CloneOutcome] = Field(default_factory=list)
    changed: bool = False
    manifest_existed: bool = False
    root_created: bool = False
    persisted: bool = False
    dry_run: bool = False
    planned: list[str] = Field(default_factory=list)
    phases: list[SyncPhase] = Field(default_factory=list)

    def _count(self, status: CloneStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def cloned(self) -> int:
        return self._count(CloneStatus.CLONED)

    @property
    def skipped(self) -> int:
        return self._count(CloneStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(CloneStatus.FAILED)


class SyncEngine:
    """Sequences scan, reconcile, clone and persist.

    Args:
        machine_identity: Name matched against system filters.
            Defaults to this machine's hostname.
        git: Git client. Created on first use when omitted, so a run
            that never clones or probes does not need git installed.
        remote_name: Remote whose URL is recorded while scanning.
        probe_timeout: Seconds per reachability probe.
    """

    def __init__(
        self,
        machine_identity: Optional[str] = None,
        git: Optional[GitClient] = None,
        remote_name: str = "origin",
        probe_timeout: float = 10.0,
    ):
        self.machine_identity = machine_identity or current_machine_identity()
        self._git = git
        self.remote_name = remote_name
        self.probe_timeout = probe_timeout

    @property
    def git(self) -> GitClient:
        if self._git is None:
            self._git = GitClient()
        return self._git

    def scan(
        self,
        root: Union[str, Path],
        check_remote_accessibility: bool = True,
    ) -> list[RepositoryRecord]:
        """Discover checkouts under root."""
        scanner = RepositoryScanner(
            remote_name=self.remote_name,
            git=self.git if check_remote_accessibility else self._git,
            probe_timeout=self.probe_timeout,
        )
        return scanner.scan(root, check_remote_accessibility)

    def sync(
        self,
        local_dir: Union[str, Path],
        manifest_path: Union[str, Path],
        policy: ExistingPolicy = ExistingPolicy.SKIP,
        dry_run: bool = False,
        manifest_format: Optional[Union[str, ManifestFormat]] = None,
        check_remote_accessibility: bool = True,
        default_format: ManifestFormat = ManifestFormat.JSON,
    ) -> SyncResult:
        """Run one full sync cycle.

        Args:
            local_dir: This machine's checkout root.
            manifest_path: Shared manifest file.
            policy: Handling of clone targets that already exist.
            dry_run: Report mutations instead of performing them.
            manifest_format: Codec override.
            check_remote_accessibility: Probe remotes while scanning.
            default_format: Codec when the extension is unrecognized.

        Returns:
            SyncResult

        Raises:
            ManifestError: The manifest exists but cannot be parsed.
            ManifestWriteError: The merged manifest cannot be written.
            GitNotFoundError: git is needed but not installed.
        """
        root = Path(local_dir).expanduser()
        manifest_file = Path(manifest_path).expanduser()
        result = SyncResult(dry_run=dry_run, phases=[SyncPhase.START])

        # load_manifest
        manifest_records: list[RepositoryRecord] = []
        result.manifest_existed = manifest_file.exists()
        if result.manifest_existed:
            result.phases.append(SyncPhase.LOAD_MANIFEST)
            manifest_records = load_manifest(manifest_file, manifest_format, default_format)
        else:
            logger.info("No manifest at %s yet; starting empty", manifest_file)

        # scan_local
        result.phases.append(SyncPhase.SCAN_LOCAL)
        local_records: list[RepositoryRecord] = []
        if not root.exists():
            if dry_run:
                result.planned.append(f"create directory {root}")
                logger.info("[dry-run] would create %s", root)
            else:
                root.mkdir(parents=True, exist_ok=True)
                result.root_created = True
                logger.info("Created local root %s", root)
        if root.exists():
            local_records = self.scan(root, check_remote_accessibility)

        # reconcile
        result.phases.append(SyncPhase.RECONCILE)
        merged = reconcile(local_records, manifest_records, root)
        result.records = merged.records
        result.changed = merged.changed

        # clone_missing
        if merged.to_clone:
            result.phases.append(SyncPhase.CLONE_MISSING)
            orchestrator = CloneOrchestrator(
                self._git if dry_run else self.git,
                self.machine_identity,
                dry_run=dry_run,
            )
            result.outcomes = orchestrator.materialize(merged.to_clone, root, policy)
            if dry_run:
                result.planned.extend(
                    f"clone {o.remote_url} -> {o.target_path}"
                    for o in result.outcomes
                    if o.reason == SkipReason.DRY_RUN
                )

        # persist
        if result.changed or not result.manifest_existed:
            result.phases.append(SyncPhase.PERSIST)
            if dry_run:
                result.planned.append(f"write manifest {manifest_file}")
                logger.info("[dry-run] would write %s", manifest_file)
            else:
                save_manifest(result.records, manifest_file, manifest_format, default_format)
                result.persisted = True
        else:
            logger.info("Manifest unchanged; not writing %s", manifest_file)

        result.phases.append(SyncPhase.DONE)
        logger.info(
            "Sync done: %d record(s), changed=%s, cloned=%d, failed=%d",
            len(result.records), result.changed, result.cloned, result.failed,
        )
        return result

    def restore(
        self,
        records: Iterable[RepositoryRecord],
        destination_root: Union[str, Path],
        policy: ExistingPolicy = ExistingPolicy.SKIP,
        dry_run: bool = False,
    ) -> list[CloneOutcome]:
        """Clone every record into destination_root.

        Returns:
            list[CloneOutcome]: Unsafe-path rejections first, then one
            outcome per remaining record in input order.
        """
        queue, rejected = requests_from_records(records)
        root = Path(destination_root).expanduser()
        if not dry_run:
            root.mkdir(parents=True, exist_ok=True)

        orchestrator = CloneOrchestrator(
            self._git if dry_run else self.git,
            self.machine_identity,
            dry_run=dry_run,
        )
        return rejected + orchestrator.materialize(queue, root, policy)

