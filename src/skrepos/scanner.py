"""
Repository scanner -- find every checkout under a root.

Breadth-first walk with an explicit queue. A directory holding a .git
entry is a checkout root and a leaf: the walk never looks inside it,
so submodules and vendored repos inside a checkout are not reported
as separate records.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from pathlib import Path
from typing import Optional, Union

from . import paths
from .git import GIT_DIR_NAME, GitClient, find_git_dir, last_activity, read_git_config
from .models import RepositoryRecord

logger = logging.getLogger("skrepos.scanner")


class RepositoryScanner:
    """Discovers checkouts and reads their metadata from disk.

    Args:
        remote_name: Remote whose URL is recorded.
        git: Client used for reachability probes. Created on first
            probe when omitted.
        probe_timeout: Seconds to wait for each ls-remote probe.
    """

    def __init__(
        self,
        remote_name: str = "origin",
        git: Optional[GitClient] = None,
        probe_timeout: float = 10.0,
    ):
        self.remote_name = remote_name
        self.probe_timeout = probe_timeout
        self._git = git

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
        """Walk root and return one record per checkout found.

        Args:
            root: Directory to scan.
            check_remote_accessibility: Probe each remote URL.

        Returns:
            list[RepositoryRecord]: In discovery (breadth-first) order.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.is_dir():
            logger.warning("Scan root does not exist: %s", root_path)
            return []

        records: list[RepositoryRecord] = []
        queue: deque[Path] = deque([root_path])

        while queue:
            current = queue.popleft()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as exc:
                logger.warning("Skipping %s: %s", current, exc)
                continue

            if any(e.name == GIT_DIR_NAME for e in entries):
                git_dir = find_git_dir(current)
                if git_dir is not None:
                    records.append(
                        self._build_record(
                            root_path, current, git_dir, check_remote_accessibility
                        )
                    )
                    continue

            for entry in entries:
                if entry.name == GIT_DIR_NAME:
                    continue
                try:
                    if entry.is_dir(follow_symlinks=False):
                        queue.append(Path(entry.path))
                except OSError as exc:
                    logger.warning("Skipping %s: %s", entry.path, exc)

        logger.info("Scanned %s: %d checkout(s)", root_path, len(records))
        return records

    def _build_record(
        self,
        root: Path,
        checkout: Path,
        git_dir: Path,
        check_remote_accessibility: bool,
    ) -> RepositoryRecord:
        relative = paths.normalize(checkout.relative_to(root).as_posix())
        meta = read_git_config(git_dir, self.remote_name)

        accessible: Optional[bool] = None
        if check_remote_accessibility:
            accessible = self._probe(meta.remote_url)

        record = RepositoryRecord(
            root_path=str(root),
            relative_path=relative,
            full_path=paths.join(root, relative),
            remote_name=meta.remote_name,
            remote_url=meta.remote_url,
            user_name=meta.user_name,
            user_email=meta.user_email,
            status_date=last_activity(git_dir),
            is_remote_accessible=accessible,
        )
        logger.debug("Found checkout %s -> %s", relative, meta.remote_url or "(no remote)")
        return record

    def _probe(self, url: str) -> bool:
        if not url:
            return False
        return self.git.probe(url, timeout=self.probe_timeout)
