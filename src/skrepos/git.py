"""
Git collaborator -- the only place that talks to the git executable.

Two halves:

    read_git_config / find_git_dir / last_activity
        pure on-disk readers used while scanning; they never spawn git.

    GitClient
        clone, local identity config, and the ls-remote reachability
        probe. Success or failure comes from the process exit code.
"""

from __future__ import annotations

import configparser
import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import GitNotFoundError

logger = logging.getLogger("skrepos.git")

GIT_DIR_NAME = ".git"

_REMOTE_SECTION_RE = re.compile(r'^remote\s+"(?P<name>[^"]+)"$')


@dataclass
class GitMetadata:
    """Fields read from a checkout's git config file."""

    remote_name: str = ""
    remote_url: str = ""
    user_name: Optional[str] = None
    user_email: Optional[str] = None


def find_git_dir(checkout: Path) -> Optional[Path]:
    """Locate the metadata directory for a checkout.

    Handles both a plain .git directory and the "gitdir: <path>"
    pointer file that worktrees and submodules use.

    Args:
        checkout: Directory that may contain a .git entry.

    Returns:
        Path to the metadata directory, or None if there is none.
    """
    marker = checkout / GIT_DIR_NAME
    if marker.is_dir():
        return marker
    if marker.is_file():
        try:
            content = marker.read_text(encoding="utf-8").strip()
        except OSError as exc:
            logger.warning("Could not read %s: %s", marker, exc)
            return None
        if content.startswith("gitdir:"):
            target = Path(content[len("gitdir:"):].strip())
            if not target.is_absolute():
                target = (checkout / target).resolve()
            return target if target.is_dir() else None
    return None


def _config_file(git_dir: Path) -> Path:
    """Worktree metadata dirs point at the shared config via commondir."""
    config = git_dir / "config"
    if config.exists():
        return config
    commondir = git_dir / "commondir"
    if commondir.is_file():
        try:
            common = Path(commondir.read_text(encoding="utf-8").strip())
        except OSError:
            return config
        if not common.is_absolute():
            common = (git_dir / common).resolve()
        return common / "config"
    return config


def read_git_config(git_dir: Path, remote_name: str = "origin") -> GitMetadata:
    """Read remote and identity settings from a git config file.

    When remote_name is not configured, the first remote in the file
    is reported instead so the record still carries a URL.

    Args:
        git_dir: The checkout's metadata directory.
        remote_name: Preferred remote.

    Returns:
        GitMetadata (empty fields when the file is missing or unreadable).
    """
    meta = GitMetadata()
    config_file = _config_file(git_dir)
    if not config_file.exists():
        return meta

    parser = configparser.RawConfigParser(
        strict=False, interpolation=None, allow_no_value=True
    )
    try:
        parser.read_string(config_file.read_text(encoding="utf-8", errors="replace"))
    except (OSError, configparser.Error) as exc:
        logger.warning("Could not parse %s: %s", config_file, exc)
        return meta

    remotes: dict[str, str] = {}
    for section in parser.sections():
        match = _REMOTE_SECTION_RE.match(section.strip())
        if match and parser.has_option(section, "url"):
            remotes[match.group("name")] = (parser.get(section, "url") or "").strip()

    if remote_name in remotes:
        meta.remote_name = remote_name
        meta.remote_url = remotes[remote_name]
    elif remotes:
        first = next(iter(remotes))
        meta.remote_name = first
        meta.remote_url = remotes[first]

    if parser.has_section("user"):
        if parser.has_option("user", "name"):
            meta.user_name = (parser.get("user", "name") or "").strip() or None
        if parser.has_option("user", "email"):
            meta.user_email = (parser.get("user", "email") or "").strip() or None

    return meta


def _newest_mtime(paths: list[Path]) -> Optional[float]:
    newest: Optional[float] = None
    for p in paths:
        try:
            mtime = p.stat().st_mtime
        except OSError:
            continue
        if newest is None or mtime > newest:
            newest = mtime
    return newest


def last_activity(git_dir: Path) -> Optional[datetime]:
    """Most recent ref update, falling back to the metadata dir mtime."""
    candidates = [git_dir / "logs" / "HEAD", git_dir / "packed-refs"]
    refs_dir = git_dir / "refs"
    if refs_dir.is_dir():
        try:
            candidates.extend(p for p in refs_dir.rglob("*") if p.is_file())
        except OSError as exc:
            logger.debug("Could not walk %s: %s", refs_dir, exc)

    newest = _newest_mtime(candidates)
    if newest is None:
        newest = _newest_mtime([git_dir])
    if newest is None:
        return None
    return datetime.fromtimestamp(newest, tz=timezone.utc)


class GitClient:
    """Thin wrapper around the git executable.

    Raises GitNotFoundError at construction when git is not on PATH.
    """

    def __init__(self, executable: Optional[str] = None):
        found = executable or shutil.which("git")
        if not found:
            raise GitNotFoundError(
                "git executable not found on PATH. Install git and try again."
            )
        self.executable = found

    def _run(
        self, args: list[str], timeout: Optional[float] = None
    ) -> subprocess.CompletedProcess:
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        return subprocess.run(
            [self.executable, *args],
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
            env=env,
        )

    def clone(self, url: str, target: Path) -> int:
        """Clone url into target, including submodules.

        Returns:
            int: git's exit code (0 on success).
        """
        result = self._run(["clone", "--recurse-submodules", url, str(target)])
        if result.returncode != 0:
            logger.error(
                "git clone %s failed (%d): %s",
                url, result.returncode, result.stderr.strip(),
            )
        return result.returncode

    def configure_identity(
        self,
        target: Path,
        user_name: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> bool:
        """Set user.name / user.email in the checkout's local config.

        Returns:
            bool: True if every requested setting was written.
        """
        ok = True
        for key, value in (("user.name", user_name), ("user.email", user_email)):
            if not value:
                continue
            result = self._run(["-C", str(target), "config", "--local", key, value])
            if result.returncode != 0:
                logger.warning(
                    "git config %s failed in %s: %s",
                    key, target, result.stderr.strip(),
                )
                ok = False
        return ok

    def probe(self, url: str, timeout: float = 10.0) -> bool:
        """Check whether a remote answers ls-remote within timeout."""
        if not url:
            return False
        try:
            result = self._run(["ls-remote", "--heads", url], timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.debug("ls-remote %s timed out after %.1fs", url, timeout)
            return False
        except OSError as exc:
            logger.debug("ls-remote %s could not run: %s", url, exc)
            return False
        return result.returncode == 0
