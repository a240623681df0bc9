"""Shared test fixtures for skrepos."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import pytest


def write_checkout(
    checkout: Path,
    remote_url: str = "",
    remote_name: str = "origin",
    user_name: Optional[str] = None,
    user_email: Optional[str] = None,
) -> Path:
    """Create a directory that looks like a git checkout on disk."""
    git_dir = checkout / ".git"
    (git_dir / "refs" / "heads").mkdir(parents=True, exist_ok=True)
    (git_dir / "logs").mkdir(exist_ok=True)

    lines = [
        "[core]",
        "\trepositoryformatversion = 0",
        "\tbare = false",
    ]
    if remote_url:
        lines += [
            f'[remote "{remote_name}"]',
            f"\turl = {remote_url}",
            f"\tfetch = +refs/heads/*:refs/remotes/{remote_name}/*",
        ]
    if user_name or user_email:
        lines.append("[user]")
        if user_name:
            lines.append(f"\tname = {user_name}")
        if user_email:
            lines.append(f"\temail = {user_email}")
    (git_dir / "config").write_text("\n".join(lines) + "\n")
    (git_dir / "HEAD").write_text("ref: refs/heads/main\n")
    (git_dir / "refs" / "heads" / "main").write_text("0" * 40 + "\n")
    (git_dir / "logs" / "HEAD").write_text("")
    return checkout


class FakeGit:
    """Git double: records calls, materializes checkouts on clone.

    Attributes:
        exit_codes: Per-URL exit codes; URLs not listed succeed.
        identity_ok: What configure_identity reports.
        clones: (url, target) pairs in call order.
        identities: (target, name, email) triples in call order.
        probes: URLs probed.
        reachable: URLs the probe reports as reachable.
    """

    def __init__(self) -> None:
        self.exit_codes: dict[str, int] = {}
        self.identity_ok = True
        self.clones: list[tuple[str, Path]] = []
        self.identities: list[tuple[Path, Optional[str], Optional[str]]] = []
        self.probes: list[str] = []
        self.reachable: set[str] = set()

    def clone(self, url: str, target: Path) -> int:
        self.clones.append((url, target))
        code = self.exit_codes.get(url, 0)
        if code == 0:
            write_checkout(target, remote_url=url)
        return code

    def configure_identity(self, target, user_name=None, user_email=None) -> bool:
        self.identities.append((target, user_name, user_email))
        if not self.identity_ok:
            return False
        config = Path(target) / ".git" / "config"
        lines = ["[user]"]
        if user_name:
            lines.append(f"\tname = {user_name}")
        if user_email:
            lines.append(f"\temail = {user_email}")
        with config.open("a") as fh:
            fh.write("\n".join(lines) + "\n")
        return True

    def probe(self, url: str, timeout: float = 10.0) -> bool:
        self.probes.append(url)
        return url in self.reachable


@pytest.fixture
def make_checkout() -> Callable[..., Path]:
    """Factory that lays out a fake checkout at a path."""
    return write_checkout


@pytest.fixture
def fake_git() -> FakeGit:
    """A fresh git double."""
    return FakeGit()


@pytest.fixture
def src_root(tmp_path: Path) -> Path:
    """An empty local checkout root."""
    root = tmp_path / "src"
    root.mkdir()
    return root


@pytest.fixture
def settings_home(tmp_path: Path) -> Path:
    """A private settings directory so tests never read ~/.skrepos."""
    home = tmp_path / ".skrepos"
    home.mkdir()
    return home
