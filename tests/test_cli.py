"""Tests for the skrepos command line."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from skrepos.cli import main
from skrepos.manifest import load_manifest, save_manifest
from skrepos.models import RepositoryRecord


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _use_fake_git(fake_git):
    """Every GitClient() the CLI creates is the fake."""
    with patch("skrepos.engine.GitClient", return_value=fake_git), \
         patch("skrepos.scanner.GitClient", return_value=fake_git):
        yield


def test_version(runner) -> None:
    """--version prints the program name."""
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "skrepos" in result.output


class TestScan:
    def test_lists_checkouts(self, runner, src_root, make_checkout, settings_home) -> None:
        """scan prints a table of checkouts and the count."""
        make_checkout(src_root / "app", "https://x/app.git")
        result = runner.invoke(
            main, ["scan", str(src_root), "--home", str(settings_home), "--skip-remote-check"]
        )
        assert result.exit_code == 0, result.output
        assert "app" in result.output
        assert "1" in result.output

    def test_exports_manifest(self, runner, src_root, make_checkout, settings_home, tmp_path) -> None:
        """--output writes the scan results as a manifest."""
        make_checkout(src_root / "app", "https://x/app.git")
        out = tmp_path / "out.xml"
        result = runner.invoke(main, [
            "scan", str(src_root), "--home", str(settings_home),
            "--skip-remote-check", "-o", str(out),
        ])
        assert result.exit_code == 0, result.output
        assert [r.relative_path for r in load_manifest(out)] == ["app"]

    def test_missing_root(self, runner, tmp_path, settings_home) -> None:
        """A root that is not a directory exits 1."""
        result = runner.invoke(
            main, ["scan", str(tmp_path / "nope"), "--home", str(settings_home)]
        )
        assert result.exit_code == 1


class TestSync:
    def test_full_sync(self, runner, src_root, tmp_path, settings_home, fake_git) -> None:
        """sync clones manifest-only entries and re-roots the manifest."""
        manifest = tmp_path / "repos.json"
        save_manifest(
            [RepositoryRecord(relative_path="app/api", remote_url="https://x/api.git")],
            manifest,
        )
        result = runner.invoke(main, [
            "sync", "--home", str(settings_home),
            "-d", str(src_root), "-m", str(manifest),
            "--skip-remote-check", "--machine", "DEV-1",
        ])
        assert result.exit_code == 0, result.output
        assert "CLONED" in result.output
        assert len(fake_git.clones) == 1
        data = json.loads(manifest.read_text())
        assert data[0]["RootPath"] == str(src_root.resolve())

    def test_needs_paths(self, runner, settings_home) -> None:
        """sync without a directory or manifest anywhere exits 1."""
        result = runner.invoke(main, ["sync", "--home", str(settings_home)])
        assert result.exit_code == 1
        assert "Need a local directory" in result.output

    def test_uses_config_paths(self, runner, src_root, tmp_path, settings_home) -> None:
        manifest = tmp_path / "repos.json"
        runner.invoke(main, ["config", "set", "local_dir", str(src_root), "--home", str(settings_home)])
        runner.invoke(main, ["config", "set", "manifest_path", str(manifest), "--home", str(settings_home)])
        result = runner.invoke(main, ["sync", "--home", str(settings_home), "--skip-remote-check"])
        assert result.exit_code == 0, result.output
        assert manifest.exists()

    def test_conflicting_policy_flags(self, runner, src_root, tmp_path, settings_home) -> None:
        """--force with --skip-existing is a usage error."""
        result = runner.invoke(main, [
            "sync", "--home", str(settings_home), "-d", str(src_root),
            "-m", str(tmp_path / "m.json"), "--force", "--skip-existing",
        ])
        assert result.exit_code == 2
        assert "mutually exclusive" in result.output

    def test_failed_clone_exit_code(self, runner, src_root, tmp_path, settings_home, fake_git) -> None:
        """Any failed clone makes sync exit 1."""
        fake_git.exit_codes["https://x/bad.git"] = 128
        manifest = tmp_path / "repos.json"
        save_manifest(
            [RepositoryRecord(relative_path="bad", remote_url="https://x/bad.git")],
            manifest,
        )
        result = runner.invoke(main, [
            "sync", "--home", str(settings_home), "-d", str(src_root),
            "-m", str(manifest), "--skip-remote-check",
        ])
        assert result.exit_code == 1
        assert "FAILED" in result.output

    def test_corrupt_manifest(self, runner, src_root, tmp_path, settings_home) -> None:
        """An unparseable manifest is reported and exits 1."""
        manifest = tmp_path / "repos.json"
        manifest.write_text("{nope")
        result = runner.invoke(main, [
            "sync", "--home", str(settings_home), "-d", str(src_root),
            "-m", str(manifest), "--skip-remote-check",
        ])
        assert result.exit_code == 1
        assert "Sync failed" in result.output

    def test_dry_run_lists_plan(self, runner, src_root, tmp_path, settings_home, fake_git) -> None:
        """--dry-run lists planned actions and changes nothing."""
        manifest = tmp_path / "repos.json"
        save_manifest(
            [RepositoryRecord(relative_path="a", remote_url="https://x/a.git")],
            manifest,
        )
        before = manifest.read_text()
        result = runner.invoke(main, [
            "sync", "--home", str(settings_home), "-d", str(src_root),
            "-m", str(manifest), "--skip-remote-check", "--dry-run",
        ])
        assert result.exit_code == 0, result.output
        assert "would" in result.output
        assert fake_git.clones == []
        assert manifest.read_text() == before


class TestRestore:
    def test_restore(self, runner, tmp_path, settings_home, fake_git) -> None:
        manifest = tmp_path / "repos.csv"
        save_manifest(
            [
                RepositoryRecord(relative_path="a", remote_url="https://x/a.git"),
                RepositoryRecord(relative_path="b", remote_url="https://x/b.git"),
            ],
            manifest,
        )
        dest = tmp_path / "dest"
        result = runner.invoke(main, [
            "restore", str(manifest), "--dest", str(dest), "--home", str(settings_home),
        ])
        assert result.exit_code == 0, result.output
        assert len(fake_git.clones) == 2
        assert (dest / "a" / ".git").is_dir()


class TestConfig:
    def test_set_and_show(self, runner, settings_home) -> None:
        """A value set with config set shows up in config show."""
        result = runner.invoke(main, ["config", "set", "remote_name", "upstream", "--home", str(settings_home)])
        assert result.exit_code == 0, result.output
        result = runner.invoke(main, ["config", "show", "--home", str(settings_home)])
        assert "remote_name: upstream" in result.output

    def test_unknown_key(self, runner, settings_home) -> None:
        """Setting an unknown key exits 1."""
        result = runner.invoke(main, ["config", "set", "bogus", "1", "--home", str(settings_home)])
        assert result.exit_code == 1

    def test_invalid_value(self, runner, settings_home) -> None:
        result = runner.invoke(main, ["config", "set", "manifest_format", "yaml", "--home", str(settings_home)])
        assert result.exit_code == 1


class TestSchedule:
    @patch("skrepos.cli.schedule_cmd.install_timer")
    @patch("skrepos.cli.schedule_cmd.systemd_available", return_value=True)
    def test_install(self, _avail, mock_install, runner) -> None:
        """schedule install passes the interval through."""
        mock_install.return_value = {"installed": True, "enabled": True, "started": True}
        result = runner.invoke(main, ["schedule", "install", "--interval", "30min"])
        assert result.exit_code == 0, result.output
        assert mock_install.call_args[1]["interval"] == "30min"
        assert "Timer installed" in result.output

    @patch("skrepos.cli.schedule_cmd.systemd_available", return_value=False)
    def test_install_without_systemd(self, _avail, runner) -> None:
        result = runner.invoke(main, ["schedule", "install"])
        assert result.exit_code == 1
