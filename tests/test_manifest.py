"""Tests for the JSON / CSV / XML manifest codec."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from skrepos.errors import ManifestError, ManifestWriteError
from skrepos.manifest import (
    ManifestFormat,
    detect_format,
    dumps,
    field_names,
    load_manifest,
    loads,
    save_manifest,
)
from skrepos.models import RepositoryRecord


@pytest.fixture
def records() -> list[RepositoryRecord]:
    return [
        RepositoryRecord(
            root_path="/home/me/src",
            relative_path="app/api",
            full_path="/home/me/src/app/api",
            remote_name="origin",
            remote_url="https://x/api.git",
            user_name="Chef",
            user_email="chef@x",
            status_date=datetime(2026, 2, 3, 4, 5, 6, tzinfo=timezone.utc),
            is_remote_accessible=True,
            system_filter="DEV-*,!DEV-TEST",
        ),
        RepositoryRecord(
            root_path="/home/me/src",
            relative_path="lib/odd & <name>",
            remote_url="git@host:odd.git",
            is_remote_accessible=False,
        ),
        RepositoryRecord(root_path="/home/me/src", relative_path="."),
    ]


class TestDetectFormat:
    def test_extension(self) -> None:
        assert detect_format("m.json") == ManifestFormat.JSON
        assert detect_format("m.CSV") == ManifestFormat.CSV
        assert detect_format("m.xml") == ManifestFormat.XML

    def test_override_wins(self) -> None:
        """An explicit format beats the extension."""
        assert detect_format("m.json", "xml") == ManifestFormat.XML
        assert detect_format("m.json", ManifestFormat.CSV) == ManifestFormat.CSV

    def test_default_for_unknown_extension(self) -> None:
        """Unknown extensions use the configured default."""
        assert detect_format("repos.txt") == ManifestFormat.JSON
        assert detect_format("repos", default=ManifestFormat.CSV) == ManifestFormat.CSV


@pytest.mark.parametrize("fmt", list(ManifestFormat))
def test_round_trip_keeps_every_record(fmt, records, tmp_path: Path) -> None:
    """Every codec reads back what it wrote."""
    path = tmp_path / f"repos.{fmt.value}"
    save_manifest(records, path)
    loaded = load_manifest(path)

    assert [r.relative_path for r in loaded] == [r.relative_path for r in records]
    assert [r.remote_url for r in loaded] == [r.remote_url for r in records]
    assert loaded[0].status_date == records[0].status_date
    assert loaded[0].is_remote_accessible is True
    assert loaded[1].is_remote_accessible is False
    assert loaded[2].is_remote_accessible is None
    assert loaded[0].system_filter == "DEV-*,!DEV-TEST"
    assert loaded[2].user_name is None


class TestJson:
    def test_pascal_case_keys(self, records) -> None:
        """JSON keys are PascalCase field names."""
        data = json.loads(dumps(records, ManifestFormat.JSON))
        assert data[0]["RelativePath"] == "app/api"
        assert data[0]["RemoteUrl"] == "https://x/api.git"
        assert "IsRemoteAccessible" in data[0]
        assert "SystemFilter" in data[0]

    def test_single_object_accepted(self) -> None:
        """A single JSON object is read as one record."""
        text = json.dumps({"RelativePath": "solo", "RemoteUrl": "https://x/s.git"})
        (record,) = loads(text, ManifestFormat.JSON)
        assert record.relative_path == "solo"

    def test_backslash_paths_normalized_on_load(self) -> None:
        text = json.dumps([{"RelativePath": "app\\api"}])
        assert loads(text, ManifestFormat.JSON)[0].relative_path == "app/api"

    def test_empty_file_is_empty_manifest(self) -> None:
        """An empty file is an empty manifest."""
        assert loads("  \n", ManifestFormat.JSON) == []

    def test_invalid_json_is_fatal(self) -> None:
        """Malformed JSON raises ManifestError."""
        with pytest.raises(ManifestError, match="invalid JSON"):
            loads("{not json", ManifestFormat.JSON)

    def test_wrong_shape_is_fatal(self) -> None:
        with pytest.raises(ManifestError):
            loads("[1, 2]", ManifestFormat.JSON)

    def test_bom_tolerated(self, tmp_path: Path) -> None:
        """A UTF-8 byte order mark is ignored."""
        path = tmp_path / "bom.json"
        path.write_bytes(b"\xef\xbb\xbf" + json.dumps([{"RelativePath": "a"}]).encode())
        assert load_manifest(path)[0].relative_path == "a"


class TestCsv:
    def test_header_is_field_names(self, records) -> None:
        """The CSV header lists every field in order."""
        header = dumps(records, ManifestFormat.CSV).splitlines()[0]
        assert header.split(",") == field_names()

    def test_blank_cells_become_none(self) -> None:
        """Blank CSV cells load as missing values."""
        text = "RelativePath,RemoteUrl,StatusDate,IsRemoteAccessible\nx,https://x/x.git,,\n"
        (record,) = loads(text, ManifestFormat.CSV)
        assert record.status_date is None
        assert record.is_remote_accessible is None

    def test_invalid_value_is_fatal(self) -> None:
        text = "RelativePath,IsRemoteAccessible\nx,perhaps\n"
        with pytest.raises(ManifestError, match="invalid record #1"):
            loads(text, ManifestFormat.CSV)


class TestXml:
    def test_structure(self, records) -> None:
        """XML nests one Repository element per record."""
        text = dumps(records, ManifestFormat.XML)
        assert text.startswith("<?xml")
        assert "<Repositories>" in text
        assert "<RelativePath>app/api</RelativePath>" in text

    def test_invalid_xml_is_fatal(self) -> None:
        with pytest.raises(ManifestError, match="invalid XML"):
            loads("<Repositories><Repository>", ManifestFormat.XML)


class TestSave:
    def test_creates_parent_and_no_temp_left(self, records, tmp_path: Path) -> None:
        """Saving creates parent dirs and leaves no temp file."""
        path = tmp_path / "share" / "nested" / "repos.json"
        save_manifest(records, path)
        assert path.exists()
        assert [p.name for p in path.parent.iterdir()] == ["repos.json"]

    def test_unwritable_target_is_fatal(self, records, tmp_path: Path) -> None:
        """An unwritable location raises ManifestWriteError."""
        blocker = tmp_path / "file"
        blocker.write_text("not a dir")
        with pytest.raises(ManifestWriteError):
            save_manifest(records, blocker / "repos.json")

    def test_failed_rename_removes_temp(self, records, tmp_path: Path) -> None:
        """A failed rename leaves neither the manifest nor the temp file behind."""
        path = tmp_path / "repos.json"
        with patch.object(Path, "replace", side_effect=OSError("share busy")):
            with pytest.raises(ManifestWriteError):
                save_manifest(records, path)
        assert list(tmp_path.iterdir()) == []

    def test_missing_file_read_is_fatal(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError):
            load_manifest(tmp_path / "nope.json")
