"""
Manifest codec -- read and write the shared record list.

Three formats, one shape. Keys are the PascalCase record fields:

    JSON   [{"RelativePath": "app/api", "RemoteUrl": "...", ...}, ...]
    CSV    header row of field names, one record per row
    XML    <Repositories><Repository><RelativePath>...</Repository></Repositories>

Format comes from an explicit override, else the file extension,
else the configured default. Writes go to a temp file that is renamed
into place, so a reader on another machine never sees half a manifest.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import xml.etree.ElementTree as ET
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from .errors import ManifestError, ManifestWriteError
from .models import RepositoryRecord

logger = logging.getLogger("skrepos.manifest")

XML_ROOT = "Repositories"
XML_ITEM = "Repository"
XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>\n'


class ManifestFormat(str, Enum):
    """Supported manifest encodings."""

    JSON = "json"
    CSV = "csv"
    XML = "xml"


def field_names() -> list[str]:
    """Serialized (PascalCase) column names in declaration order."""
    return list(RepositoryRecord().model_dump(by_alias=True))


def detect_format(
    path: Union[str, Path],
    override: Optional[Union[str, ManifestFormat]] = None,
    default: ManifestFormat = ManifestFormat.JSON,
) -> ManifestFormat:
    """Pick the codec for a manifest path.

    Args:
        path: Manifest file path.
        override: Explicit format; wins when given.
        default: Used when the extension is not recognized.

    Returns:
        ManifestFormat
    """
    if override:
        return ManifestFormat(str(getattr(override, "value", override)).lower())
    suffix = Path(path).suffix.lower().lstrip(".")
    try:
        return ManifestFormat(suffix)
    except ValueError:
        return default


def _blank_to_none(row: dict[str, Any]) -> dict[str, Any]:
    return {k: (None if v is None or (isinstance(v, str) and v == "") else v)
            for k, v in row.items() if k}


def _to_records(rows: Iterable[dict[str, Any]], source: Path) -> list[RepositoryRecord]:
    records = []
    for index, row in enumerate(rows):
        try:
            records.append(RepositoryRecord.model_validate(_blank_to_none(row)))
        except ValidationError as exc:
            raise ManifestError(f"{source}: invalid record #{index + 1}: {exc}") from exc
    return records


def _record_row(record: RepositoryRecord) -> dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------


def _decode_json(text: str, source: Path) -> list[dict[str, Any]]:
    if not text.strip():
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"{source}: invalid JSON: {exc}") from exc
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(d, dict) for d in data):
        raise ManifestError(f"{source}: expected a list of objects")
    return data


def _decode_csv(text: str, source: Path) -> list[dict[str, Any]]:
    try:
        return list(csv.DictReader(io.StringIO(text)))
    except csv.Error as exc:
        raise ManifestError(f"{source}: invalid CSV: {exc}") from exc


def _decode_xml(text: str, source: Path) -> list[dict[str, Any]]:
    if not text.strip():
        return []
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ManifestError(f"{source}: invalid XML: {exc}") from exc

    items = [root] if root.tag == XML_ITEM else root.findall(XML_ITEM)
    rows = []
    for item in items:
        row: dict[str, Any] = {}
        for child in item:
            row[child.tag] = child.text if child.text is not None else ""
        rows.append(row)
    return rows


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------


def _encode_json(records: list[RepositoryRecord]) -> str:
    return json.dumps([_record_row(r) for r in records], indent=2) + "\n"


def _encode_csv(records: list[RepositoryRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=field_names(), lineterminator="\n")
    writer.writeheader()
    for record in records:
        writer.writerow({k: _cell(v) for k, v in _record_row(record).items()})
    return buffer.getvalue()


def _encode_xml(records: list[RepositoryRecord]) -> str:
    root = ET.Element(XML_ROOT)
    for record in records:
        item = ET.SubElement(root, XML_ITEM)
        for key, value in _record_row(record).items():
            ET.SubElement(item, key).text = _cell(value)
    ET.indent(root)
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"


_DECODERS = {
    ManifestFormat.JSON: _decode_json,
    ManifestFormat.CSV: _decode_csv,
    ManifestFormat.XML: _decode_xml,
}

_ENCODERS = {
    ManifestFormat.JSON: _encode_json,
    ManifestFormat.CSV: _encode_csv,
    ManifestFormat.XML: _encode_xml,
}


def loads(text: str, fmt: ManifestFormat, source: Union[str, Path] = "<string>") -> list[RepositoryRecord]:
    """Decode manifest text in the given format."""
    source_path = Path(source)
    return _to_records(_DECODERS[fmt](text, source_path), source_path)


def dumps(records: Iterable[RepositoryRecord], fmt: ManifestFormat) -> str:
    """Encode records in the given format."""
    return _ENCODERS[fmt](list(records))


def load_manifest(
    path: Union[str, Path],
    fmt: Optional[Union[str, ManifestFormat]] = None,
    default: ManifestFormat = ManifestFormat.JSON,
) -> list[RepositoryRecord]:
    """Read a manifest file.

    Args:
        path: Manifest location.
        fmt: Format override.
        default: Format when the extension says nothing.

    Returns:
        list[RepositoryRecord]: In file order.

    Raises:
        ManifestError: The file cannot be read or decoded.
    """
    manifest_path = Path(path).expanduser()
    codec = detect_format(manifest_path, fmt, default)
    try:
        text = manifest_path.read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest {manifest_path}: {exc}") from exc

    records = loads(text, codec, manifest_path)
    logger.info("Loaded %d record(s) from %s (%s)", len(records), manifest_path, codec.value)
    return records


def save_manifest(
    records: Iterable[RepositoryRecord],
    path: Union[str, Path],
    fmt: Optional[Union[str, ManifestFormat]] = None,
    default: ManifestFormat = ManifestFormat.JSON,
) -> Path:
    """Write a manifest file atomically.

    Args:
        records: Records to write, in order.
        path: Manifest location.
        fmt: Format override.
        default: Format when the extension says nothing.

    Returns:
        Path: The written manifest.

    Raises:
        ManifestWriteError: The file cannot be written.
    """
    manifest_path = Path(path).expanduser()
    codec = detect_format(manifest_path, fmt, default)
    payload = dumps(records, codec)

    tmp_path = manifest_path.with_name(f".{manifest_path.name}.tmp")
    try:
        manifest_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(manifest_path)
    except OSError as exc:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError as cleanup_exc:
            logger.debug("Could not remove %s: %s", tmp_path, cleanup_exc)
        raise ManifestWriteError(f"Cannot write manifest {manifest_path}: {exc}") from exc

    logger.info("Wrote manifest %s (%s)", manifest_path, codec.value)
    return manifest_path
