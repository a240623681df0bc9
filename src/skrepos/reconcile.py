"""
Inventory reconciliation -- merge what is on disk with what the
manifest says.

    local only      this machine found something new      -> keep
    manifest only   another machine knows about it        -> keep, clone
    both            local wins on URL, gaps filled from the manifest

Output is sorted by relative path so manifest diffs stay small and
deterministic from run to run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Union

from . import paths
from .models import CloneRequest, ReconcileResult, RepositoryRecord

logger = logging.getLogger("skrepos.reconcile")

_FILLABLE = ("remote_name", "user_name", "user_email", "status_date")


def _index(records: Iterable[RepositoryRecord], source: str) -> dict[str, RepositoryRecord]:
    index: dict[str, RepositoryRecord] = {}
    for record in records:
        if record.key in index:
            logger.warning(
                "Duplicate %s entry for %s ignored", source, record.relative_path
            )
            continue
        index[record.key] = record
    return index


def _safe_manifest_records(
    records: Iterable[RepositoryRecord],
) -> list[RepositoryRecord]:
    safe = []
    for record in records:
        if paths.is_unsafe(record.relative_path):
            logger.warning(
                "Dropping manifest entry with unsafe path: %s", record.relative_path
            )
            continue
        safe.append(record)
    return safe


def _has_drifted(manifest: RepositoryRecord, root: str) -> bool:
    expected_full = paths.join(root, manifest.relative_path)
    return not (
        paths.same_path(manifest.root_path, root)
        and paths.same_path(manifest.full_path, expected_full)
    )


def _merge(
    local: RepositoryRecord, manifest: RepositoryRecord, root: str
) -> tuple[RepositoryRecord, bool]:
    """Merge one record present on both sides. Returns (merged, changed)."""
    update: dict = {}
    changed = False

    if not local.remote_url and manifest.remote_url:
        update["remote_url"] = manifest.remote_url
        changed = True
    elif (
        local.remote_url
        and manifest.remote_url
        and local.remote_url != manifest.remote_url
    ):
        logger.info(
            "Remote URL differs for %s: local %s, manifest %s (keeping local)",
            local.relative_path, local.remote_url, manifest.remote_url,
        )

    for field in _FILLABLE:
        if not getattr(local, field) and getattr(manifest, field):
            update[field] = getattr(manifest, field)
            changed = True

    if not local.system_filter and manifest.system_filter:
        update["system_filter"] = manifest.system_filter
    if local.is_remote_accessible is None and manifest.is_remote_accessible is not None:
        update["is_remote_accessible"] = manifest.is_remote_accessible

    if _has_drifted(manifest, root):
        logger.info(
            "Path drift for %s: manifest root %s, local root %s",
            local.relative_path, manifest.root_path or "(none)", root,
        )
        changed = True

    merged = local.model_copy(update=update).rooted(root)
    return merged, changed


def reconcile(
    local_records: Iterable[RepositoryRecord],
    manifest_records: Iterable[RepositoryRecord],
    root_directory: Union[str, Path],
) -> ReconcileResult:
    """Merge scanned records with manifest records.

    Args:
        local_records: Records discovered on this machine.
        manifest_records: Records loaded from the shared manifest.
        root_directory: This machine's scan root.

    Returns:
        ReconcileResult: sorted final records, whether anything changed
        relative to the manifest, and the manifest-only entries to clone.
    """
    root = str(Path(root_directory).expanduser().resolve())

    local_map = _index(local_records, "local")
    file_map = _index(_safe_manifest_records(manifest_records), "manifest")

    final_map: dict[str, RepositoryRecord] = {}
    to_clone: list[CloneRequest] = []
    changed = False

    for key, local in local_map.items():
        manifest = file_map.get(key)
        if manifest is None:
            logger.info("New local checkout: %s", local.relative_path)
            final_map[key] = local.rooted(root)
            changed = True
            continue

        merged, record_changed = _merge(local, manifest, root)
        final_map[key] = merged
        changed = changed or record_changed

    for key, manifest in file_map.items():
        if key in local_map:
            continue

        final_map[key] = manifest.rooted(root)
        changed = True

        if not manifest.remote_url:
            logger.warning(
                "Cannot clone %s: no remote URL in manifest", manifest.relative_path
            )
            continue
        if manifest.is_remote_accessible is False:
            logger.warning(
                "Not cloning %s: remote marked inaccessible (%s)",
                manifest.relative_path, manifest.remote_url,
            )
            continue

        to_clone.append(CloneRequest.from_record(manifest))

    records = sorted(
        final_map.values(),
        key=lambda r: (r.relative_path.casefold(), r.relative_path),
    )
    to_clone.sort(key=lambda r: (r.relative_path.casefold(), r.relative_path))
    return ReconcileResult(records=records, changed=changed, to_clone=to_clone)
