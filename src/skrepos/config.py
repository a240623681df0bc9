"""
Settings -- where the manifest lives and how sync behaves.

Stored as YAML at $SKREPOS_HOME/config.yaml (default ~/.skrepos).
A broken or missing file falls back to defaults with a warning;
CLI options always override what is stored here.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field

from . import SKREPOS_HOME
from .manifest import ManifestFormat
from .models import ExistingPolicy

logger = logging.getLogger("skrepos.config")

CONFIG_FILENAME = "config.yaml"


class SkReposConfig(BaseModel):
    """Persisted sync settings."""

    manifest_path: Optional[Path] = None
    local_dir: Optional[Path] = None
    manifest_format: ManifestFormat = ManifestFormat.JSON
    remote_name: str = "origin"
    probe_timeout: float = Field(default=10.0, gt=0)
    check_remote_accessibility: bool = True
    existing_policy: ExistingPolicy = ExistingPolicy.SKIP
    machine_identity: Optional[str] = None


def config_home(home: Optional[Union[str, Path]] = None) -> Path:
    """Resolve the settings directory."""
    return Path(home or SKREPOS_HOME).expanduser()


def load_config(home: Optional[Union[str, Path]] = None) -> SkReposConfig:
    """Load settings from disk, or defaults if absent or unreadable."""
    config_file = config_home(home) / CONFIG_FILENAME
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            return SkReposConfig(**data)
        except (yaml.YAMLError, ValueError, TypeError) as exc:
            logger.warning("Failed to load config %s: %s", config_file, exc)
    return SkReposConfig()


def save_config(
    config: SkReposConfig, home: Optional[Union[str, Path]] = None
) -> Path:
    """Persist settings to disk.

    Returns:
        Path: The written config file.
    """
    directory = config_home(home)
    directory.mkdir(parents=True, exist_ok=True)
    config_file = directory / CONFIG_FILENAME
    data = config.model_dump(mode="json", exclude_none=True)
    config_file.write_text(
        yaml.dump(data, default_flow_style=False), encoding="utf-8"
    )
    logger.info("Saved config to %s", config_file)
    return config_file


def update_config(
    key: str, value: Any, home: Optional[Union[str, Path]] = None
) -> SkReposConfig:
    """Set one setting and persist it.

    Args:
        key: Field name of SkReposConfig.
        value: Raw value; validated and coerced by the model.

    Raises:
        KeyError: Unknown setting.
        ValueError: Value fails validation.
    """
    if key not in SkReposConfig.model_fields:
        raise KeyError(key)
    current = load_config(home).model_dump()
    current[key] = value
    config = SkReposConfig(**current)
    save_config(config, home)
    return config
