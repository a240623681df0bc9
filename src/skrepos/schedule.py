"""Periodic sync via a systemd user timer.

Installs skrepos-sync.service (a oneshot running `skrepos sync`) and
skrepos-sync.timer (fires it on an interval). Uses user-level systemd
(systemctl --user) so no root is needed.

Usage:
    from skrepos.schedule import install_timer, timer_status
    install_timer(interval="1h")   # writes units, enables + starts the timer
    status = timer_status()        # check if it is scheduled
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger("skrepos.schedule")

SERVICE_NAME = "skrepos-sync.service"
TIMER_NAME = "skrepos-sync.timer"

ALL_UNITS = [SERVICE_NAME, TIMER_NAME]

SYSTEMD_USER_DIR = Path.home() / ".config" / "systemd" / "user"

DEFAULT_INTERVAL = "1h"


@dataclass
class TimerStatus:
    """Status of the sync timer.

    Attributes:
        installed: Whether the timer unit file exists.
        enabled: Whether the timer starts at login.
        active: Whether the timer is currently armed.
        next_run: When systemd will fire it next.
        last_result: Result of the last sync run ("success", "exit-code", ...).
    """

    installed: bool = False
    enabled: bool = False
    active: bool = False
    next_run: str = ""
    last_result: str = ""


def _run(cmd: list[str], check: bool = False) -> subprocess.CompletedProcess:
    """Run a command and capture output."""
    return subprocess.run(
        cmd, capture_output=True, text=True, timeout=30, check=check,
    )


def _systemctl(*args: str) -> subprocess.CompletedProcess:
    """Run a systemctl --user command."""
    return _run(["systemctl", "--user", *args])


def _show_property(unit: str, prop: str) -> str:
    """Read one property from `systemctl --user show`."""
    out = _systemctl("show", unit, f"--property={prop}").stdout
    for line in out.splitlines():
        name, sep, value = line.strip().partition("=")
        if sep and name == prop:
            return value
    return ""


def systemd_available() -> bool:
    """Check if systemd user session is available."""
    try:
        result = _run(["systemctl", "--user", "--version"])
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


def generate_service_unit(
    executable: str = "skrepos",
    sync_args: Optional[list[str]] = None,
) -> str:
    """Render the oneshot service that performs one sync.

    Args:
        executable: Path to the skrepos entry point.
        sync_args: Extra arguments appended to `skrepos sync`.

    Returns:
        str: Unit file content.
    """
    extra = " ".join(sync_args or [])
    exec_cmd = f"{executable} sync {extra}".rstrip()
    return f"""[Unit]
Description=SKRepos repository inventory sync
After=network-online.target
Wants=network-online.target

[Service]
Type=oneshot
ExecStart={exec_cmd}
Environment=PYTHONUNBUFFERED=1
"""


def generate_timer_unit(interval: str = DEFAULT_INTERVAL) -> str:
    """Render the timer that fires the sync service.

    Args:
        interval: systemd time span between runs (e.g. "30min", "1h").

    Returns:
        str: Unit file content.
    """
    return f"""[Unit]
Description=Run SKRepos sync every {interval}

[Timer]
OnBootSec=5min
OnUnitActiveSec={interval}
Persistent=true
Unit={SERVICE_NAME}

[Install]
WantedBy=timers.target
"""


def install_timer(
    interval: str = DEFAULT_INTERVAL,
    executable: str = "skrepos",
    sync_args: Optional[list[str]] = None,
    unit_dir: Optional[Path] = None,
    start: bool = True,
) -> dict:
    """Write the service + timer units and arm the timer.

    Args:
        interval: Time between syncs.
        executable: skrepos entry point used by the service.
        sync_args: Extra `skrepos sync` arguments.
        unit_dir: Target directory for unit files.
        start: Enable and start the timer immediately.

    Returns:
        dict: 'installed', 'enabled', 'started' bools.
    """
    target = unit_dir or SYSTEMD_USER_DIR
    target.mkdir(parents=True, exist_ok=True)

    result = {"installed": False, "enabled": False, "started": False}

    (target / SERVICE_NAME).write_text(
        generate_service_unit(executable, sync_args), encoding="utf-8"
    )
    (target / TIMER_NAME).write_text(generate_timer_unit(interval), encoding="utf-8")

    _systemctl("daemon-reload")
    result["installed"] = True
    logger.info("Installed sync timer (%s) to %s", interval, target)

    if start:
        r = _systemctl("enable", "--now", TIMER_NAME)
        result["enabled"] = r.returncode == 0
        result["started"] = r.returncode == 0
        if r.returncode != 0:
            logger.warning("Could not enable %s: %s", TIMER_NAME, r.stderr.strip())

    return result


def remove_timer(unit_dir: Optional[Path] = None) -> dict:
    """Stop, disable and delete the sync units.

    Returns:
        dict: 'stopped', 'removed' bools.
    """
    target = unit_dir or SYSTEMD_USER_DIR
    result = {"stopped": False, "removed": False}

    _systemctl("disable", "--now", TIMER_NAME)
    result["stopped"] = True

    for name in ALL_UNITS:
        unit_path = target / name
        if unit_path.exists():
            unit_path.unlink()

    _systemctl("daemon-reload")
    result["removed"] = True
    logger.info("Removed sync timer from %s", target)
    return result


def timer_status(unit_dir: Optional[Path] = None) -> TimerStatus:
    """Query whether the sync timer is installed and armed."""
    status = TimerStatus()
    target = unit_dir or SYSTEMD_USER_DIR

    status.installed = (target / TIMER_NAME).exists()
    if not status.installed:
        return status

    r = _systemctl("is-enabled", TIMER_NAME)
    status.enabled = r.stdout.strip() == "enabled"

    r = _systemctl("is-active", TIMER_NAME)
    status.active = r.stdout.strip() == "active"

    status.next_run = _show_property(TIMER_NAME, "NextElapseUSecRealtime")
    status.last_result = _show_property(SERVICE_NAME, "Result")

    return status
