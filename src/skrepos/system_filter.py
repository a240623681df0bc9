"""
System filters -- decide which machines materialize a record.

A filter is a comma-separated list of patterns matched against the
machine identity (hostname by default):

    DEV-*,!DEV-TEST     every DEV- box except DEV-TEST
    !LAPTOP             everyone except LAPTOP
    *                   everyone

Exclusions always win. Matching is case-insensitive; a trailing "*"
turns a pattern into a prefix match.
"""

from __future__ import annotations

import socket
from typing import Optional

WILDCARD = "*"
NEGATION = "!"


def _pattern_matches(pattern: str, identity: str) -> bool:
    pattern = pattern.casefold()
    identity = identity.casefold()
    if pattern.endswith(WILDCARD):
        return identity.startswith(pattern[:-1])
    return identity == pattern


def parse_filter(system_filter: Optional[str]) -> tuple[list[str], list[str]]:
    """Split a filter into (inclusions, exclusions), dropping blanks."""
    inclusions: list[str] = []
    exclusions: list[str] = []
    if not system_filter:
        return inclusions, exclusions

    for raw in system_filter.split(","):
        pattern = raw.strip()
        if not pattern:
            continue
        if pattern.startswith(NEGATION):
            negated = pattern[1:].strip()
            if negated:
                exclusions.append(negated)
        else:
            inclusions.append(pattern)
    return inclusions, exclusions


def matches(system_filter: Optional[str], machine_identity: str) -> bool:
    """Evaluate a system filter for one machine.

    Args:
        system_filter: Pattern list, or None/empty for no restriction.
        machine_identity: Name of the machine asking.

    Returns:
        bool: False if any exclusion matches. Otherwise True when no
        inclusion patterns exist, or when at least one of them matches.
    """
    if system_filter is None or not system_filter.strip():
        return True
    if system_filter.strip() == WILDCARD:
        return True

    inclusions, exclusions = parse_filter(system_filter)

    if any(_pattern_matches(p, machine_identity) for p in exclusions):
        return False
    if not inclusions:
        return True
    return any(_pattern_matches(p, machine_identity) for p in inclusions)


def current_machine_identity() -> str:
    """Short hostname of this machine."""
    return socket.gethostname().split(".")[0]
