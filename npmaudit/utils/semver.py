"""
Lenient point-version comparison for npm version strings.

This is not a semver range parser. A declared version such
as ``^1.2.3`` or ``~4.0.1`` is compared as the point version ``1.2.3`` /
``4.0.1``; anything more elaborate degrades to "not outdated".
"""

from __future__ import annotations

import math
import re
from typing import List, Literal, Tuple

Outdated = Literal["major", "minor", "patch", "ok"]

#: Classifications in descending severity.
OUTDATED_LEVELS: Tuple[Outdated, ...] = ("major", "minor", "patch", "ok")

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_version(version: str) -> List[float]:
    """Split a declared version into its numeric components.

    If the first character is not a digit, exactly one character is dropped,
    so ``^1.2.3`` and ``~1.2.3`` parse as ``1.2.3``. Multi-character
    operators are not handled: ``>=1.2.3`` leaves ``=1`` as the first
    segment. The same goes for ``1.x``, ``1 - 2`` and ``||`` unions.

    Each dot-separated segment is read as its leading integer (``"3-beta"``
    gives ``3``). A segment without one becomes ``nan``, which compares
    false against everything and so never reports drift.

    Examples:
        >>> parse_version("^1.2.3")
        [1, 2, 3]
        >>> parse_version("1.x")
        [1, nan]
    """
    value = version
    if not value[:1].isdigit():
        value = value[1:]

    parts: List[float] = []
    for segment in value.split("."):
        match = _LEADING_INT.match(segment)
        parts.append(int(match.group(1)) if match else math.nan)
    return parts


def classify_delta(declared: str, latest: str) -> Outdated:
    """Classify how far ``declared`` lags behind ``latest``.

    Each tier is checked on its own with a strict greater-than and the
    first hit wins. Lower tiers are consulted even when a higher tier of
    ``latest`` is *smaller*, so ``("2.0.0", "1.9.9")`` is ``"minor"``.
    A downgrade is never reported as such.

    Examples:
        >>> classify_delta("1.0.0", "2.0.0")
        'major'
        >>> classify_delta("^1.4.0", "1.4.2")
        'patch'
        >>> classify_delta("1.0.0", "1.0.0")
        'ok'
    """
    s_major, s_minor, s_patch = _components(declared)
    e_major, e_minor, e_patch = _components(latest)

    if e_major > s_major:
        return "major"
    if e_minor > s_minor:
        return "minor"
    if e_patch > s_patch:
        return "patch"
    return "ok"


def is_outdated(classification: str) -> bool:
    """Return True for any classification other than ``"ok"``."""
    return classification != "ok"


def _components(version: str) -> Tuple[float, float, float]:
    parts = parse_version(version) + [math.nan] * 3
    return parts[0], parts[1], parts[2]
