"""
npmaudit: Outdated dependency report for npm manifests

npmaudit reads a ``package.json`` manifest, looks every declared dependency
up on the public npm registry and reports which ones have fallen behind,
together with a ready-to-paste ``npm i`` upgrade command.

Features include:
    • Major / minor / patch drift classification per dependency
    • Persistent 24-hour registry cache shared across runs
    • Bounded, batched concurrent registry lookups
    • Saved reports that can be replayed from the cache
"""

from __future__ import annotations

from npmaudit.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "npmaudit Contributors"
__license__ = "Apache-2.0"
__description__ = "Audit npm package.json manifests for outdated dependencies."

__all__ = [
    "__version__",
]
