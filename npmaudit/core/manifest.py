"""Manifest parsing for npmaudit.

Turns the text of a ``package.json`` into the two ``name -> range``
mappings the refresh pipeline consumes. Only ``name``, ``dependencies``
and ``devDependencies`` are read; everything else in the document is
ignored.

Typical usage::

    from npmaudit.core.manifest import parse_manifest

    manifest = parse_manifest(Path("package.json").read_text())
    for decl in manifest.declarations():
        print(decl.name, decl.version_range, decl.is_dev)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from npmaudit.constants import DEFAULT_PROJECT_NAME
from npmaudit.exceptions import ManifestError
from npmaudit.models.audit import DependencyDeclaration
from npmaudit.utils.filesystem import safe_read_file
from npmaudit.utils.logger import get_logger

logger = get_logger("manifest")

__all__ = ["Manifest", "parse_manifest", "load_manifest"]

DEPENDENCY_SECTIONS = ("dependencies", "devDependencies")


@dataclass
class Manifest:
    """Dependency declarations extracted from a ``package.json``.

    Attributes:
        name: Project name, or ``"Your report"`` when absent.
        dependencies: Regular dependencies in declaration order.
        dev_dependencies: Development dependencies in declaration order.
    """

    name: str = DEFAULT_PROJECT_NAME
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)

    def declarations(self) -> Iterator[DependencyDeclaration]:
        """Yield every declaration, regular dependencies first."""
        for name, version in self.dependencies.items():
            yield DependencyDeclaration(name, version, is_dev=False)
        for name, version in self.dev_dependencies.items():
            yield DependencyDeclaration(name, version, is_dev=True)

    def __len__(self) -> int:
        return len(self.dependencies) + len(self.dev_dependencies)


def parse_manifest(text: str, *, source: Optional[str] = None) -> Manifest:
    """Parse manifest JSON text.

    Args:
        text: Raw ``package.json`` content.
        source: Path or label used in error messages.

    Returns:
        The parsed :class:`Manifest`.

    Raises:
        ManifestError: Invalid JSON, a non-object document, neither
            dependency section present, or a section that is not a mapping
            of package names to version strings.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestError(
            f"Manifest is not valid JSON: {exc.msg} (line {exc.lineno})",
            source=source,
        ) from exc

    if not isinstance(document, dict):
        raise ManifestError("Manifest must be a JSON object", source=source)

    if not any(key in document for key in DEPENDENCY_SECTIONS):
        raise ManifestError(
            "Manifest declares neither 'dependencies' nor 'devDependencies'",
            source=source,
        )

    name = document.get("name")
    manifest = Manifest(
        name=name if isinstance(name, str) and name else DEFAULT_PROJECT_NAME,
        dependencies=_read_section(document, "dependencies", source),
        dev_dependencies=_read_section(document, "devDependencies", source),
    )

    logger.debug(
        "Parsed manifest %s: %d dependencies, %d dev dependencies",
        source or "<text>",
        len(manifest.dependencies),
        len(manifest.dev_dependencies),
    )
    return manifest


def load_manifest(path: Path) -> Manifest:
    """Read and parse a manifest file."""
    return parse_manifest(safe_read_file(path), source=str(path))


def _read_section(
    document: Dict[str, Any],
    section: str,
    source: Optional[str],
) -> Dict[str, str]:
    raw = document.get(section)
    if raw is None:
        return {}

    if not isinstance(raw, dict):
        raise ManifestError(
            f"'{section}' must be an object",
            source=source,
            section=section,
        )

    for name, version in raw.items():
        if not isinstance(version, str):
            raise ManifestError(
                f"Version of '{name}' must be a string",
                source=source,
                section=section,
            )

    return dict(raw)
