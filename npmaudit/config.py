"""Configuration file loader for npmaudit.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``npmaudit.toml``: settings under ``[npmaudit]`` table
- ``pyproject.toml``: settings under ``[tool.npmaudit]`` table

Discovery order:

1. Explicit path from ``--config`` or ``NPMAUDIT_CONFIG``
2. ``npmaudit.toml`` in current directory
3. ``pyproject.toml`` with ``[tool.npmaudit]`` section

Configuration precedence: defaults < config file < CLI args.

Example (``npmaudit.toml``)::

    [npmaudit]
    batch_size = 20
    registry_url = "https://registry.npmjs.org"
    cache_path = "~/.cache/npmaudit/packages.db"
    resolve_timeout = 15
"""

from __future__ import annotations


import tomli as tomllib
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

from npmaudit.exceptions import ConfigError
from npmaudit.utils.filesystem import validate_path
from npmaudit.utils.logger import get_logger
from npmaudit.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CACHE_PATH,
    DEFAULT_REGISTRY_URL,
)

logger = get_logger("config")


@dataclass
class NpmAuditConfig:
    """Parsed and validated npmaudit configuration.

    All fields have defaults, so empty config files are valid.

    Attributes:
        batch_size: Registry lookups resolved concurrently per batch.
        registry_url: Base URL of the npm registry.
        cache_path: SQLite file holding the package cache.
        resolve_timeout: Deadline in seconds for each registry fetch, or
            ``None`` for no deadline.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    batch_size: int = DEFAULT_BATCH_SIZE
    registry_url: str = DEFAULT_REGISTRY_URL
    cache_path: Path = DEFAULT_CACHE_PATH
    resolve_timeout: Optional[float] = None

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging."""
        return {
            "batch_size": self.batch_size,
            "registry_url": self.registry_url,
            "cache_path": str(self.cache_path),
            "resolve_timeout": self.resolve_timeout,
        }


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Explicit config path. If provided, must exist.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    npmaudit_toml = cwd / "npmaudit.toml"
    if npmaudit_toml.is_file():
        logger.debug("Found npmaudit.toml: %s", npmaudit_toml)
        return npmaudit_toml

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_npmaudit_section(pyproject_toml):
        logger.debug("Found [tool.npmaudit] in pyproject.toml: %s", pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_npmaudit_section(path: Path) -> bool:
    """Check if pyproject.toml contains a [tool.npmaudit] section.

    An unreadable or invalid pyproject.toml is treated as having none.
    """
    try:
        raw = _read_toml(path)
    except ConfigError:
        return False
    return "npmaudit" in raw.get("tool", {})


def load_config(config_path: Optional[Path] = None) -> NpmAuditConfig:
    """Load and validate npmaudit configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).

    Returns:
        Validated :class:`NpmAuditConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return NpmAuditConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get("npmaudit", {})
    else:
        section = raw.get("npmaudit", {})

    if not section:
        logger.debug("Config file found but no npmaudit section, using defaults")
        return NpmAuditConfig(source_path=resolved)

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> NpmAuditConfig:
    """Parse and validate an ``[npmaudit]`` / ``[tool.npmaudit]`` table.

    Raises:
        ConfigError: Unknown keys or incorrect types.
    """
    config = NpmAuditConfig()

    known_top = {"batch_size", "registry_url", "cache_path", "resolve_timeout"}

    unknown_top = set(section.keys()) - known_top
    if unknown_top:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown_top))}",
            config_path=config_path,
        )

    if "batch_size" in section:
        val = section["batch_size"]
        # bool is a subclass of int
        if isinstance(val, bool) or not isinstance(val, int) or val < 1:
            raise ConfigError(
                f"batch_size must be a positive integer, got {val!r}",
                config_path=config_path,
                option="batch_size",
            )
        config.batch_size = val

    if "registry_url" in section:
        val = section["registry_url"]
        if not isinstance(val, str) or not val.startswith(("http://", "https://")):
            raise ConfigError(
                f"registry_url must be an http(s) URL, got {val!r}",
                config_path=config_path,
                option="registry_url",
            )
        config.registry_url = val

    if "cache_path" in section:
        val = section["cache_path"]
        if not isinstance(val, str) or not val:
            raise ConfigError(
                f"cache_path must be a non-empty string, got {type(val).__name__}",
                config_path=config_path,
                option="cache_path",
            )
        config.cache_path = validate_path(val)

    if "resolve_timeout" in section:
        val = section["resolve_timeout"]
        if isinstance(val, bool) or not isinstance(val, (int, float)) or val <= 0:
            raise ConfigError(
                f"resolve_timeout must be a positive number, got {val!r}",
                config_path=config_path,
                option="resolve_timeout",
            )
        config.resolve_timeout = float(val)

    return config
