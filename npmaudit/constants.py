"""
Centralized constants for npmaudit.

This module defines immutable configuration values used across npmaudit,
including registry endpoints, cache policy, network settings and logging
formats. All values are intended to be treated as read-only.
"""

from datetime import timedelta
from pathlib import Path
from typing import Final

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "npmaudit/{version}"

# ---------------------------------------------------------------------------
# npm registry
# ---------------------------------------------------------------------------

#: Base URL of the public npm registry.
DEFAULT_REGISTRY_URL: Final[str] = "https://registry.npmjs.org"

#: Human-facing package page on npmjs.com.
NPM_PACKAGE_PAGE: Final[str] = "https://www.npmjs.com/package/{package}"

#: Accept header asking the registry for abbreviated ("corgi") metadata.
#: Full documents for popular packages can exceed 70 MB.
ABBREVIATED_METADATA_ACCEPT: Final[str] = "application/vnd.npm.install-v1+json"

#: Number of most recent versions kept per cached package.
MAX_CACHED_VERSIONS: Final[int] = 30

# ---------------------------------------------------------------------------
# Cache policy
# ---------------------------------------------------------------------------

#: A cached package record younger than this is trusted without a fetch.
CACHE_TTL: Final[timedelta] = timedelta(hours=24)

#: Default location of the persistent package cache.
DEFAULT_CACHE_PATH: Final[Path] = Path.home() / ".cache" / "npmaudit" / "packages.db"

#: File name of the saved report, stored next to the package cache.
SAVED_REPORT_FILENAME: Final[str] = "last-report.json"

#: Project name used when the manifest does not declare one.
DEFAULT_PROJECT_NAME: Final[str] = "Your report"

# ---------------------------------------------------------------------------
# Pipeline / HTTP configuration
# ---------------------------------------------------------------------------

#: Number of registry lookups resolved concurrently per batch.
DEFAULT_BATCH_SIZE: Final[int] = 10

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of retries for failed HTTP requests.
DEFAULT_MAX_RETRIES: Final[int] = 3

#: Maximum number of 429 responses tolerated for a single request.
MAX_RATE_LIMIT_RETRIES: Final[int] = 5

#: Upper bound (seconds) on a server-requested Retry-After delay.
MAX_RETRY_AFTER: Final[float] = 60.0

# ---------------------------------------------------------------------------
# Security constraints
# ---------------------------------------------------------------------------

#: Maximum allowed size (in bytes) of a manifest or report file.
MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
