"""
Utility helpers for npmaudit.

This package provides reusable utilities used across npmaudit, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- Async HTTP client utilities
- Lenient version comparison

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from npmaudit.utils.filesystem import (
    safe_delete_file,
    safe_read_file,
    safe_write_file,
    validate_path,
)

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from npmaudit.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from npmaudit.utils.console import (
    colorize_outdated,
    not_found_marker,
    print_audit_table,
    print_error,
    print_success,
    print_table,
    print_upgrade_command,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from npmaudit.utils.http import HTTPClient

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from npmaudit.utils.semver import (
    OUTDATED_LEVELS,
    classify_delta,
    is_outdated,
    parse_version,
)

__all__ = [
    # Console
    "print_error",
    "print_table",
    "print_success",
    "print_warning",
    "reconfigure_console",
    "colorize_outdated",
    "not_found_marker",
    "print_audit_table",
    "print_upgrade_command",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # Filesystem
    "safe_read_file",
    "safe_write_file",
    "safe_delete_file",
    "validate_path",
    # HTTP
    "HTTPClient",
    # Version utilities
    "OUTDATED_LEVELS",
    "classify_delta",
    "is_outdated",
    "parse_version",
]
