"""
Executable module for npmaudit.

Running:
    python -m npmaudit

is equivalent to:
    npmaudit
"""

from __future__ import annotations

import sys


def main() -> int:
    """Main entrypoint when executing ``python -m npmaudit``.

    Returns:
        Exit code returned by the CLI.
    """
    try:
        # Import lazily so dependencies are only loaded during CLI use
        from npmaudit.cli import main as cli_main
    except ImportError as exc:
        sys.stderr.write(f"npmaudit CLI could not be loaded (Python {sys.version})\n")
        sys.stderr.write(f"ImportError: {exc}\n")
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
