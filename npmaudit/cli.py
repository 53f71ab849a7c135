"""
Command-line interface for npmaudit.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from npmaudit.config import load_config
from npmaudit.__version__ import __version__
from npmaudit.context import NpmAuditContext
from npmaudit.exceptions import ConfigError, NpmAuditError
from npmaudit.utils.logger import get_logger, setup_logging
from npmaudit.utils.console import print_error, print_warning, reconfigure_console

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="NPMAUDIT_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="NPMAUDIT_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="npmaudit",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """npmaudit: find outdated dependencies in a package.json.

    \b
    Available commands:
      npmaudit audit               Audit a manifest against the npm registry
      npmaudit show                Replay the last saved report

    \b
    Examples:
      npmaudit audit package.json
      npmaudit audit --outdated major
      npmaudit -v show

    Use ``npmaudit COMMAND --help`` for command-specific options.
    """
    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    _configure_logging(verbose)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    npmaudit_ctx = NpmAuditContext()
    npmaudit_ctx.config_path = config or loaded_config.source_path
    npmaudit_ctx.color = color
    npmaudit_ctx.verbose = verbose
    npmaudit_ctx.config = loaded_config
    ctx.obj = npmaudit_ctx

    logger.debug("npmaudit v%s", __version__)
    logger.debug("Config path: %s", npmaudit_ctx.config_path)
    logger.debug("Configuration: %s", loaded_config.to_log_dict())
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging level based on verbosity flags."""
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    setup_logging(level=level, verbose=verbose > 1)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


# Register CLI subcommands
from npmaudit.commands.audit import audit  # noqa: E402
from npmaudit.commands.show import show  # noqa: E402

cli.add_command(audit)
cli.add_command(show)


def main() -> int:
    """Main entry point for the npmaudit CLI.

    Returns:
        Exit code:
            0   Success
            1   Unhandled or application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except click.exceptions.Abort:
        print_warning("\nOperation cancelled by user")
        return 130

    except NpmAuditError as exc:
        print_error(str(exc))
        logger.debug(
            "NpmAuditError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
