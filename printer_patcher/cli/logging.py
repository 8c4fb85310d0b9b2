"""CLI logging configuration with file output.

``configure_cli_logging`` sets up both console and file logging for CLI
commands. Log files are split by command *and* target host under
``~/.local/share/printer-patcher/logs/``.

Naming convention::

    <command>_<host>.log   # e.g. run_192.168.1.20.log
    <command>.log          # fallback when no host is involved

Usage from any CLI command::

    from printer_patcher.cli.logging import configure_cli_logging

    configure_cli_logging("run", host="192.168.1.20", verbose=verbose)
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

# Standard log directory follows XDG convention
LOG_DIR = Path.home() / ".local" / "share" / "printer-patcher" / "logs"

_PACKAGE_LOGGER = "printer_patcher"


def get_log_dir() -> Path:
    """Return the CLI log directory, creating it if needed."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    return LOG_DIR


def get_log_file(command: str, host: str | None = None) -> Path:
    """Return the log file path for a CLI command and optional target host."""
    stem = f"{command}_{host.replace(':', '_')}" if host else command
    return get_log_dir() / f"{stem}.log"


def configure_cli_logging(
    command: str,
    *,
    host: str | None = None,
    verbose: bool = False,
    console_level: int | None = None,
    file_level: int = logging.DEBUG,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 3,
) -> Path:
    """Configure logging for a CLI command with file output.

    Sets up:
    - File handler: DEBUG-level rotating log at
      ``~/.local/share/printer-patcher/logs/<command>_<host>.log``
    - Console handler (Rich, stderr): WARNING, or INFO if verbose

    Returns:
        Path to the log file
    """
    log_file = get_log_file(command, host=host)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(_PACKAGE_LOGGER)

    # Remove our handlers from earlier calls to avoid duplicates
    for handler in package_logger.handlers[:]:
        if isinstance(handler, (logging.FileHandler, RichHandler)):
            package_logger.removeHandler(handler)
            handler.close()

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    package_logger.addHandler(file_handler)

    if console_level is None:
        console_level = logging.INFO if verbose else logging.WARNING
    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
    )
    console_handler.setLevel(console_level)
    package_logger.addHandler(console_handler)

    # NOTSET would inherit WARNING from root and starve the file handler
    lowest = min(file_level, console_level)
    if package_logger.level == logging.NOTSET or package_logger.level > lowest:
        package_logger.setLevel(lowest)

    return log_file
