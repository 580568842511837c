import logging
import sys
from typing import Optional, TextIO


class MaxLevelFilter(logging.Filter):
    """
    Passes only records below a level, so stdout never duplicates what the
    stderr handler already prints.
    """
    def __init__(self, max_level: int) -> None:
        super().__init__()
        self.max_level = max_level

    def filter(self, record):
        return record.levelno < self.max_level


class MainFormatter(logging.Formatter):
    """Plain messages for INFO, a level prefix for everything else."""

    def format(self, record):
        # INFO is what the user expects to read; keep it uncluttered.
        if record.levelno == logging.INFO:
            return record.getMessage()

        original_format = self._style._fmt
        self._style._fmt = '%(levelname)s: [%(name)s] %(message)s'
        formatted_message = super().format(record)
        self._style._fmt = original_format
        return formatted_message


def setup_logging(
    console_level: int = logging.INFO,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> None:
    """
    Configures the root logger for the application.
    Warnings and errors go to stderr, everything else to stdout, clearing any
    previously configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param stdout: Stream for records below WARNING; defaults to sys.stdout.
    :param stderr: Stream for WARNING and above; defaults to sys.stderr.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    #* --- Stdout Handler ---
    out_handler = logging.StreamHandler(stdout or sys.stdout)
    out_handler.setLevel(console_level)
    out_handler.addFilter(MaxLevelFilter(logging.WARNING))
    out_handler.setFormatter(MainFormatter())
    root_logger.addHandler(out_handler)

    #* --- Stderr Handler ---
    err_handler = logging.StreamHandler(stderr or sys.stderr)
    err_handler.setLevel(max(console_level, logging.WARNING))
    err_handler.setFormatter(MainFormatter())
    root_logger.addHandler(err_handler)


def set_console_level(level: int) -> None:
    """Changes the stdout handler's level in place (used by --verbose)."""
    for handler in logging.getLogger().handlers:
        if any(isinstance(f, MaxLevelFilter) for f in handler.filters):
            handler.setLevel(level)
