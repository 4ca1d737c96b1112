"""Logging configuration for the command-line interface."""

import logging
import sys

RESET = "\x1b[0m"
DIM = "\x1b[38;20m"
BRIGHT = "\x1b[97;20m"

LEVEL_COLORS = {
    logging.DEBUG: DIM,
    logging.INFO: "\x1b[32;20m",
    logging.WARNING: "\x1b[33;20m",
    logging.ERROR: "\x1b[31;20m",
    logging.CRITICAL: "\x1b[31;1m",
}


class CustomFormatter(logging.Formatter):
    """Log lines as ``elapsed - LEVEL - logger.function - message``.

    Elapsed time is measured from logging setup, which for the CLI is the
    start of the signing run. With color, the level name is tinted by
    severity and the message is dimmed so tool output stands out less
    than pipeline progress.
    """

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color
        self._formatters: dict[int, logging.Formatter] = {}

    def _template(self, levelno: int) -> str:
        if not self.use_color:
            return (
                "%(elapsed)s - %(levelname)s - "
                "%(name)s.%(funcName)s - %(message)s"
            )
        level = LEVEL_COLORS.get(levelno, DIM)
        return (
            f"{BRIGHT}%(elapsed)s{RESET} - {level}%(levelname)s{RESET} - "
            f"{BRIGHT}%(name)s.%(funcName)s{RESET} - {DIM}%(message)s{RESET}"
        )

    def format(self, record: logging.LogRecord) -> str:
        minutes, seconds = divmod(int(record.relativeCreated // 1000), 60)
        hours, minutes = divmod(minutes, 60)
        record.elapsed = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
        formatter = self._formatters.get(record.levelno)
        if formatter is None:
            formatter = logging.Formatter(self._template(record.levelno))
            self._formatters[record.levelno] = formatter
        return formatter.format(record)


def setup_logging(debug: bool = False, use_color: bool = True) -> None:
    """Send log records to stderr, replacing any earlier configuration.

    Color is only used when stderr is a terminal.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(CustomFormatter(use_color and sys.stderr.isatty()))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        handlers=[handler],
        force=True,
    )
