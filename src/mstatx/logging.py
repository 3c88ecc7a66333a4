"""
Logging configuration for MstatX.

Console output goes to stderr with colored level names; an optional plain
text log file can be attached. Verbose mode switches the level to DEBUG,
which is where the alignment diagnostics (alphabet, gap counts, entropies,
sequence weights) are reported.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[0;31m"
    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"
    GRAY = "\033[0;90m"


class ColoredFormatter(logging.Formatter):
    """
    Formatter that wraps the level name in brackets, colored on a TTY.
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.GRAY,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.RED,
    }

    def __init__(self, fmt: Optional[str] = None, use_colors: bool = True):
        super().__init__(fmt or "%(message)s")
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so file handlers sharing the record see the plain name
        record = logging.makeLogRecord(record.__dict__)
        if self.use_colors:
            color = self.LEVEL_COLORS.get(record.levelno, Colors.RESET)
            record.levelname = f"{color}[{record.levelname}]{Colors.RESET}"
        else:
            record.levelname = f"[{record.levelname}]"

        return super().format(record)


def setup_logging(
    name: str = "mstatx",
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    use_colors: bool = True,
    verbose: bool = False,
) -> logging.Logger:
    """
    Set up logging for MstatX.

    Args:
        name: Logger name (default: "mstatx")
        level: Logging level (default: INFO)
        log_file: Optional path to log file
        use_colors: Use colored output for console (default: True)
        verbose: Enable debug output (default: False)

    Returns:
        Configured logger instance
    """
    if verbose:
        level = logging.DEBUG

    logger = logging.getLogger(name)
    logger.setLevel(level)

    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_fmt = "%(levelname)s %(message)s"
    console_handler.setFormatter(ColoredFormatter(console_fmt, use_colors=use_colors))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_fmt = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        file_handler.setFormatter(logging.Formatter(file_fmt))
        logger.addHandler(file_handler)

    return logger


def format_listing(values: Iterable) -> str:
    """Join values as ``v1;v2;...;`` with floats in ``%g`` form."""
    return "".join(f"{v:g};" if isinstance(v, float) else f"{v};" for v in values)


def log_section(logger: logging.Logger, title: str, lines: Iterable[str]) -> None:
    """Log a ``title :`` header followed by one DEBUG record per line."""
    logger.debug(f"{title} :")
    for line in lines:
        logger.debug(line)
