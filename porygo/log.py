"""Logger set-up for the command line tool."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOGGER_NAME = "porygo"
_FORMAT = "%(asctime)s\t%(levelname)s\t%(message)s"


def create_logger(
    filename: str | Path | None = None, debug: bool = False, verbose: bool = False
) -> logging.Logger:
    """Configure and return the tool's logger.

    Debug enables every level, verbose shows info and above, and otherwise
    only warnings and errors are written. Output goes to ``filename`` when
    given, else to standard error.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    try:
        if filename:
            handler: logging.Handler = logging.FileHandler(filename, encoding="utf-8")
        else:
            handler = logging.StreamHandler(sys.stderr)
    except OSError as exc:
        raise OSError(f"failed to initialize logger: {exc}") from exc

    handler.setFormatter(logging.Formatter(_FORMAT))
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logger.setLevel(level)
    logger.addHandler(handler)
    logger.propagate = False
    return logger