"""Log-file capture for campaign runs."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

LOGGER_NAME = "statefuzz"


def get_logger() -> logging.Logger:
    """Return the package root logger; engine modules log through its children."""
    return logging.getLogger(LOGGER_NAME)


@contextmanager
def campaign_log_context(
    log_file: Path,
    verbose: bool = False,
) -> Generator[logging.Logger, None, None]:
    """
    Attach a file handler to the package logger for the duration of the context.
    Log file is UTF-8; format: timestamp [LEVEL] thread logger: message.
    The logger level is restored on exit.
    """
    logger = get_logger()
    previous_level = logger.level
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(level)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    try:
        yield logger
    finally:
        logger.removeHandler(handler)
        handler.close()
        logger.setLevel(previous_level)
