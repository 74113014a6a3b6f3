"""Logging setup for the CLI.

Library modules only create named loggers (``clojure_skills.<module>``);
handlers are installed once, here, by the CLI entry point.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(name)s: %(message)s"
FILE_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("clojure_skills")


def setup_logging(level: str = "WARNING", log_file: Optional[str] = None) -> None:
    """Configure the ``clojure_skills`` logger hierarchy.

    Args:
        level: Level name for the stderr handler (e.g. "INFO").
        log_file: Optional file that receives every record at DEBUG and up.
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level.upper())
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(level.upper())
