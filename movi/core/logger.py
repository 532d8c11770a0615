from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "movi"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s"


def _has(logger: logging.Logger, kind: type) -> bool:
    # RotatingFileHandler is itself a StreamHandler subclass
    return any(type(h) is kind for h in logger.handlers)


def setup_logging(log_dir: str = "logs", *, level: str = "INFO", console: bool = True) -> logging.Logger:
    """
    Configure the "movi" logger once: rotating movi.log plus optional plain console output.
    Safe to call again; handlers are not duplicated.
    """
    logger = logging.getLogger(LOGGER_NAME)
    lvl = logging.getLevelName(str(level).upper())
    logger.setLevel(lvl if isinstance(lvl, int) else logging.INFO)
    logger.propagate = False

    if not _has(logger, RotatingFileHandler):
        os.makedirs(log_dir, exist_ok=True)
        fh = RotatingFileHandler(os.path.join(log_dir, "movi.log"), maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        fh.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(fh)

    if console and not _has(logger, logging.StreamHandler):
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(sh)

    return logger
