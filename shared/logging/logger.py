import logging
import os
from datetime import datetime
from pathlib import Path

# Empty CONVENTION_BOT_LOG_DIR disables the per-run log file
_LOG_DIR_ENV = os.getenv("CONVENTION_BOT_LOG_DIR", "logs")
LOG_DIR = Path(_LOG_DIR_ENV) if _LOG_DIR_ENV else None
LOG_LEVEL = os.getenv("CONVENTION_BOT_LOG_LEVEL", "DEBUG").upper()
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_LOGGERS = {}
_RUN_STAMP = datetime.now().strftime("%Y%m%d-%H%M%S")


def get_logger(
    name: str,
    *,
    runtime: str = "conventions",
) -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. core.selection, discord.client)
    - runtime: log file prefix (conventions | discord)

    Every logger of one runtime shares a single log file per process run.
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.DEBUG))

    formatter = logging.Formatter(LOG_FORMAT)

    # ------------------------------
    # Console handler
    # ------------------------------
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    # ------------------------------
    # File handler (one per run)
    # ------------------------------
    if LOG_DIR is not None:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logfile = LOG_DIR / f"{runtime}-{_RUN_STAMP}.log"
        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger
