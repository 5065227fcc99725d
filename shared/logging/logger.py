import logging
import os
from datetime import datetime
from pathlib import Path

LOG_DIR = Path(os.getenv("SHOUTBOX_LOG_DIR", "logs"))

_LOGGERS = {}


def _file_logging_enabled() -> bool:
    return os.getenv("SHOUTBOX_LOG_TO_FILE", "").strip().lower() in {"1", "true", "yes", "on"}


def get_logger(
    name: str,
    *,
    runtime: str = "shoutbox",
) -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. chat.poller, api.client)
    - runtime: log file prefix (shoutbox | future runtimes)

    File output is opt-in via SHOUTBOX_LOG_TO_FILE.
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(os.getenv("SHOUTBOX_LOG_LEVEL", "DEBUG").upper())

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    # ------------------------------
    # Console handler
    # ------------------------------
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    # ------------------------------
    # File handler (one per run)
    # ------------------------------
    if _file_logging_enabled():
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        logfile = LOG_DIR / f"{runtime}-{timestamp}.log"

        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger
