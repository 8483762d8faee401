"""
Logging setup for the gateway.

Console output always; when LOG_DIR is set, rotating files as well:
events.log gets everything, error.log only errors.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "[%(levelname)s] %(asctime)s - %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5


def configure_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """
    Configure the root logger once. Calling it again (tests, repeated
    create_app) is a no-op.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    level = level or os.getenv("LOG_LEVEL", "INFO")
    log_dir = log_dir or os.getenv("LOG_DIR")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)

        all_file = RotatingFileHandler(path / "events.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
        all_file.setFormatter(formatter)
        root.addHandler(all_file)

        error_file = RotatingFileHandler(path / "error.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
        error_file.setLevel(logging.ERROR)
        error_file.setFormatter(formatter)
        root.addHandler(error_file)
