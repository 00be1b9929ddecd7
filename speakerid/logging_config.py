"""Logging setup from Settings.LOG_LEVEL / Settings.LOG_FILE."""
from __future__ import annotations

import logging
import os

from speakerid.config import Settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """
    Attach a console handler (and a file handler when LOG_FILE is set) to the
    package logger. Safe to call more than once; handlers are replaced.
    """
    level = logging.getLevelName((settings.LOG_LEVEL or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger("speakerid")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    log_file = (settings.LOG_FILE or "").strip()
    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(level)
    root.propagate = False
