from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default


class ColoredFormatter(logging.Formatter):
    """Level-colored console output."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
) -> str:
    """Configure logging for an installer run.

    The file log always records DEBUG (command output included); the console
    shows ``level`` and above, colored when attached to a terminal.

    If the requested log directory is not writable we fall back to a file in
    the current working directory.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_sdwebui_configured", False):
        return getattr(logger, "_sdwebui_log_path", log_path)

    chosen_path = log_path
    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler: Optional[logging.Handler] = None
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
    except OSError:
        chosen_path = str(Path.cwd() / "sdwebui-installer.log")
        file_handler = logging.FileHandler(chosen_path)
    file_handler.setFormatter(fmt)
    file_handler.setLevel(logging.DEBUG)
    handlers.append(file_handler)

    console = logging.StreamHandler(sys.stderr)
    console_fmt = "%(asctime)s %(levelname)s %(message)s"
    if sys.stderr.isatty():
        console.setFormatter(ColoredFormatter(fmt=console_fmt, datefmt="%H:%M:%S"))
    else:
        console.setFormatter(logging.Formatter(fmt=console_fmt, datefmt="%H:%M:%S"))
    console.setLevel(level)
    handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    # requests/urllib3 log full URLs at DEBUG; keep them out of the file.
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    setattr(logger, "_sdwebui_configured", True)
    setattr(logger, "_sdwebui_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
