"""Logging setup shared by the command line tools"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the root logger

    Diagnostics always go to stderr so stdout stays reserved for results.

    Args:
        level: Level name (DEBUG/INFO/WARNING/ERROR)
        log_file: Optional file receiving DEBUG and above

    Returns:
        The root logger
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_file else getattr(logging, level.upper()))
    root.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    return root

