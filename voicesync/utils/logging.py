"""
Logging setup for the launcher.

Each action logs to its own file in the system temp directory and to the
console.
"""
from pathlib import Path
import logging
import tempfile

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def log_file_path(log_name: str) -> Path:
    """Path of the log file for log_name (e.g. "voicesync_import")."""
    return Path(tempfile.gettempdir()) / f"{log_name}.log"


def setup_logging(log_name: str = "voicesync", level=logging.INFO,
                  console_level=logging.WARNING) -> Path:
    """
    Configure root logging with a file handler and a console handler.

    The log file is overwritten on every run.

    Returns:
        Path of the log file
    """
    path = log_file_path(log_name)

    file_handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    file_handler.setLevel(level)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[file_handler, console_handler],
        force=True,
    )
    return path
