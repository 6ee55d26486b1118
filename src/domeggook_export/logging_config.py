"""Logging for export runs.

Every pipeline module logs under the ``domeggook_export`` namespace
(``domeggook_export.runner``, ``domeggook_export.assets`` and so on), so a
single call to :func:`setup_logging` from the CLI routes URL progress, skipped
pages, failed image downloads and spill notices to one run log. Download
workers share the same handlers; the thread name is kept in the log line so
interleaved image fetches can be told apart.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAMESPACE = "domeggook_export"
DEFAULT_LOG_DIR = Path("logs")
DEFAULT_LOG_FILE = f"{LOGGER_NAMESPACE}.log"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s [%(threadName)s]"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_log_file(log_file: Optional[Path] = None, log_dir: Optional[Path] = None) -> Path:
    """Where the run log goes; relative names are placed under ``log_dir``."""
    log_dir = Path(log_dir) if log_dir is not None else DEFAULT_LOG_DIR
    if log_file is None:
        return log_dir / DEFAULT_LOG_FILE
    log_file = Path(log_file)
    return log_file if log_file.is_absolute() else log_dir / log_file


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_file: Optional[Path] = None,
    log_dir: Optional[Path] = None,
    level: int = logging.INFO,
    console: bool = True,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """Send export-run logs to a UTF-8 file and, optionally, stdout.

    Calling this again (one CLI process per run, or repeated runs in
    tests) closes the previous handlers before attaching new ones.

    Returns:
        The ``domeggook_export`` logger
    """
    path = resolve_log_file(log_file, log_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    logger.addHandler(_handler(logging.FileHandler(path, encoding="utf-8"), level, formatter))
    if console:
        logger.addHandler(_handler(logging.StreamHandler(sys.stdout), level, formatter))
    # Run logs stay out of the host application's root handlers
    logger.propagate = False

    logger.info(f"Export log: {path}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for one pipeline module, e.g. ``get_logger("assets")``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
