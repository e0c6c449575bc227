import logging
import os
from typing import Optional


_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def _coerce_level(value: Optional[str]) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    if isinstance(value, int):
        return value
    return logging.INFO


def _env(*names: str) -> Optional[str]:
    for name in names:
        value = os.environ.get(name)
        if value and value.strip():
            return value.strip()
    return None


def get_logger(name: str) -> logging.Logger:
    """Return a configured stdout logger with consistent formatting.

    - Honors CHEMICAL_LOG_LEVEL (falling back to LOG_LEVEL, default INFO).
    - Honors CHEMICAL_LOG_FILE (falling back to LOG_FILE) as an optional
      append-only file next to stdout.
    - Loggers are namespaced under ``chemical_inventory.``.
    """
    logger = logging.getLogger(f"chemical_inventory.{name}")
    if getattr(logger, "_chemical_inventory_configured", False):
        return logger

    level = _coerce_level(_env("CHEMICAL_LOG_LEVEL", "LOG_LEVEL") or "INFO")
    logger.setLevel(level)

    fmt = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    # Optional log file (appends)
    log_file = _env("CHEMICAL_LOG_FILE", "LOG_FILE")
    if log_file:
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(formatter)
            logger.addHandler(fh)
        except OSError:
            logger.warning(f"Log file {log_file} could not be opened; continuing without file logging")

    logger.propagate = False
    setattr(logger, "_chemical_inventory_configured", True)
    return logger
