"""
Logging for tesslocate.

One package logger writing to stdout, decorators for timing and error
reporting, and the messages emitted while indexing and locating.
"""

import logging
import sys
import time
from functools import wraps
from typing import Union

logger = logging.getLogger("tesslocate")
logger.setLevel(logging.INFO)

if not logger.handlers:
    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(_handler)

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Timed calls slower than this are reported at WARNING, ms.
SLOW_CALL_MS = 60_000.0


def log_errors(func):
    """Log an exception escaping `func`, then re-raise it."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.error(f"{func.__qualname__} failed: {e}")
            raise

    return wrapper


def log_performance(func):
    """Time `func`: DEBUG normally, WARNING past SLOW_CALL_MS."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            if elapsed_ms > SLOW_CALL_MS:
                logger.warning(f"Slow operation: {func.__qualname__} took {elapsed_ms:.0f}ms")
            else:
                logger.debug(f"{func.__qualname__} took {elapsed_ms:.2f}ms")

    return wrapper


def set_log_level(level: Union[str, int]):
    """Set the tesslocate level from a name (``"DEBUG"``) or a logging constant."""
    if isinstance(level, str):
        try:
            level = _LEVELS[level.upper()]
        except KeyError:
            raise ValueError(f"Unknown log level: {level!r}") from None
    logger.setLevel(level)


def log_skipped_region(obs_id: str, reason: str):
    logger.warning(f"Skipping footprint {obs_id}: {reason}")


def log_progress(done: int, total: int):
    logger.info(f"Progress: {done}/{total} targets")
