"""
Performance logging utility for ThermoMap.
Provides timing decorators and logging for the render phases.
Logs with full stack traces go to daily log files.
Console shows clean, readable timing info.
"""

import time
import functools
import inspect
import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Callable, Any

# Configure logging directory
log_dir = Path(os.getenv("THERMOMAP_LOG_DIR", Path(__file__).parent / "logs"))
log_dir.mkdir(parents=True, exist_ok=True)

logger = logging.getLogger("thermomap")
logger.setLevel(logging.DEBUG)
logger.propagate = False

# Daily rotating file handler - logs with full details
if not logger.handlers:
    file_handler = TimedRotatingFileHandler(
        log_dir / "thermomap.log",
        when="midnight",
        interval=1,
        backupCount=30,  # Keep 30 days of logs
        encoding="utf-8",
        delay=True,
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.suffix = "%Y-%m-%d"  # Rotated files: thermomap.log.2026-10-18
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s - %(funcName)s - %(message)s\n%(pathname)s:%(lineno)d'
    ))
    logger.addHandler(file_handler)

# Set THERMOMAP_QUIET=1 to keep timings out of the console
_ECHO = os.getenv("THERMOMAP_QUIET", "0") != "1"


def log_timing(message: str, level: str = "info"):
    """Log timing message to daily file and print cleanly to console."""
    if level == "error":
        logger.error(message, stack_info=True)
    elif level == "warning":
        logger.warning(message)
    else:
        logger.info(message)
    if _ECHO:
        print(message)


def timeit(func: Callable) -> Callable:
    """
    Decorator to time function execution.
    Works with both sync and async functions.
    """
    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
                elapsed = (time.perf_counter() - start_time) * 1000
                log_timing(f"⏱️  {func.__name__} took {elapsed:.2f}ms")
                return result
            except Exception as e:
                elapsed = (time.perf_counter() - start_time) * 1000
                log_timing(f"❌ {func.__name__} failed after {elapsed:.2f}ms: {e}")
                raise
        return async_wrapper
    else:
        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                elapsed = (time.perf_counter() - start_time) * 1000
                log_timing(f"⏱️  {func.__name__} took {elapsed:.2f}ms")
                return result
            except Exception as e:
                elapsed = (time.perf_counter() - start_time) * 1000
                log_timing(f"❌ {func.__name__} failed after {elapsed:.2f}ms: {e}")
                raise
        return sync_wrapper


class PerformanceTimer:
    """
    Context manager for timing code blocks.

    Usage:
        with PerformanceTimer("Colorize"):
            # ... code to time
    """
    def __init__(self, name: str):
        self.name = name
        self.start_time = None
        self.elapsed_ms = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000
        if exc_type is None:
            log_timing(f"✅ {self.name} took {self.elapsed_ms:.2f}ms")
        else:
            log_timing(f"❌ {self.name} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        return False
