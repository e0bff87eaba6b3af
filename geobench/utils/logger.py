# geobench/utils/logger.py
"""
Centralized Logging System for GeoBench

Uses loguru for logging with:
- Console output with colors
- Optional rotating log file
- Structured helpers for benchmark and source events
"""

import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger as _loguru_logger

# Export the logger instance directly
logger = _loguru_logger

# Remove default handler
logger.remove()

# Global state for log level
_current_level = "INFO"
_initialized = False


def setup_logger(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rotation: str = "10 MB",
    retention: str = "1 week",
) -> None:
    """
    Setup the logging system.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to the main log file
        rotation: When to rotate log files
        retention: How long to keep old logs
    """
    global _current_level, _initialized

    # Clear existing handlers
    logger.remove()

    _current_level = level.upper()

    logger.add(
        sys.stderr,
        level=_current_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        colorize=True,
        backtrace=False,
        diagnose=False,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            str(log_path),
            level=_current_level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
            diagnose=False,
        )

    _initialized = True
    logger.info(f"Logging initialized at level {_current_level}")


def log_exception(exc: Exception, context: Optional[dict[str, Any]] = None) -> None:
    """Log an exception with its traceback and optional context."""
    context = context or {}
    logger.opt(exception=True).error(f"Exception occurred: {type(exc).__name__}: {exc} | {context}")


def log_benchmark_event(
    run_id: str,
    event: str,
    status: Optional[str] = None,
    detail: Optional[str] = None,
) -> None:
    """
    Log a benchmark lifecycle event.

    Args:
        run_id: Benchmark run ID
        event: Event name (start, progress, complete, ...)
        status: Run status after the event
        detail: Extra human-readable detail
    """
    msg = f"[BENCHMARK] {run_id} | {event.upper()}"
    if status:
        msg += f" | {status}"
    if detail:
        msg += f" | {detail}"

    if status == "failed":
        logger.warning(msg)
    else:
        logger.info(msg)


def log_source_failure(source: str, query: str, reason: str) -> None:
    """Log a metric source that did not answer for this tick."""
    logger.warning(f"[SOURCE] {source} unavailable for '{query}': {reason}")


def log_performance(
    operation: str,
    duration_ms: float,
    metadata: Optional[dict[str, Any]] = None,
) -> None:
    """Log timing of an internal operation."""
    metadata = metadata or {}
    logger.debug(f"[PERF] {operation}: {duration_ms:.2f}ms | {metadata}")
