"""
Utility functions for permadoc library.

This module contains common helper functions used throughout the library.
"""

import time
from typing import Any, Iterable, List

from loguru import logger


def compute_backoff_delay(
    attempt: int,
    base_delay: float = 0.1,
    backoff_factor: float = 2.0,
    max_delay: float = 10.0
) -> float:
    """
    Compute the exponential backoff delay before the next attempt.

    Args:
        attempt: Zero-based index of the attempt that just failed
        base_delay: Initial delay between attempts (seconds)
        backoff_factor: Exponential backoff multiplier
        max_delay: Maximum delay between attempts (seconds)

    Returns:
        float: Delay in seconds
    """
    return min(base_delay * (backoff_factor ** attempt), max_delay)


def parse_version_tag(value: Any) -> int:
    """
    Parse a version tag value to an integer.

    Missing or unparseable values are treated as version 0 so that
    malformed transactions sort last in "latest first" ordering.

    Args:
        value: Raw tag value (usually a decimal string)

    Returns:
        int: Version number
    """
    if value is None:
        return 0
    try:
        return int(str(value).strip())
    except ValueError:
        return 0


def unique_in_order(items: Iterable[str]) -> List[str]:
    """Drop repeated items while keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def timing_context(operation_name: str) -> 'TimingContext':
    """
    Create a timing context manager for performance measurement.

    Args:
        operation_name: Name of the operation being timed

    Returns:
        TimingContext: Context manager for timing
    """
    return TimingContext(operation_name)


class TimingContext:
    """Context manager for timing operations."""

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self.start_time = None

    def __enter__(self):
        self.start_time = time.monotonic()
        logger.debug(f"Starting operation: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.monotonic() - self.start_time

        if exc_type is None:
            logger.debug(f"Operation '{self.operation_name}' completed in {duration:.3f}s")
        else:
            logger.debug(f"Operation '{self.operation_name}' failed after {duration:.3f}s: {exc_val}")
