"""Storage call performance monitoring.

This module provides tools to spot slow persistence round trips, which is the
only source of latency in the engine.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def monitor_storage_call(
    operation: str,
    key: str,
    slow_call_threshold: float = 0.25,
) -> AsyncIterator[None]:
    """Time a storage call and log a warning when it exceeds the threshold.

    Args:
        operation: Collaborator method being invoked (``get``, ``set``, ``remove``)
        key: Top-level storage key touched by the call
        slow_call_threshold: Log calls slower than this many seconds (default: 0.25s)
    """
    started = time.perf_counter()
    try:
        yield
    finally:
        total = time.perf_counter() - started
        if total > slow_call_threshold:
            logger.warning(
                f"Slow storage {operation} detected ({total:.3f}s) for key '{key}'",
                extra={
                    "duration_seconds": total,
                    "operation": operation,
                    "storage_key": key,
                    "threshold_seconds": slow_call_threshold,
                },
            )
        else:
            logger.debug(f"Storage {operation} for key '{key}' took {total:.3f}s")
