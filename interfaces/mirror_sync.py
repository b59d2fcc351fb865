from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_SYNC_SECONDS = 30


async def sync_once(sync: Callable[[], int]) -> None:
    """Run one blocking sync pass off the event loop. Errors are logged, not raised."""

    try:
        await asyncio.to_thread(sync)
    except Exception:
        logger.exception("Kicklet balance sync failed")


async def sync_forever(sync: Callable[[], int], interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        await sync_once(sync)
