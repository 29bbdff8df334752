"""
Periodic collection for a meter.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from shared.logging import get_logger

logger = get_logger("telemetry.controller")


class CollectionController:
    """Runs ``collect`` every ``interval`` seconds until stopped."""

    def __init__(self, collect: Callable[[], Awaitable[object]], interval: float = 60.0):
        self.collect = collect
        self.interval = interval
        self.collection_task: Optional[asyncio.Task] = None
        self.running = False

    async def start(self):
        """Start periodic collection."""
        if self.running:
            return
        self.running = True
        self.collection_task = asyncio.create_task(self._collection_loop())
        logger.info("Collection controller started", interval=self.interval)

    async def stop(self):
        """Stop periodic collection."""
        self.running = False
        if self.collection_task:
            self.collection_task.cancel()
            try:
                await self.collection_task
            except asyncio.CancelledError:
                pass
            self.collection_task = None

        logger.info("Collection controller stopped")

    async def _collection_loop(self):
        """Main collection loop."""
        while self.running:
            try:
                await asyncio.sleep(self.interval)
                await self.collect()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in collection loop", error=str(e))
