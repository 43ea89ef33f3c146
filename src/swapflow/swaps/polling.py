"""Periodic quote refresh while the user reviews quotes."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class QuotePoller:
    """Runs ``poll`` every ``interval_seconds`` until stopped.

    An interval of zero or less disables polling.
    """

    def __init__(self, poll: Callable[[], Awaitable[None]], interval_seconds: float):
        self._poll = poll
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling, restarting the timer if already running."""
        self.stop()
        if self.interval_seconds <= 0:
            return
        self._task = asyncio.create_task(self._run())
        logger.debug(f"Quote polling started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
                logger.debug("Quote polling stopped")
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self._poll()
            except Exception as e:
                logger.warning(f"Quote refresh failed: {type(e).__name__}: {e}")
