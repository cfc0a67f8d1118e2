"""Deferred retry scheduling for incomplete menu fetches"""

import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger

from .config import MENU_MAX_RETRIES, MENU_RETRY_DELAY
from .models import RetryState


class RetryScheduler:
    """
    Explicit state machine owning the menu retry timer.

    IDLE     -> no retry pending, attempt count may be non-zero
    PENDING  -> exactly one deferred callback scheduled at `deadline`

    Scheduling always cancels the previous pending retry first, so at most
    one retry is ever in flight. Reaching the attempt ceiling gives up,
    resets the counter and returns to IDLE.
    """

    def __init__(
        self,
        delay: float = MENU_RETRY_DELAY,
        max_retries: int = MENU_MAX_RETRIES,
        name: str = "menu",
    ):
        """
        Initialize retry scheduler.

        Args:
            delay: Seconds before the deferred retry runs
            max_retries: Attempt ceiling before giving up
            name: Name for logging purposes
        """
        self.delay = delay
        self.max_retries = max_retries
        self.name = name
        self.state = RetryState.IDLE
        self.attempts = 0
        self.deadline: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

        logger.debug(
            f"Retry scheduler '{name}' initialized: delay={delay}s, max_retries={max_retries}"
        )

    @property
    def pending(self) -> bool:
        return self.state == RetryState.PENDING

    def record_incomplete(self, callback: Callable[[], Awaitable[None]]) -> bool:
        """
        Count an incomplete result and schedule one deferred retry.

        Args:
            callback: Coroutine function to run after the delay

        Returns:
            True if a retry was scheduled, False if the ceiling was reached
        """
        self.attempts += 1
        if self.attempts >= self.max_retries:
            logger.warning(
                f"⚠️ '{self.name}' reached max retries ({self.max_retries}), "
                f"keeping incomplete data until the next scheduled refresh"
            )
            self.reset()
            return False

        self._cancel_pending()
        loop = asyncio.get_running_loop()
        self.deadline = loop.time() + self.delay
        self.state = RetryState.PENDING
        self._task = loop.create_task(self._run_after(callback))
        logger.info(
            f"🔁 '{self.name}' incomplete, retry #{self.attempts} in {self.delay:.0f}s"
        )
        return True

    def record_complete(self) -> None:
        """A complete result resets the counter and cancels any pending retry"""
        if self.attempts:
            logger.success(f"✓ '{self.name}' complete after {self.attempts} retries")
        self.reset()

    def reset(self) -> None:
        self._cancel_pending()
        self.attempts = 0

    def _cancel_pending(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.deadline = None
        self.state = RetryState.IDLE

    async def _run_after(self, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self.delay)

        # Detach before running so the callback can schedule the next retry
        self._task = None
        self.deadline = None
        self.state = RetryState.IDLE

        try:
            await callback()
        except Exception as e:
            logger.error(f"❌ '{self.name}' deferred retry failed: {e}")
            self.reset()
