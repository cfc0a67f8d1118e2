"""Weekly background refresh of the menu cache"""

import asyncio
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from .config import WEEKLY_REFRESH_HOUR, WEEKLY_REFRESH_MINUTE, WEEKLY_REFRESH_WEEKDAY
from .date_utils import next_weekly_run
from .menu_cache import MenuCacheEngine


class WeeklyRefreshJob:
    """
    Forces a menu refresh once a week at a fixed server-local time,
    independent of the completeness-driven retry loop.
    """

    def __init__(
        self,
        engine: MenuCacheEngine,
        day_of_week: int = WEEKLY_REFRESH_WEEKDAY,
        hour: int = WEEKLY_REFRESH_HOUR,
        minute: int = WEEKLY_REFRESH_MINUTE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.engine = engine
        self.day_of_week = day_of_week
        self.hour = hour
        self.minute = minute
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def seconds_until_next_run(self) -> float:
        now = self.clock()
        next_run = next_weekly_run(now, self.day_of_week, self.hour, self.minute)
        return (next_run - now).total_seconds()

    def start(self) -> None:
        if self.running:
            logger.warning("Weekly refresh job already running")
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("Weekly refresh job started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Weekly refresh job stopped")

    async def run_once(self) -> None:
        logger.info("Running scheduled menu data update")
        try:
            await self.engine.refresh()
            logger.success("Weekly menu data update completed")
        except Exception as e:
            logger.error(f"Error during scheduled menu update: {e}")

    async def _loop(self) -> None:
        while True:
            wait = self.seconds_until_next_run()
            logger.debug(f"Next weekly menu refresh in {wait / 3600:.1f}h")
            await asyncio.sleep(wait)
            await self.run_once()
