"""Menu cache engine: fetch, parse, judge completeness, store, self-heal"""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from loguru import logger

from .api_client import PortalClient
from .config import CAFETERIA_KINDS, MENU_CACHE_KEY, STAFF_WEEKDAYS, WEEKDAYS
from .date_utils import validate_weekday, weekday_name
from .exceptions import MalformedInputError, UpstreamUnavailableError, ValidationError
from .models import DaySchedule, Meals, MenuSnapshot
from .parser import MenuParser
from .retry import RetryScheduler
from .storage import MemoryStore


def is_day_filled(meals: Meals, kind: str) -> bool:
    """A staff day needs lunch and dinner; a dormitory day needs all three meals"""
    if kind == "staff":
        return bool(meals.lunch and meals.dinner)
    return bool(meals.breakfast and meals.lunch and meals.dinner)


def is_incomplete(snapshot: MenuSnapshot) -> bool:
    """
    Conjunctive completeness policy.

    Incomplete only when every weekday staff day AND every dormitory day is
    unfilled, i.e. essentially nothing came back. A single missing meal is
    accepted as-is.
    """
    staff_empty = not any(is_day_filled(snapshot.staff[day], "staff") for day in STAFF_WEEKDAYS)
    dorm_empty = not any(is_day_filled(snapshot.dormitory[day], "dormitory") for day in WEEKDAYS)
    return staff_empty and dorm_empty


class MenuCacheEngine:
    """
    Read-through cache for the weekly menu.

    - at most one upstream fetch in flight; concurrent callers share its result
    - every refresh overwrites the cache, complete or not
    - incomplete results schedule a single deferred retry via RetryScheduler
    """

    def __init__(
        self,
        client: PortalClient,
        store: MemoryStore,
        retry: Optional[RetryScheduler] = None,
        clock: Callable[[], datetime] = datetime.now,
        cache_key: str = MENU_CACHE_KEY,
    ):
        """
        Initialize menu cache engine.

        Args:
            client: Upstream portal client
            store: Store holding the cached snapshot
            retry: Retry scheduler (default: 60s delay, 600 attempts)
            clock: Server-local clock used to resolve "today"
            cache_key: Store key of the snapshot
        """
        self.client = client
        self.store = store
        self.retry = retry or RetryScheduler()
        self.clock = clock
        self.cache_key = cache_key
        self._inflight: Optional[asyncio.Future] = None

    async def get_snapshot(self) -> MenuSnapshot:
        """Return the cached snapshot, fetching it synchronously on a miss"""
        cached = await self.store.get(self.cache_key)
        if cached is not None:
            return MenuSnapshot.from_dict(cached)
        logger.info("Menu cache miss, fetching from portal")
        return await self.refresh()

    async def refresh(self) -> MenuSnapshot:
        """
        Force a new fetch now.

        Joins the in-flight fetch if one is already running.

        Raises:
            UpstreamUnavailableError: Portal unreachable
            MalformedInputError: Portal returned an empty / non-HTML page
        """
        if self._inflight is not None:
            logger.debug("Menu fetch already in flight, awaiting its result")
            return await asyncio.shield(self._inflight)

        # Cleared by the future itself, so a cancelled caller cannot release it early
        future = asyncio.ensure_future(self._fetch_and_store())
        future.add_done_callback(self._fetch_done)
        self._inflight = future
        return await asyncio.shield(future)

    def _fetch_done(self, future: asyncio.Future) -> None:
        if self._inflight is future:
            self._inflight = None
        if not future.cancelled() and future.exception() is not None:
            logger.debug(f"Menu fetch finished with {type(future.exception()).__name__}")

    async def get_by_cafeteria(self, kind: str) -> Dict[str, Dict[str, str]]:
        """Weekly schedule of one cafeteria ("staff" or "dormitory")"""
        if kind not in CAFETERIA_KINDS:
            raise ValidationError("Invalid cafeteria type. Must be 'staff' or 'dormitory'")
        snapshot = await self.get_snapshot()
        schedule: DaySchedule = snapshot.schedule(kind)
        return {day: meals.to_dict() for day, meals in schedule.items()}

    async def get_by_day(self, day: str) -> Dict[str, Dict[str, str]]:
        """Both cafeterias' meals for one weekday"""
        validate_weekday(day)
        snapshot = await self.get_snapshot()
        return snapshot.day(day)

    async def get_today(self) -> Dict[str, Dict[str, str]]:
        """Both cafeterias' meals for the server-local current weekday"""
        today = weekday_name(self.clock())
        logger.debug(f"Resolved today as {today}")
        return await self.get_by_day(today)

    def close(self) -> None:
        """Cancel any pending retry"""
        self.retry.reset()

    async def _fetch_and_store(self) -> MenuSnapshot:
        html = await self.client.fetch_menu_html()
        snapshot = MenuParser.parse(html)
        snapshot = replace(snapshot, last_updated=datetime.now(timezone.utc).isoformat())

        incomplete = is_incomplete(snapshot)
        await self.store.set(self.cache_key, snapshot.to_dict())

        if incomplete:
            logger.warning("⚠️ Menu data came back empty")
            self.retry.record_incomplete(self._retry)
        else:
            self.retry.record_complete()
            logger.success("✅ Menu snapshot stored")

        return snapshot

    async def _retry(self) -> None:
        logger.info("Retrying empty menu fetch...")
        try:
            await self.refresh()
        except (UpstreamUnavailableError, MalformedInputError) as e:
            logger.warning(f"⚠️ Menu retry failed: {e}")
            self.retry.record_incomplete(self._retry)
