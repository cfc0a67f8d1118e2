"""Key/value stores with per-key expiry - credential store and menu cache"""

import asyncio
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import aiofiles
import orjson
from loguru import logger


class MemoryStore:
    """
    In-process key/value store with per-key TTL.

    Values are serialized with orjson on write, so every read returns a fresh
    copy and each key is always replaced as a whole.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Initialize store.

        Args:
            clock: Wall-clock source in seconds (injectable for tests)
        """
        self.clock = clock
        self._entries: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self.lock = asyncio.Lock()

    def _live(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at is not None and self.clock() >= expires_at:
            del self._entries[key]
            return None
        return payload

    async def get(self, key: str) -> Optional[Any]:
        """Return the decoded value, or None if absent or expired"""
        async with self.lock:
            payload = self._live(key)
        if payload is None:
            return None
        return orjson.loads(payload)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value, replacing any previous one; ttl in seconds, None for no expiry"""
        payload = orjson.dumps(value)
        expires_at = self.clock() + ttl if ttl is not None else None
        async with self.lock:
            self._entries[key] = (payload, expires_at)
            await self._persist()

    async def delete(self, key: str) -> None:
        """Delete key; deleting an absent key is not an error"""
        async with self.lock:
            if self._entries.pop(key, None) is not None:
                await self._persist()

    async def ttl(self, key: str) -> Optional[float]:
        """Seconds left before key expires, None if absent or without expiry"""
        async with self.lock:
            if self._live(key) is None:
                return None
            expires_at = self._entries[key][1]
        if expires_at is None:
            return None
        return max(0.0, expires_at - self.clock())

    async def _persist(self) -> None:
        """Hook for durable backends; called with the lock held"""
        return None


class JsonFileStore(MemoryStore):
    """
    MemoryStore that mirrors its entries to a JSON file so sessions and the
    cached menu survive restarts. Uses aiofiles so writes never block the
    event loop.
    """

    def __init__(self, path: Path, clock: Callable[[], float] = time.time):
        super().__init__(clock=clock)
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def load(self) -> int:
        """
        Load entries from disk, dropping those already expired.

        Returns:
            Number of live entries loaded
        """
        if not self.path.exists():
            logger.debug(f"No store file yet: {self.path}")
            return 0

        async with aiofiles.open(self.path, "rb") as f:
            raw = await f.read()

        document = orjson.loads(raw) if raw else {}
        now = self.clock()
        async with self.lock:
            self._entries = {}
            for key, item in document.items():
                expires_at = item.get("expires_at")
                if expires_at is not None and now >= expires_at:
                    continue
                self._entries[key] = (orjson.dumps(item["value"]), expires_at)
            count = len(self._entries)

        logger.info(f"💾 Loaded {count} store entries from {self.path}")
        return count

    async def _persist(self) -> None:
        document = {
            key: {"value": orjson.loads(payload), "expires_at": expires_at}
            for key, (payload, expires_at) in self._entries.items()
        }
        json_bytes = orjson.dumps(document)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(json_bytes)
        tmp_path.replace(self.path)
        logger.debug(f"💾 Store persisted: {self.path.name} ({len(json_bytes)/1024:.1f}KB)")
