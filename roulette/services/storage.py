# roulette/services/storage.py
"""Key/value persistence for user settings and pick history.

`RedisKeyValueStore` wraps redis.asyncio; read/write failures are logged and
treated as a miss so a broken store degrades to defaults instead of aborting.
`JsonFileKeyValueStore` is the default when Redis is disabled.
`InMemoryKeyValueStore` keeps everything in the process.
"""
import asyncio
import json
import math
import os
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis

from roulette.core.config import settings
from roulette.models.dto import HistoryEntry, PriceRange, SearchSettings

logger = structlog.get_logger(__name__)

KEY_SEARCH_RADIUS = "searchRadiusMiles"
KEY_PRICE_RANGE = "priceRange"
KEY_DIETARY_FILTER = "dietaryFilter"
KEY_HISTORY = "history"


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...
    async def set(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.store: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    async def set(self, key: str, value: str) -> None:
        self.store[key] = value


class JsonFileKeyValueStore:
    """A flat JSON object on disk, rewritten on every `set`."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.error("store_file_unreadable", path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.error("store_file_unreadable", path=str(self.path), error="not a JSON object")
            return {}
        return data

    def _write(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.error("store_file_write_error", path=str(self.path), error=str(e))

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        value = data.get(key)
        return None if value is None else str(value)

    async def set(self, key: str, value: str) -> None:
        # read-modify-write of the whole file; serialized per store
        async with self._lock:
            await asyncio.to_thread(self._write, key, value)


class RedisKeyValueStore:
    def __init__(self, url: Optional[str] = None, redis: Optional[Redis] = None):
        if redis is None:
            url = url or settings.REDIS_URL
            if not url:
                raise ValueError("REDIS_URL is not set in the environment")
            redis = Redis.from_url(url, decode_responses=True)
        self._redis = redis

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self._redis.get(key)
        except Exception as e:
            logger.error("redis_get_error", key=key, error=str(e))
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self._redis.set(key, value)
        except Exception as e:
            logger.error("redis_set_error", key=key, error=str(e))

    async def close(self) -> None:
        await self._redis.aclose()


def create_store() -> KeyValueStore:
    """Redis when enabled in settings, otherwise the local JSON file."""
    if settings.ENABLE_REDIS:
        return RedisKeyValueStore()
    return JsonFileKeyValueStore(settings.STORE_PATH)


class PreferencesRepository:
    """
    Reads and writes the persisted keys: searchRadiusMiles, priceRange,
    dietaryFilter and history. Missing or unreadable values fall back to
    the configured defaults.
    """

    def __init__(self, store: KeyValueStore, prefix: str = settings.REDIS_KEY_PREFIX,
                 history_limit: int = settings.HISTORY_LIMIT):
        self.store = store
        self.prefix = prefix
        self.history_limit = history_limit

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    async def load_settings(self) -> SearchSettings:
        radius_raw = await self.store.get(self._key(KEY_SEARCH_RADIUS))
        price_raw = await self.store.get(self._key(KEY_PRICE_RANGE))
        dietary_raw = await self.store.get(self._key(KEY_DIETARY_FILTER))

        radius = settings.DEFAULT_SEARCH_RADIUS_MILES
        if radius_raw is not None:
            try:
                radius = float(radius_raw)
                if not math.isfinite(radius) or radius <= 0:
                    raise ValueError("radius must be finite and positive")
            except ValueError:
                logger.warning("stored_setting_invalid", key=KEY_SEARCH_RADIUS, raw_value=radius_raw)
                radius = settings.DEFAULT_SEARCH_RADIUS_MILES

        price = PriceRange.parse(settings.DEFAULT_PRICE_RANGE)
        if price_raw is not None:
            try:
                price = PriceRange.parse(price_raw)
            except (ValueError, ValidationError):
                logger.warning("stored_setting_invalid", key=KEY_PRICE_RANGE, raw_value=price_raw)

        return SearchSettings(
            search_radius_miles=radius,
            price_range=price,
            dietary_filter=dietary_raw if dietary_raw is not None else settings.DEFAULT_DIETARY_FILTER,
        )

    async def save_settings(self, search_settings: SearchSettings) -> None:
        price = search_settings.price_range
        await self.store.set(self._key(KEY_SEARCH_RADIUS), repr(search_settings.search_radius_miles))
        await self.store.set(self._key(KEY_PRICE_RANGE), str(price) if price is not None else "")
        await self.store.set(self._key(KEY_DIETARY_FILTER), search_settings.dietary_filter)
        logger.info("settings_saved", radius_miles=search_settings.search_radius_miles,
                    price_range=str(price) if price else None)

    async def load_history(self) -> List[HistoryEntry]:
        raw = await self.store.get(self._key(KEY_HISTORY))
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning("stored_history_unreadable")
            return []
        if not isinstance(items, list):
            logger.warning("stored_history_unreadable")
            return []

        entries: List[HistoryEntry] = []
        for item in items[: self.history_limit]:
            try:
                entries.append(HistoryEntry.model_validate(item))
            except ValidationError as e:
                logger.warning("stored_history_entry_skipped", error=str(e))
        return entries

    async def save_history(self, entries: List[dict]) -> None:
        await self.store.set(self._key(KEY_HISTORY), json.dumps(entries[: self.history_limit]))
