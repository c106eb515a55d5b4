"""
First-touch UTM attribution per visitor.

The store never overwrites a captured record: the earliest marketing touch
wins until ``clear()`` is called. Storage is injected so the same store runs
over Redis in the service and over a dict in tests.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping, Optional, Protocol, Union

import redis.asyncio as redis
from starlette.datastructures import QueryParams

from booking_leads.core.logging import get_structlog_logger
from booking_leads.schemas.lead import UTM_KEYS, UtmParams

logger = get_structlog_logger(__name__)

STORAGE_KEY = "utm_params"
TIMESTAMP_KEY = "utm_timestamp"


class AttributionStorageUnavailable(Exception):
    """The backing key/value storage cannot be reached."""


class AttributionStorage(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...


class InMemoryAttributionStorage:
    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class RedisAttributionStorage:
    """Visitor-scoped storage in Redis. Keys never expire."""

    def __init__(self, redis_client: redis.Redis, namespace: str):
        self.redis = redis_client
        self.namespace = namespace

    def _make_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self.redis.get(self._make_key(key))
        except redis.RedisError as e:
            raise AttributionStorageUnavailable(str(e)) from e
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self.redis.set(self._make_key(key), value)
        except redis.RedisError as e:
            raise AttributionStorageUnavailable(str(e)) from e

    async def remove(self, key: str) -> None:
        try:
            await self.redis.delete(self._make_key(key))
        except redis.RedisError as e:
            raise AttributionStorageUnavailable(str(e)) from e


@dataclass(frozen=True)
class AttributionRecord:
    params: Dict[str, str]
    captured_at: Optional[datetime] = field(default=None)

    def to_utm(self) -> UtmParams:
        return UtmParams(captured_at=self.captured_at, **self.params)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            **self.params,
            "captured_at": self.captured_at.isoformat() if self.captured_at else None,
        }


def _epoch_ms(moment: datetime) -> str:
    return str(int(moment.timestamp() * 1000))


def _from_epoch_ms(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def extract_utm_params(query: Union[str, Mapping[str, str], QueryParams]) -> Dict[str, str]:
    """Recognised UTM parameters with non-empty values; the first value wins."""
    if isinstance(query, str):
        params = QueryParams(query.lstrip("?"))
    elif isinstance(query, QueryParams):
        params = query
    else:
        params = QueryParams(dict(query))

    found: Dict[str, str] = {}
    for key in UTM_KEYS:
        values = params.getlist(key)
        if values and values[0]:
            found[key] = values[0]
    return found


class AttributionStore:
    """Write-once store for a single client context."""

    def __init__(
        self,
        storage: Optional[AttributionStorage],
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.storage = storage
        self.clock = clock

    async def capture(
        self, query: Union[str, Mapping[str, str], QueryParams]
    ) -> Optional[AttributionRecord]:
        """Store UTMs from ``query`` unless a record already exists.

        Returns the newly stored record, or None when nothing was written.
        """
        if self.storage is None:
            return None

        if await self.storage.get(STORAGE_KEY):
            return None

        params = extract_utm_params(query)
        if not params:
            return None

        captured_at = self.clock()
        await self.storage.set(STORAGE_KEY, json.dumps(params))
        await self.storage.set(TIMESTAMP_KEY, _epoch_ms(captured_at))
        logger.info("attribution.captured", **params)
        return AttributionRecord(params=params, captured_at=captured_at)

    async def read(self) -> Optional[AttributionRecord]:
        if self.storage is None:
            return None

        try:
            raw = await self.storage.get(STORAGE_KEY)
            if not raw:
                return None
            timestamp = await self.storage.get(TIMESTAMP_KEY)
        except AttributionStorageUnavailable as e:
            logger.warning("attribution.storage_unavailable", error=str(e))
            return None

        try:
            decoded = json.loads(raw)
        except ValueError:
            logger.warning("attribution.corrupt_record")
            return None
        if not isinstance(decoded, dict):
            return None

        params = {
            key: value
            for key, value in decoded.items()
            if key in UTM_KEYS and isinstance(value, str) and value
        }
        return AttributionRecord(params=params, captured_at=_from_epoch_ms(timestamp))

    async def clear(self) -> None:
        if self.storage is None:
            return
        await self.storage.remove(STORAGE_KEY)
        await self.storage.remove(TIMESTAMP_KEY)
