"""Checksummed, TTL-bound fare cache over the two storage tiers."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cab_fare_core.schemas import CacheEntry

from cab_fare_engine.config import settings
from cab_fare_engine.reconciliation import checksum, verify_checksum

from .keys import FARE_PREFIX, FORCE_REFRESH_KEY, fare_key, trip_type_prefix

if TYPE_CHECKING:
    from collections.abc import Callable

    from cab_fare_core.schemas import FareDetails, FareParams, TripType

    from .tiers import TieredStore

logger = logging.getLogger(__name__)


class FareCache:
    """Fare cache keyed by normalised params and the current UTC day.

    Entries are checksummed at write time and verified on every read;
    entries failing verification or older than ``ttl`` are evicted.
    """

    def __init__(
        self,
        store: TieredStore,
        *,
        ttl: float | None = None,
        clear_cooldown: float | None = None,
        force_refresh_window: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = settings.cache_ttl if ttl is None else ttl
        self._clear_cooldown = (
            settings.clear_cooldown if clear_cooldown is None else clear_cooldown
        )
        self._force_window = (
            settings.force_refresh_window
            if force_refresh_window is None
            else force_refresh_window
        )
        self._clock = clock
        self._wall_clock = wall_clock
        self._last_clear: float | None = None

    def key_for(self, params: FareParams) -> str:
        return fare_key(params, self._wall_clock())

    async def get(
        self, params: FareParams, *, allow_expired: bool = False
    ) -> FareDetails | None:
        """Return a verified cached fare, or None on a miss.

        With ``allow_expired`` the TTL is ignored (checksums still apply);
        used for best-effort fallbacks.
        """
        key = self.key_for(params)
        record = await self._store.read(key)
        if record is None:
            return None

        try:
            entry = CacheEntry.model_validate(record)
        except ValidationError:
            logger.warning("Evicting unreadable cache entry %s", key)
            await self._store.delete(key)
            return None

        if not verify_checksum(entry, params.vehicle_id, params.trip_type):
            logger.warning("Evicting cache entry %s", key)
            await self._store.delete(key)
            return None

        if entry.is_expired(self._wall_clock(), self._ttl):
            if allow_expired:
                logger.debug("Serving expired cache entry %s as fallback", key)
                return entry.fare
            logger.debug("Evicting expired cache entry %s", key)
            await self._store.delete(key)
            return None

        return entry.fare

    async def put(self, params: FareParams, fare: FareDetails) -> bool:
        """Cache *fare*; unpriced fares are refused."""
        if not fare.is_priced:
            logger.debug("Refusing to cache unpriced fare for %s", params.request_key)
            return False
        entry = CacheEntry(
            timestamp=self._wall_clock(),
            fare=fare,
            checksum=checksum(fare.total_price, params.vehicle_id, params.trip_type),
        )
        await self._store.write(self.key_for(params), entry.model_dump(mode="json"))
        return True

    async def clear(self) -> bool:
        """Drop every cached fare and raise the force-refresh flag.

        Throttled globally; calls inside the cooldown return False and
        leave the cache untouched.
        """
        now = self._clock()
        if self._last_clear is not None and now - self._last_clear < self._clear_cooldown:
            logger.info(
                "Cache clear throttled (%.1fs since last clear)", now - self._last_clear
            )
            return False
        self._last_clear = now

        keys = await self._store.keys(FARE_PREFIX)
        if keys:
            await self._store.delete(*keys)
        for tier in (self._store.short_lived, self._store.durable):
            await tier.set(FORCE_REFRESH_KEY, str(self._wall_clock()), ttl=self._force_window)
        logger.info("Cleared %d cached fares", len(keys))
        return True

    async def clear_for(self, trip_type: TripType) -> int:
        """Drop cached fares of one trip type; not throttled."""
        keys = await self._store.keys(trip_type_prefix(trip_type))
        if keys:
            await self._store.delete(*keys)
        logger.info("Cleared %d cached %s fares", len(keys), trip_type.value)
        return len(keys)

    async def force_refresh_active(self) -> bool:
        for tier in (self._store.short_lived, self._store.durable):
            if await tier.get(FORCE_REFRESH_KEY) is not None:
                return True
        return False

    async def sync(self) -> int:
        """Reconcile every cached fare across both tiers."""
        return await self._store.sync(FARE_PREFIX)
