"""Fare integrity checks and reconciliation against validated fares."""

from __future__ import annotations

import hashlib
import logging
import time
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cab_fare_core.schemas import FareSource, ValidatedFare

from cab_fare_engine.cache.keys import validated_key
from cab_fare_engine.config import settings
from cab_fare_engine.errors import ChecksumMismatch, OutOfBounds

if TYPE_CHECKING:
    from collections.abc import Callable

    from cab_fare_core.schemas import CacheEntry, FareDetails, FareParams, TripType

    from cab_fare_engine.cache.tiers import TieredStore
    from cab_fare_engine.vehicles import PricingTierCatalog

logger = logging.getLogger(__name__)


def checksum(total_price: float, canonical_id: str, trip_type: TripType) -> str:
    """Cheap order-sensitive fingerprint of a fare; not a security measure."""
    raw = f"{total_price:.2f}|{canonical_id}|{trip_type.value}"
    return hashlib.md5(raw.encode()).hexdigest()[:16]


def verify_checksum(entry: CacheEntry, canonical_id: str, trip_type: TripType) -> bool:
    """True when *entry* still matches the checksum of its fare; logs a mismatch."""
    expected = checksum(entry.fare.total_price, canonical_id, trip_type)
    if entry.checksum != expected:
        error = ChecksumMismatch(canonical_id, expected, entry.checksum)
        logger.warning("%s (%s)", error, trip_type.value)
        return False
    return True


class ReconciliationValidator:
    """Guards against corrupted, implausible or drifting fares."""

    def __init__(
        self,
        store: TieredStore,
        catalog: PricingTierCatalog,
        *,
        tolerance: float | None = None,
        sync_tolerance: float | None = None,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._tolerance = settings.reconcile_tolerance if tolerance is None else tolerance
        self._sync_tolerance = (
            settings.sync_tolerance if sync_tolerance is None else sync_tolerance
        )
        self._wall_clock = wall_clock

    checksum = staticmethod(checksum)

    def verify(self, entry: CacheEntry, canonical_id: str, trip_type: TripType) -> bool:
        return verify_checksum(entry, canonical_id, trip_type)

    def within_bounds(
        self, fare: FareDetails, canonical_id: str, trip_type: TripType
    ) -> bool:
        minimum, maximum = self._catalog.valid_range(canonical_id, trip_type)
        if minimum <= fare.total_price <= maximum:
            return True
        logger.warning(
            "%s (%s)",
            OutOfBounds(fare.total_price, canonical_id, minimum, maximum),
            trip_type.value,
        )
        return False

    async def record(
        self,
        params: FareParams,
        fare: FareDetails,
        source: FareSource = FareSource.VALIDATED,
    ) -> ValidatedFare:
        """Persist *fare* as the one the booking flow committed to."""
        entry = ValidatedFare(
            timestamp=self._wall_clock(),
            fare=fare,
            checksum=checksum(fare.total_price, params.vehicle_id, params.trip_type),
            canonical_id=params.vehicle_id,
            trip_type=params.trip_type,
            source=source,
        )
        await self._store.write(
            validated_key(params.vehicle_id, params.trip_type),
            entry.model_dump(mode="json"),
        )
        logger.info(
            "Recorded validated fare %.2f for %s (%s)",
            fare.total_price,
            params.vehicle_id,
            params.trip_type.value,
        )
        return entry

    async def validated_fare(
        self, canonical_id: str, trip_type: TripType
    ) -> FareDetails | None:
        key = validated_key(canonical_id, trip_type)
        record = await self._store.read(key)
        if record is None:
            return None
        try:
            entry = ValidatedFare.model_validate(record)
        except ValidationError:
            logger.warning("Discarding unreadable validated fare %s", key)
            await self._store.delete(key)
            return None
        if not self.verify(entry, canonical_id, trip_type):
            await self._store.delete(key)
            return None
        return entry.fare

    async def reconcile(
        self, candidate: FareDetails, canonical_id: str, trip_type: TripType
    ) -> FareDetails:
        """Prefer the validated fare when *candidate* drifted beyond tolerance."""
        validated = await self.validated_fare(canonical_id, trip_type)
        if validated is None:
            return candidate

        drift = abs(candidate.total_price - validated.total_price)
        if drift > self._tolerance:
            logger.warning(
                "Fare mismatch for %s (%s): candidate %.2f vs validated %.2f",
                canonical_id,
                trip_type.value,
                candidate.total_price,
                validated.total_price,
            )
            return validated
        return candidate

    async def sync_needed(
        self, candidate: FareDetails, canonical_id: str, trip_type: TripType
    ) -> bool:
        validated = await self.validated_fare(canonical_id, trip_type)
        if validated is None:
            return False
        return abs(candidate.total_price - validated.total_price) > self._sync_tolerance

    async def forget(self, canonical_id: str, trip_type: TripType) -> None:
        await self._store.delete(validated_key(canonical_id, trip_type))
