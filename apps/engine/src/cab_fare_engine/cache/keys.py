"""Storage key builders for consistent namespacing."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cab_fare_core.schemas import FareParams, TripType

FARE_PREFIX = "fare_"
VALIDATED_PREFIX = "valid_fare_"
FORCE_REFRESH_KEY = "force_fare_refresh"


def day_bucket(timestamp: float) -> str:
    """UTC calendar day, so cached fares never outlive the day they were quoted."""
    return datetime.fromtimestamp(timestamp, tz=UTC).strftime("%Y%m%d")


def fare_key(params: FareParams, timestamp: float) -> str:
    """Build the cache key for a computed fare."""
    return (
        f"{FARE_PREFIX}{params.trip_type.value}_{params.vehicle_id}_"
        f"{params.distance_km:g}_{params.trip_mode.value}_{params.package_id or ''}_"
        f"{day_bucket(timestamp)}"
    )


def trip_type_prefix(trip_type: TripType) -> str:
    """Prefix shared by every cached fare of one trip type."""
    return f"{FARE_PREFIX}{trip_type.value}_"


def validated_key(canonical_id: str, trip_type: TripType) -> str:
    """Build the key for the fare already confirmed in the booking flow."""
    return f"{VALIDATED_PREFIX}{canonical_id}_{trip_type.value}"
