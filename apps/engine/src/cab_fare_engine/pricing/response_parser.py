"""Pull typed rate values out of raw Pricing Service payloads.

The service has shipped several field spellings over time (``price8hrs80km``,
``price_8hrs_80km``, ``package8hr80km``), and numbers arrive either as JSON
numbers or as numeric strings. Everything here tolerates both and treats an
unparsable, negative or non-finite value as 0.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any

from cab_fare_core.schemas import TripType

logger = logging.getLogger(__name__)

_NON_ID_CHARS = re.compile(r"[^a-z0-9_]")

_PACKAGE_FIELDS: dict[str, tuple[str, ...]] = {
    "4hrs-40km": ("price4hrs40km", "price_4hrs_40km", "package4hr40km"),
    "8hrs-80km": ("price8hrs80km", "price_8hrs_80km", "package8hr80km"),
    "10hrs-100km": ("price10hrs100km", "price_10hrs_100km", "package10hr100km"),
}

_PAYLOAD_KEYS: dict[TripType, str] = {
    TripType.LOCAL: "fares",
    TripType.OUTSTATION: "fare",
    TripType.AIRPORT: "fare",
    TripType.TOUR: "tourFare",
}


def to_float(value: Any) -> float:
    """Parse a JSON number or numeric string; unparsable, negative and
    non-finite (``NaN``, ``inf``) values are 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        logger.debug("Ignoring out-of-domain rate value %r", value)
        return 0.0
    return number


def pick(record: dict, *names: str) -> float:
    """Return the first non-zero numeric field among *names*."""
    for name in names:
        value = to_float(record.get(name))
        if value:
            return value
    return 0.0


def normalize_record_id(raw_id: Any) -> str:
    value = str(raw_id or "").strip().lower()
    if value.startswith("item-"):
        value = value[5:]
    return _NON_ID_CHARS.sub("_", value)


def is_success(raw: dict) -> bool:
    return raw.get("status") == "success"


def payload_for(raw: dict, trip_type: TripType) -> Any:
    """Return the trip-type payload (``fares`` / ``fare`` / ``tourFare``) or None."""
    if not is_success(raw):
        logger.warning(
            "Pricing Service returned status %r for %s", raw.get("status"), trip_type
        )
        return None
    return raw.get(_PAYLOAD_KEYS[trip_type])


def find_local_record(fares: Any, canonical_id: str) -> dict | None:
    """Find the per-vehicle record in a local ``fares[]`` array."""
    if not isinstance(fares, list):
        return None
    wanted = normalize_record_id(canonical_id)
    for record in fares:
        if not isinstance(record, dict):
            continue
        for field in ("vehicleId", "vehicle_id", "id"):
            if field in record and normalize_record_id(record[field]) == wanted:
                return record
    logger.warning(
        "No local fare record for %s among %s",
        canonical_id,
        [r.get("vehicleId") for r in fares if isinstance(r, dict)],
    )
    return None


def local_package_price(record: dict, package_id: str) -> float:
    fields = _PACKAGE_FIELDS.get(package_id)
    if fields is None:
        logger.error("Unsupported local package %s", package_id)
        return 0.0
    return pick(record, *fields)
