"""Trip-type specific fare formulas."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cab_fare_core.schemas import FareDetails, TripType

from cab_fare_engine.vehicles.resolver import normalize_package_id

from .response_parser import (
    find_local_record,
    local_package_price,
    payload_for,
    pick,
    to_float,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from cab_fare_core.schemas import FareParams

logger = logging.getLogger(__name__)

OUTSTATION_MIN_DISTANCE_KM = 300

# Upper distance bound (km) of each airport tier; beyond the last one the
# tier-4 price plus a per-km surcharge applies.
AIRPORT_TIER_LIMITS: tuple[tuple[float, str], ...] = (
    (10, "tier1Price"),
    (20, "tier2Price"),
    (30, "tier3Price"),
)
AIRPORT_TIER4_FROM_KM = 30


class FareCalculator:
    """Turn a raw Pricing Service response into :class:`FareDetails`.

    ``compute`` is a pure function of its inputs: no I/O, no caching.
    ``params.vehicle_id`` must already be canonical.
    """

    def __init__(self) -> None:
        self._formulas: dict[TripType, Callable[[FareParams, dict], FareDetails]] = {
            TripType.LOCAL: self._local,
            TripType.OUTSTATION: self._outstation,
            TripType.AIRPORT: self._airport,
            TripType.TOUR: self._tour,
        }

    def compute(self, params: FareParams, raw: dict) -> FareDetails:
        try:
            fare = self._formulas[params.trip_type](params, raw)
        except ValidationError as exc:
            logger.warning(
                "Discarding %s fare for %s: %s",
                params.trip_type,
                params.vehicle_id,
                exc.errors(include_url=False),
            )
            fare = FareDetails.zero()
        if not fare.is_priced:
            logger.warning(
                "Unpriced %s fare for %s (distance=%s, package=%s)",
                params.trip_type,
                params.vehicle_id,
                params.distance_km,
                params.package_id,
            )
        return fare

    # ------------------------------------------------------------------
    # Formulas
    # ------------------------------------------------------------------

    @staticmethod
    def _local(params: FareParams, raw: dict) -> FareDetails:
        record = find_local_record(
            payload_for(raw, TripType.LOCAL), params.vehicle_id
        )
        if record is None:
            return FareDetails.zero()

        package_id = normalize_package_id(params.package_id)
        price = local_package_price(record, package_id)
        extra_km = pick(record, "priceExtraKm", "price_extra_km", "extraKmCharge")
        extra_hour = pick(record, "priceExtraHour", "price_extra_hour")
        return FareDetails(
            base_price=price,
            total_price=price,
            package_price=price,
            extra_km_charge=extra_km,
            breakdown={
                "Package": package_id,
                "Package price": price,
                "Extra km rate": extra_km,
                "Extra hour rate": extra_hour,
            },
        )

    @staticmethod
    def _outstation(params: FareParams, raw: dict) -> FareDetails:
        payload = payload_for(raw, TripType.OUTSTATION)
        if not isinstance(payload, dict):
            return FareDetails.zero()

        base_price = pick(payload, "basePrice", "oneWayBasePrice", "base_price")
        per_km = pick(payload, "pricePerKm", "oneWayPricePerKm", "price_per_km")
        driver_allowance = pick(payload, "driverAllowance", "driver_allowance")
        night_halt = pick(payload, "nightHaltCharge", "night_halt_charge")

        # Doubled for one-way and round trips alike.
        effective_km = max(params.distance_km * 2, OUTSTATION_MIN_DISTANCE_KM)
        distance_fare = effective_km * per_km
        total = base_price + distance_fare + driver_allowance

        return FareDetails(
            base_price=base_price,
            total_price=total,
            driver_allowance=driver_allowance,
            night_halt_charge=night_halt,
            breakdown={
                "Trip mode": params.trip_mode.value,
                "Effective distance (km)": effective_km,
                "Price per km": per_km,
                "Base fare": base_price,
                "Distance fare": distance_fare,
                "Driver allowance": driver_allowance,
            },
        )

    @staticmethod
    def _airport(params: FareParams, raw: dict) -> FareDetails:
        payload = payload_for(raw, TripType.AIRPORT)
        if not isinstance(payload, dict):
            return FareDetails.zero()

        distance = params.distance_km
        extra_km_rate = pick(payload, "extraKmCharge", "extra_km_charge")
        airport_fee = pick(payload, "airportFee", "airport_fee")

        tier_name = "tier4Price"
        extra_charge = 0.0
        for limit, name in AIRPORT_TIER_LIMITS:
            if distance <= limit:
                tier_name = name
                break
        else:
            extra_charge = (distance - AIRPORT_TIER4_FROM_KM) * extra_km_rate

        tier_price = to_float(payload.get(tier_name))
        base_fare = tier_price + extra_charge
        if base_fare <= 0:
            return FareDetails.zero()

        return FareDetails(
            base_price=base_fare,
            total_price=base_fare + airport_fee,
            extra_km_charge=extra_km_rate,
            breakdown={
                "Tier": tier_name,
                "Tier price": tier_price,
                "Extra distance charge": extra_charge,
                "Airport fee": airport_fee,
            },
        )

    @staticmethod
    def _tour(params: FareParams, raw: dict) -> FareDetails:
        payload = payload_for(raw, TripType.TOUR)
        if not isinstance(payload, dict):
            return FareDetails.zero()

        price = pick(payload, "price", "totalPrice")
        return FareDetails(
            base_price=price,
            total_price=price,
            package_price=price,
            breakdown={"Tour fare": price},
        )
