"""Vehicle identity resolution and pricing tier lookups."""

from __future__ import annotations

import pytest

from cab_fare_core.schemas import FareParams, TripMode, TripType

from cab_fare_engine.errors import InvalidVehicleId
from cab_fare_engine.vehicles import (
    PricingTierCatalog,
    VehicleIdentityResolver,
    normalize_package_id,
)

# ---------------------------------------------------------------------------
# VehicleIdentityResolver
# ---------------------------------------------------------------------------


@pytest.fixture
def resolver() -> VehicleIdentityResolver:
    return VehicleIdentityResolver()


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("sedan", "sedan"),
        ("  Sedan ", "sedan"),
        ("item-ertiga", "ertiga"),
        ("Innova Crysta", "innova_crysta"),
        ("1", "sedan"),
        ("1266", "innova_crysta"),
        ("item-592", "urbania"),
        ("1291", "etios"),
        ("force_one", "force_one"),
    ],
)
def test_resolve(resolver, raw, expected):
    assert resolver.resolve(raw) == expected


@pytest.mark.parametrize("raw", ["999", "item-42", "", "   ", "item-", None])
def test_resolve_rejects(resolver, raw):
    with pytest.raises(InvalidVehicleId):
        resolver.resolve(raw)


def test_invalid_vehicle_id_is_value_error(resolver):
    with pytest.raises(ValueError, match="999"):
        resolver.resolve("999")


@pytest.mark.parametrize(
    "raw", ["1", "item-item-sedan", " Tempo Traveller", "dzire_cng", "new vehicle"]
)
def test_resolve_is_idempotent(resolver, raw):
    once = resolver.resolve(raw)
    assert resolver.resolve(once) == once


def test_custom_alias_table():
    resolver = VehicleIdentityResolver(known_ids=["sedan"], aliases={"7": "Sedan"})
    assert resolver.resolve("7") == "sedan"
    with pytest.raises(InvalidVehicleId):
        resolver.resolve("1")


@pytest.mark.parametrize(
    "aliases", [{"5": "12"}, {"5": ""}, {"5": "sedan", "sedan": "etios"}]
)
def test_bad_alias_tables_rejected(aliases):
    with pytest.raises(ValueError):
        VehicleIdentityResolver(aliases=aliases)


def test_normalize_params_local(resolver):
    params = FareParams(
        vehicle_id="item-1",
        trip_type=TripType.LOCAL,
        distance_km=42,
        trip_mode=TripMode.ROUND_TRIP,
        package_id="10 hours 100km",
    )
    normalized = resolver.normalize_params(params)
    assert normalized.vehicle_id == "sedan"
    assert normalized.package_id == "10hrs-100km"
    assert normalized.distance_km == 0
    assert normalized.trip_mode == TripMode.ONE_WAY


def test_normalize_params_outstation_drops_package(resolver):
    params = FareParams(
        vehicle_id="Ertiga",
        trip_type=TripType.OUTSTATION,
        distance_km=150,
        trip_mode=TripMode.ROUND_TRIP,
        package_id="8hrs-80km",
    )
    normalized = resolver.normalize_params(params)
    assert normalized.vehicle_id == "ertiga"
    assert normalized.package_id is None
    assert normalized.distance_km == 150
    assert normalized.trip_mode == TripMode.ROUND_TRIP


def test_equivalent_params_share_request_key(resolver):
    a = resolver.normalize_params(
        FareParams(vehicle_id="1", trip_type=TripType.LOCAL, package_id="8hr_80km")
    )
    b = resolver.normalize_params(FareParams(vehicle_id="Sedan", trip_type=TripType.LOCAL))
    assert a.request_key == b.request_key


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, "8hrs-80km"),
        ("", "8hrs-80km"),
        ("4hrs-40km", "4hrs-40km"),
        ("04hrs_40km", "4hrs-40km"),
        ("8hr_80km", "8hrs-80km"),
        ("08hrs-80km", "8hrs-80km"),
        ("10hrs-100km", "10hrs-100km"),
        ("10 hours 100km", "10hrs-100km"),
        ("full day", "8hrs-80km"),
    ],
)
def test_normalize_package_id(raw, expected):
    assert normalize_package_id(raw) == expected


# ---------------------------------------------------------------------------
# PricingTierCatalog
# ---------------------------------------------------------------------------


@pytest.fixture
def catalog() -> PricingTierCatalog:
    return PricingTierCatalog()


def test_tier_exact_match(catalog):
    tier = catalog.tier_for("innova_crysta")
    assert tier.display_name == "Innova Crysta"
    assert tier.category == "mpv"


def test_tier_substring_match(catalog):
    assert catalog.tier_for("tempo_traveller").category == "tempo"
    assert catalog.tier_for("dzire_cng").display_name == "Dzire"


def test_tier_defaults_to_sedan(catalog):
    tier = catalog.tier_for("force_one")
    assert tier.category == "sedan"
    assert tier.display_name == "Standard Vehicle"


@pytest.mark.parametrize(
    ("vehicle", "trip_type", "expected"),
    [
        ("sedan", TripType.LOCAL, (1000, 8000)),
        ("sedan", TripType.OUTSTATION, (2000, 8000)),
        ("ertiga", TripType.AIRPORT, (1000, 12000)),
        ("sedan", TripType.AIRPORT, (800, 8000)),
        ("innova_crysta", TripType.AIRPORT, (1200, 15000)),
        ("ertiga", TripType.OUTSTATION, (2500, 12000)),
        ("innova_crysta", TripType.LOCAL, (2000, 15000)),
        ("innova_hycross", TripType.TOUR, (3000, 15000)),
        ("luxury", TripType.OUTSTATION, (4000, 20000)),
        ("urbania", TripType.LOCAL, (4000, 25000)),
    ],
)
def test_valid_range(catalog, vehicle, trip_type, expected):
    assert catalog.valid_range(vehicle, trip_type) == expected


def test_local_minimum_below_other_trip_types(catalog):
    for vehicle in ("sedan", "ertiga", "innova_crysta", "luxury", "tempo_traveller"):
        local_min, _ = catalog.valid_range(vehicle, TripType.LOCAL)
        outstation_min, _ = catalog.valid_range(vehicle, TripType.OUTSTATION)
        assert local_min < outstation_min
