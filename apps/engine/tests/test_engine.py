"""FareEngine facade operations, the event bus and the CLI."""

from __future__ import annotations

import json

import respx
from click.testing import CliRunner
from httpx import Response

from cab_fare_core.schemas import FareDetails, FareEvent, FareEventName, FareSource, TripType

from cab_fare_engine.cli import cli
from cab_fare_engine.config import settings
from cab_fare_engine.events import FareEventBus

from .conftest import OUTSTATION_RESPONSE, local_params, outstation_params

ERTIGA_FARE = FareDetails(base_price=5400, total_price=11050)

# ---------------------------------------------------------------------------
# FareEngine
# ---------------------------------------------------------------------------


async def test_select_fare_and_reconcile(engine):
    params = outstation_params("item-2", distance_km=100)
    entry = await engine.select_fare(params, ERTIGA_FARE)
    assert entry.canonical_id == "ertiga"
    assert entry.source == FareSource.VALIDATED

    drifted = FareDetails(base_price=5400, total_price=11200)
    close = FareDetails(base_price=5400, total_price=11090)
    assert await engine.reconcile(params, drifted) == ERTIGA_FARE
    assert await engine.reconcile(params, close) == close


async def test_clear_cache_for_trip_type(engine, provider, clock):
    local = local_params()
    tour = local_params().model_copy(update={"trip_type": TripType.TOUR})
    await engine.fetch(local)
    await engine.fetch(tour)

    assert await engine.clear_cache_for(TripType.TOUR) == 1
    clock.advance(60)
    await engine.fetch(local)
    await engine.fetch(tour)
    assert [p.trip_type for p in provider.calls] == [
        TripType.LOCAL,
        TripType.TOUR,
        TripType.TOUR,
    ]


async def test_clear_cache_is_throttled(engine, clock):
    assert await engine.clear_cache() is True
    clock.advance(10)
    assert await engine.clear_cache() is False


async def test_sync_storage(engine, short_store, durable_store):
    await engine.fetch(local_params())
    await engine.select_fare(outstation_params("ertiga", distance_km=100), ERTIGA_FARE)
    for key in await short_store.keys():
        await short_store.delete(key)

    assert await engine.sync_storage() == 2
    assert sorted(await short_store.keys()) == sorted(await durable_store.keys())


async def test_close_releases_provider(make_engine, provider):
    async with make_engine(provider) as engine:
        await engine.fetch(local_params())
    assert provider.closed
    await engine.close()


# ---------------------------------------------------------------------------
# FareEventBus
# ---------------------------------------------------------------------------


def _event(name: FareEventName) -> FareEvent:
    return FareEvent(
        name=name,
        canonical_id="sedan",
        trip_type=TripType.LOCAL,
        fare=FareDetails(base_price=2500, total_price=2500),
        timestamp=0,
    )


def test_event_bus_routes_by_name():
    bus = FareEventBus()
    updated, calculated = [], []
    bus.on_fare_updated(updated.append)
    bus.on(FareEventName.FARE_CALCULATED, calculated.append)

    assert bus.emit(_event(FareEventName.FARE_UPDATE)) == 1
    assert len(updated) == 1
    assert calculated == []


def test_event_bus_isolates_failures():
    bus = FareEventBus()
    seen = []

    def broken(event):
        raise KeyError("boom")

    bus.on_fare_calculated(broken)
    bus.on_fare_calculated(seen.append)
    assert bus.emit(_event(FareEventName.FARE_CALCULATED)) == 1
    assert len(seen) == 1


def test_event_bus_unsubscribe():
    bus = FareEventBus()
    unsubscribe = bus.on_fare_calculated(print)
    assert bus.handler_count(FareEventName.FARE_CALCULATED) == 1
    unsubscribe()
    assert bus.handler_count(FareEventName.FARE_CALCULATED) == 0


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def test_cli_resolve():
    result = CliRunner().invoke(cli, ["resolve", "item-1266"])
    assert result.exit_code == 0
    assert result.output.strip() == "innova_crysta"


def test_cli_resolve_rejects_unknown_numeric():
    result = CliRunner().invoke(cli, ["resolve", "999"])
    assert result.exit_code == 1
    assert "999" in result.output


def test_cli_tier():
    result = CliRunner().invoke(cli, ["tier", "1", "--trip-type", "local"])
    assert result.exit_code == 0
    assert "sedan: Sedan (sedan)" in result.output
    assert "valid local range: 1000 - 8000" in result.output


@respx.mock
def test_cli_quote_json():
    route = respx.get(f"{settings.pricing_base_url}{settings.outstation_endpoint}").mock(
        return_value=Response(200, json=OUTSTATION_RESPONSE)
    )
    result = CliRunner().invoke(
        cli,
        ["quote", "Sedan", "outstation", "--distance", "120", "--no-redis", "--json-output"],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["params"]["vehicle_id"] == "sedan"
    assert payload["fare"]["total_price"] == 8050
    assert route.called


def test_cli_quote_invalid_vehicle():
    result = CliRunner().invoke(cli, ["quote", "999", "local", "--no-redis"])
    assert result.exit_code == 2
    assert "Invalid vehicle id" in result.output
