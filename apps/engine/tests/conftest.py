"""Shared fixtures and fakes for fare engine tests."""

from __future__ import annotations

import asyncio
import fnmatch
from typing import TYPE_CHECKING, Any

import pytest

from cab_fare_core.schemas import FareParams, TripMode, TripType

from cab_fare_engine.cache.fare_cache import FareCache
from cab_fare_engine.cache.stores import MemoryStore
from cab_fare_engine.cache.tiers import TieredStore
from cab_fare_engine.config import EngineSettings
from cab_fare_engine.engine import FareEngine
from cab_fare_engine.providers import PricingProvider
from cab_fare_engine.reconciliation import ReconciliationValidator
from cab_fare_engine.vehicles import PricingTierCatalog

if TYPE_CHECKING:
    from cab_fare_engine.cancellation import CancellationToken

# 2026-03-14 12:00:00 UTC
WALL_START = 1_773_489_600.0

LOCAL_RESPONSE: dict[str, Any] = {
    "status": "success",
    "fares": [
        {
            "vehicleId": "sedan",
            "price4hrs40km": 1400,
            "price8hrs80km": "2500",
            "price10hrs100km": 3000,
            "priceExtraKm": 14,
            "priceExtraHour": 150,
        },
        {
            "vehicleId": "item-ertiga",
            "price_4hrs_40km": 1800,
            "price_8hrs_80km": 3200,
            "price_10hrs_100km": 3800,
            "extraKmCharge": "18",
        },
    ],
}

OUTSTATION_RESPONSE: dict[str, Any] = {
    "status": "success",
    "fare": {
        "basePrice": 3900,
        "pricePerKm": 13,
        "driverAllowance": 250,
        "nightHaltCharge": 700,
    },
}

AIRPORT_RESPONSE: dict[str, Any] = {
    "status": "success",
    "fare": {
        "tier1Price": 800,
        "tier2Price": 1200,
        "tier3Price": 1500,
        "tier4Price": 900,
        "extraKmCharge": 15,
        "airportFee": 100,
    },
}

TOUR_RESPONSE: dict[str, Any] = {
    "status": "success",
    "tourFare": {"price": "6500"},
}

DEFAULT_RESPONSES: dict[TripType, dict[str, Any]] = {
    TripType.LOCAL: LOCAL_RESPONSE,
    TripType.OUTSTATION: OUTSTATION_RESPONSE,
    TripType.AIRPORT: AIRPORT_RESPONSE,
    TripType.TOUR: TOUR_RESPONSE,
}


class FakeClock:
    """Manually advanced clock usable as both monotonic and wall clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(PricingProvider):
    """Serves canned payloads; can hold requests open until released."""

    name = "fake"

    def __init__(
        self,
        responses: dict[TripType, Any] | None = None,
        *,
        gated: bool = False,
        ignore_cancellation: bool = False,
    ) -> None:
        self.responses = dict(DEFAULT_RESPONSES if responses is None else responses)
        self.calls: list[FareParams] = []
        self.tokens: list[CancellationToken] = []
        self.gated = gated
        self.ignore_cancellation = ignore_cancellation
        self.gates: list[asyncio.Event] = []
        self.closed = False

    async def fetch_raw(self, params: FareParams, token: CancellationToken) -> dict:
        index = len(self.calls)
        self.calls.append(params)
        self.tokens.append(token)
        if self.gated:
            gate = asyncio.Event()
            self.gates.append(gate)
            await self._wait(gate)

        result = self.responses[params.trip_type]
        if isinstance(result, list):
            result = result[min(index, len(result) - 1)]
        if isinstance(result, Exception):
            raise result
        if not self.ignore_cancellation:
            token.raise_if_cancelled()
        return result

    async def _wait(self, gate: asyncio.Event) -> None:
        while True:
            try:
                await gate.wait()
            except asyncio.CancelledError:
                if not self.ignore_cancellation:
                    raise
                continue
            return

    def release(self, index: int = -1) -> None:
        self.gates[index].set()

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


class FakeRedis:
    """The subset of ``redis.asyncio.Redis`` used by RedisStore."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.expiries: dict[str, int | None] = {}
        self.closed = False

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.data[key] = value
        self.expiries[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match: str = "*"):
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def config() -> EngineSettings:
    return EngineSettings(_env_file=None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1000.0)


@pytest.fixture
def wall_clock() -> FakeClock:
    return FakeClock(WALL_START)


@pytest.fixture
def short_store(wall_clock: FakeClock) -> MemoryStore:
    return MemoryStore(ttl=1800, name="session", clock=wall_clock)


@pytest.fixture
def durable_store(wall_clock: FakeClock) -> MemoryStore:
    return MemoryStore(ttl=86400, name="durable", clock=wall_clock)


@pytest.fixture
def tiered(short_store: MemoryStore, durable_store: MemoryStore) -> TieredStore:
    return TieredStore(short_store, durable_store)


@pytest.fixture
def fare_cache(tiered: TieredStore, clock: FakeClock, wall_clock: FakeClock) -> FareCache:
    return FareCache(
        tiered,
        ttl=900,
        clear_cooldown=30,
        force_refresh_window=5,
        clock=clock,
        wall_clock=wall_clock,
    )


@pytest.fixture
def validator(tiered: TieredStore, wall_clock: FakeClock) -> ReconciliationValidator:
    return ReconciliationValidator(
        tiered, PricingTierCatalog(), tolerance=50, sync_tolerance=10, wall_clock=wall_clock
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def make_engine(
    config: EngineSettings,
    clock: FakeClock,
    wall_clock: FakeClock,
    short_store: MemoryStore,
    durable_store: MemoryStore,
):
    """Factory fixture building a FareEngine over in-memory tiers and fake clocks."""

    def _make(provider: PricingProvider) -> FareEngine:
        return FareEngine(
            provider,
            short_store=short_store,
            durable_store=durable_store,
            config=config,
            clock=clock,
            wall_clock=wall_clock,
        )

    return _make


@pytest.fixture
def engine(make_engine, provider: FakeProvider) -> FareEngine:
    return make_engine(provider)


def local_params(vehicle_id: str = "sedan", package_id: str | None = None) -> FareParams:
    return FareParams(vehicle_id=vehicle_id, trip_type=TripType.LOCAL, package_id=package_id)


def outstation_params(
    vehicle_id: str = "sedan",
    distance_km: float = 120,
    trip_mode: TripMode = TripMode.ONE_WAY,
) -> FareParams:
    return FareParams(
        vehicle_id=vehicle_id,
        trip_type=TripType.OUTSTATION,
        distance_km=distance_km,
        trip_mode=trip_mode,
    )
