"""Request coordination: throttling, deduplication and stale-response guards."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cab_fare_core.schemas import FareDetails, FareEvent, FareEventName, FareSource

from cab_fare_engine.cancellation import CancellationToken
from cab_fare_engine.config import settings
from cab_fare_engine.errors import (
    Cancelled,
    MalformedResponse,
    PricingServiceError,
    StaleGenerationDiscarded,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from cab_fare_core.schemas import FareParams

    from cab_fare_engine.cache.fare_cache import FareCache
    from cab_fare_engine.events import FareEventBus
    from cab_fare_engine.pricing import FareCalculator
    from cab_fare_engine.providers import PricingProvider
    from cab_fare_engine.reconciliation import ReconciliationValidator
    from cab_fare_engine.vehicles import VehicleIdentityResolver

logger = logging.getLogger(__name__)


@dataclass
class _Request:
    """One issued network request for a request key."""

    key: str
    generation: int
    started_at: float
    token: CancellationToken = field(default_factory=CancellationToken)
    task: asyncio.Task[FareDetails] | None = None

    def cancel(self, reason: str) -> None:
        self.token.cancel(reason)
        if self.task is not None and not self.task.done():
            self.task.cancel()


class RequestCoordinator:
    """Decides, per request key, whether a fetch hits the network.

    A key is ``FareParams.request_key`` of the normalised params. For each
    key the coordinator keeps the last known fare, the time of the last
    successful network fetch, a generation counter and at most one live
    request.
    """

    def __init__(
        self,
        provider: PricingProvider,
        calculator: FareCalculator,
        cache: FareCache,
        validator: ReconciliationValidator,
        events: FareEventBus,
        resolver: VehicleIdentityResolver,
        *,
        throttle: float | None = None,
        event_throttle: float | None = None,
        bulk_delay: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._calculator = calculator
        self._cache = cache
        self._validator = validator
        self._events = events
        self._resolver = resolver
        self._throttle = settings.request_throttle if throttle is None else throttle
        self._event_throttle = (
            settings.event_throttle if event_throttle is None else event_throttle
        )
        self._bulk_delay = settings.bulk_fetch_delay if bulk_delay is None else bulk_delay
        self._clock = clock
        self._wall_clock = wall_clock

        self._generations: dict[str, int] = {}
        self._requests: dict[str, _Request] = {}
        self._last_success: dict[str, float] = {}
        self._last_known: dict[str, FareDetails] = {}
        self._last_broadcast: dict[str, float] = {}
        self.network_calls = 0

    @property
    def in_flight(self) -> int:
        return sum(
            1 for r in self._requests.values() if r.task is not None and not r.task.done()
        )

    def last_known(self, params: FareParams) -> FareDetails | None:
        return self._last_known.get(self._resolver.normalize_params(params).request_key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch(self, params: FareParams, force_refresh: bool = False) -> FareDetails:
        """Return the fare for *params*.

        Raises :class:`InvalidVehicleId` for unusable vehicle ids and
        :class:`MalformedResponse` when every provider answered with a
        non-JSON body; every other failure yields a best-effort fare.
        """
        return await self._fetch(self._resolver.normalize_params(params), force_refresh)

    async def fetch_many(
        self, params_list: Iterable[FareParams], force_refresh: bool = False
    ) -> dict[str, FareDetails]:
        """Fetch several fares one after another, keyed by canonical vehicle id.

        Every vehicle id is resolved before the first fetch, so an invalid
        id fails the whole batch without touching the network.
        """
        batch = [self._resolver.normalize_params(p) for p in params_list]
        fares: dict[str, FareDetails] = {}
        for index, params in enumerate(batch):
            calls_before = self.network_calls
            fares[params.vehicle_id] = await self._fetch(params, force_refresh)
            if self.network_calls > calls_before and index < len(batch) - 1:
                await asyncio.sleep(self._bulk_delay)
        return fares

    def cancel_all(self) -> int:
        """Cancel every live request; returns how many were cancelled."""
        live = [r for r in self._requests.values() if r.task is not None and not r.task.done()]
        for request in live:
            request.cancel("cancelled")
        if live:
            logger.info("Cancelled %d in-flight fare requests", len(live))
        return len(live)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _fetch(self, params: FareParams, force_refresh: bool) -> FareDetails:
        key = params.request_key
        now = self._clock()

        if not force_refresh:
            last_success = self._last_success.get(key)
            if (
                last_success is not None
                and now - last_success < self._throttle
                and key in self._last_known
            ):
                logger.debug("Throttled %s, serving last known fare", key)
                return self._last_known[key]

            # Right after a cache clear the cache is untrusted, but the
            # throttle and in-flight joining still apply.
            if await self._cache.force_refresh_active():
                logger.debug("Force-refresh window open, skipping cache for %s", key)
            else:
                cached = await self._cache.get(params)
                if cached is not None:
                    logger.debug("Cache hit for %s", key)
                    self._last_known[key] = cached
                    return cached

            # Checked after the cache lookup, which may have yielded to a
            # concurrent caller that issued the same request meanwhile.
            pending = self._requests.get(key)
            if (
                pending is not None
                and pending.task is not None
                and not pending.task.done()
                and self._clock() - pending.started_at < self._throttle
            ):
                logger.debug("Joining in-flight request for %s", key)
                return await self._wait(pending)

        return await self._wait(self._issue(params))

    def _issue(self, params: FareParams) -> _Request:
        key = params.request_key
        previous = self._requests.pop(key, None)
        if previous is not None:
            logger.debug("Superseding generation %d for %s", previous.generation, key)
            previous.cancel("superseded")

        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        request = _Request(key=key, generation=generation, started_at=self._clock())
        request.task = asyncio.create_task(
            self._run(params, request), name=f"fare:{key}#{generation}"
        )
        request.task.add_done_callback(lambda _task: self._release(request))
        self._requests[key] = request
        return request

    def _release(self, request: _Request) -> None:
        if self._requests.get(request.key) is request:
            del self._requests[request.key]

    async def _wait(self, request: _Request) -> FareDetails:
        task = request.task
        if task is None:
            msg = f"Request {request.key}#{request.generation} was never started"
            raise RuntimeError(msg)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # Only swallow the request's own cancellation, never the caller's.
            if not task.cancelled():
                raise
            logger.debug("Request %s#%d was cancelled", request.key, request.generation)
            return self._last_known.get(request.key) or FareDetails.zero()

    def _ensure_current(self, request: _Request) -> None:
        request.token.raise_if_cancelled()
        latest = self._generations.get(request.key, 0)
        if request.generation != latest:
            raise StaleGenerationDiscarded(request.key, request.generation, latest)

    def _is_current(self, request: _Request) -> bool:
        return (
            not request.token.cancelled
            and self._generations.get(request.key) == request.generation
        )

    async def _run(self, params: FareParams, request: _Request) -> FareDetails:
        key = request.key
        try:
            self.network_calls += 1
            raw = await self._provider.fetch_raw(params, request.token)
            self._ensure_current(request)
        except (Cancelled, StaleGenerationDiscarded) as exc:
            logger.debug("Discarding stale response for %s: %s", key, exc)
            return self._last_known.get(key) or FareDetails.zero()
        except MalformedResponse as exc:
            if not self._is_current(request):
                logger.debug("Ignoring malformed response of stale request %s", key)
                return self._last_known.get(key) or FareDetails.zero()
            exc.fallback = await self._best_effort(params)
            logger.error("Malformed Pricing Service response for %s: %s", key, exc)
            raise
        except PricingServiceError as exc:
            logger.warning("Pricing Service failed for %s: %s", key, exc)
            return await self._best_effort(params)

        fare = self._calculator.compute(params, raw)
        return await self._apply(params, fare)

    async def _apply(self, params: FareParams, fare: FareDetails) -> FareDetails:
        key = params.request_key
        if not fare.is_priced:
            return await self._best_effort(params)

        self._last_known[key] = fare
        self._last_success[key] = self._clock()
        if self._validator.within_bounds(fare, params.vehicle_id, params.trip_type):
            await self._cache.put(params, fare)
        else:
            logger.info("Not caching out-of-range fare for %s", key)

        self._emit(FareEventName.FARE_CALCULATED, params, fare)
        last = self._last_broadcast.get(key)
        now = self._clock()
        if last is None or now - last >= self._event_throttle:
            self._last_broadcast[key] = now
            self._emit(FareEventName.FARE_UPDATE, params, fare)
        else:
            logger.debug("Suppressed fare-update broadcast for %s", key)
        return fare

    async def _best_effort(self, params: FareParams) -> FareDetails:
        """Expired-but-intact cache entry, else last known fare, else a zero fare."""
        cached = await self._cache.get(params, allow_expired=True)
        if cached is not None:
            return cached
        last = self._last_known.get(params.request_key)
        if last is not None:
            return last
        logger.warning("No fallback fare for %s", params.request_key)
        return FareDetails.zero()

    def _emit(self, name: FareEventName, params: FareParams, fare: FareDetails) -> None:
        self._events.emit(
            FareEvent(
                name=name,
                canonical_id=params.vehicle_id,
                trip_type=params.trip_type,
                trip_mode=params.trip_mode,
                fare=fare,
                timestamp=self._wall_clock(),
                source=FareSource.PRICING_SERVICE,
            )
        )
