"""Exception taxonomy for fare resolution.

Only :class:`InvalidVehicleId` and :class:`MalformedResponse` ever reach
callers of :class:`~cab_fare_engine.engine.FareEngine`; everything else is
recovered inside the engine and logged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cab_fare_core.schemas import FareDetails


class FareEngineError(Exception):
    """Base class for every fare engine error."""


class InvalidVehicleId(FareEngineError, ValueError):
    """Empty identifier, or a numeric one with no known alias."""

    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"Invalid vehicle id {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


class PricingServiceError(FareEngineError):
    """Transport or HTTP-level failure talking to the Pricing Service."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.fallback: FareDetails | None = None

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class MalformedResponse(PricingServiceError):
    """Transport succeeded but the body is not JSON (often an HTML error page)."""

    def __init__(self, message: str, *, body_preview: str = "") -> None:
        super().__init__(message)
        self.body_preview = body_preview

    @property
    def retryable(self) -> bool:
        return False


class Cancelled(FareEngineError):
    """Request superseded or aborted before its result could be applied."""


class StaleGenerationDiscarded(FareEngineError):
    """A newer request for the same key was issued after this one."""

    def __init__(self, key: str, generation: int, latest: int) -> None:
        super().__init__(
            f"Discarding generation {generation} for {key} (latest {latest})"
        )
        self.key = key
        self.generation = generation
        self.latest = latest


class ChecksumMismatch(FareEngineError):
    """A stored entry failed integrity verification."""

    def __init__(self, key: str, expected: str, actual: str) -> None:
        super().__init__(f"Checksum mismatch for {key}")
        self.key = key
        self.expected = expected
        self.actual = actual


class OutOfBounds(FareEngineError):
    """Fare outside the category / trip-type sanity range."""

    def __init__(
        self, total: float, canonical_id: str, minimum: float, maximum: float
    ) -> None:
        super().__init__(
            f"Fare {total} for {canonical_id} outside [{minimum}, {maximum}]"
        )
        self.total = total
        self.canonical_id = canonical_id
        self.minimum = minimum
        self.maximum = maximum
