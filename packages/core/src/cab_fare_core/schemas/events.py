"""Event payloads broadcast to fare observers."""

from __future__ import annotations

from pydantic import BaseModel

from .enums import FareEventName, FareSource, TripMode, TripType
from .fare import FareDetails


class FareEvent(BaseModel):
    """Emitted whenever a fare is calculated or pushed to observers."""

    name: FareEventName
    canonical_id: str
    trip_type: TripType
    trip_mode: TripMode | None = None
    fare: FareDetails
    timestamp: float
    source: FareSource | None = None
