"""Resolve raw vehicle identifiers and package ids to canonical form."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from cab_fare_core.schemas import TripMode, TripType

from cab_fare_engine.config import settings
from cab_fare_engine.errors import InvalidVehicleId

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from cab_fare_core.schemas import FareParams

logger = logging.getLogger(__name__)

_NUMERIC_RE = re.compile(r"^\d+$")
_WHITESPACE_RE = re.compile(r"\s+")
_PREFIX = "item-"

DEFAULT_PACKAGE_ID = "8hrs-80km"

_STANDARD_PACKAGE_IDS: dict[str, str] = {
    "4hr_40km": "4hrs-40km",
    "04hr_40km": "4hrs-40km",
    "04hrs_40km": "4hrs-40km",
    "4hrs_40km": "4hrs-40km",
    "4hours_40km": "4hrs-40km",
    "8hr_80km": "8hrs-80km",
    "8hrs_80km": "8hrs-80km",
    "8hours_80km": "8hrs-80km",
    "10hr_100km": "10hrs-100km",
    "10hrs_100km": "10hrs-100km",
    "10hours_100km": "10hrs-100km",
}


def is_numeric_id(value: str) -> bool:
    return bool(_NUMERIC_RE.match(value))


class VehicleIdentityResolver:
    """Maps raw ids (``"item-1"``, ``" Innova Crysta "``, ``"1266"``) to canonical ids.

    Numeric ids are only accepted through the alias table; anything else
    purely numeric is rejected so that no price record is ever keyed by a
    database row number.
    """

    def __init__(
        self,
        *,
        known_ids: Iterable[str] | None = None,
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        known = settings.known_vehicle_ids if known_ids is None else known_ids
        alias_table = settings.vehicle_aliases if aliases is None else aliases

        self._known: frozenset[str] = frozenset(self._clean(k) for k in known)
        self._aliases: dict[str, str] = {}
        for alias, target in alias_table.items():
            canonical = self._clean(target)
            if not canonical or is_numeric_id(canonical):
                msg = f"Alias {alias!r} must map to a non-numeric id, got {target!r}"
                raise ValueError(msg)
            self._aliases[self._clean(alias)] = canonical

        chained = set(self._aliases) & set(self._aliases.values())
        if chained:
            msg = f"Alias targets must not be aliases themselves: {sorted(chained)}"
            raise ValueError(msg)

    @staticmethod
    def _clean(raw: str) -> str:
        value = raw.strip()
        while value.lower().startswith(_PREFIX):
            value = value[len(_PREFIX) :].strip()
        return _WHITESPACE_RE.sub("_", value.lower())

    @property
    def known_ids(self) -> frozenset[str]:
        return self._known

    @property
    def aliases(self) -> dict[str, str]:
        return dict(self._aliases)

    def resolve(self, raw: str | None) -> str:
        """Return the canonical id for *raw* or raise :class:`InvalidVehicleId`."""
        if raw is None:
            raise InvalidVehicleId("", "vehicle id is required")

        value = self._clean(str(raw))
        if not value:
            raise InvalidVehicleId(str(raw), "vehicle id is required")

        if value in self._known:
            return value

        alias = self._aliases.get(value)
        if alias is not None:
            logger.debug("Mapped legacy vehicle id %s to %s", raw, alias)
            return alias

        if is_numeric_id(value):
            logger.warning("Rejected unmapped numeric vehicle id %s", raw)
            raise InvalidVehicleId(
                str(raw), "numeric ids must be registered in the alias table"
            )

        return value

    def normalize_params(self, params: FareParams) -> FareParams:
        """Return *params* with a canonical vehicle id and only the fields its trip type uses.

        Local and tour fares ignore distance and trip mode; only local fares
        carry a package id.
        """
        update: dict[str, object] = {"vehicle_id": self.resolve(params.vehicle_id)}
        if params.trip_type == TripType.LOCAL:
            update["package_id"] = normalize_package_id(params.package_id)
        else:
            update["package_id"] = None
        if params.trip_type in (TripType.LOCAL, TripType.TOUR):
            update["distance_km"] = 0.0
            update["trip_mode"] = TripMode.ONE_WAY
        return params.model_copy(update=update)


def normalize_package_id(package_id: str | None) -> str:
    """Map any spelling of a local package to ``4hrs-40km`` / ``8hrs-80km`` / ``10hrs-100km``."""
    if not package_id:
        return DEFAULT_PACKAGE_ID

    lowered = package_id.strip().lower()
    if lowered in _STANDARD_PACKAGE_IDS.values():
        return lowered

    candidate = lowered.replace("hrs-", "hr_").replace("hr-", "hr_")
    if candidate in _STANDARD_PACKAGE_IDS:
        return _STANDARD_PACKAGE_IDS[candidate]

    has_hours = "hr" in lowered or "hour" in lowered
    if "10" in lowered and (has_hours or "100" in lowered):
        return "10hrs-100km"
    if "8" in lowered and (has_hours or "80" in lowered):
        return "8hrs-80km"
    if "4" in lowered and (has_hours or "40" in lowered):
        return "4hrs-40km"

    logger.warning(
        "Could not normalise package id %s, using %s", package_id, DEFAULT_PACKAGE_ID
    )
    return DEFAULT_PACKAGE_ID
