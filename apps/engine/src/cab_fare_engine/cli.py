"""CLI for quoting fares and inspecting vehicle lookups."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from cab_fare_core.schemas import FareDetails, FareParams, TripMode, TripType

from .errors import InvalidVehicleId, MalformedResponse
from .vehicles import PricingTierCatalog, VehicleIdentityResolver

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def _print_fare(params: FareParams, fare: FareDetails) -> None:
    if not fare.is_priced:
        click.echo(f"No fare available for {params.vehicle_id} ({params.trip_type}).")
        return
    click.echo(
        f"{params.vehicle_id} | {params.trip_type} | {params.trip_mode} | "
        f"total {fare.total_price:.2f} (base {fare.base_price:.2f})"
    )
    for label, value in fare.breakdown.items():
        click.echo(f"  {label}: {value}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Cab fare engine CLI."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.argument("vehicle_id")
@click.argument(
    "trip_type", type=click.Choice([t.value for t in TripType], case_sensitive=False)
)
@click.option("--distance", type=float, default=0.0, help="Trip distance in km")
@click.option(
    "--trip-mode",
    type=click.Choice([m.value for m in TripMode]),
    default=TripMode.ONE_WAY.value,
    help="One-way or round trip (outstation only)",
)
@click.option("--package", "package_id", default=None, help="Local package id")
@click.option("--force-refresh", is_flag=True, help="Bypass throttle and cache")
@click.option("--no-redis", is_flag=True, help="Keep the durable tier in memory")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def quote(
    vehicle_id: str,
    trip_type: str,
    distance: float,
    trip_mode: str,
    package_id: str | None,
    force_refresh: bool,
    no_redis: bool,
    json_output: bool,
) -> None:
    """Fetch the fare for one vehicle and trip."""
    from .engine import build_engine

    params = FareParams(
        vehicle_id=vehicle_id,
        trip_type=TripType(trip_type.lower()),
        distance_km=distance,
        trip_mode=TripMode(trip_mode),
        package_id=package_id,
    )

    async def _run() -> tuple[FareParams, FareDetails]:
        async with build_engine(use_redis=not no_redis) as engine:
            normalized = engine.resolver.normalize_params(params)
            return normalized, await engine.fetch(params, force_refresh=force_refresh)

    try:
        normalized, fare = asyncio.run(_run())
    except InvalidVehicleId as exc:
        raise click.BadParameter(str(exc), param_hint="VEHICLE_ID") from exc
    except MalformedResponse as exc:
        click.echo(f"Error: {exc}", err=True)
        if exc.body_preview:
            click.echo(exc.body_preview, err=True)
        sys.exit(1)

    if json_output:
        payload = {
            "params": normalized.model_dump(mode="json"),
            "fare": fare.model_dump(mode="json"),
        }
        click.echo(json.dumps(payload, indent=2))
    else:
        _print_fare(normalized, fare)


@cli.command()
@click.argument("vehicle_id")
def resolve(vehicle_id: str) -> None:
    """Print the canonical id for VEHICLE_ID."""
    try:
        click.echo(VehicleIdentityResolver().resolve(vehicle_id))
    except InvalidVehicleId as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("vehicle_id")
@click.option(
    "--trip-type",
    type=click.Choice([t.value for t in TripType]),
    default=TripType.OUTSTATION.value,
    help="Trip type for the valid fare range",
)
def tier(vehicle_id: str, trip_type: str) -> None:
    """Print the pricing tier and valid fare range for VEHICLE_ID."""
    try:
        canonical = VehicleIdentityResolver().resolve(vehicle_id)
    except InvalidVehicleId as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    catalog = PricingTierCatalog()
    info = catalog.tier_for(canonical)
    minimum, maximum = catalog.valid_range(canonical, TripType(trip_type))
    click.echo(f"{canonical}: {info.display_name} ({info.category})")
    click.echo(
        f"  base {info.base_price:.0f} | per km {info.price_per_km:.0f} | "
        f"driver allowance {info.driver_allowance:.0f}"
    )
    click.echo(f"  valid {trip_type} range: {minimum:.0f} - {maximum:.0f}")


if __name__ == "__main__":
    cli()
