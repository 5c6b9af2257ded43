# roulette/main.py
# Command-line driver: resolves a location, builds the wheel, spins it,
# and manages persisted settings and history.

import argparse
import asyncio
import math
import sys
from typing import Any, Dict, Optional, Sequence

import structlog
from pydantic import ValidationError

from roulette.core.config import settings
from roulette.core.errors import LocationUnavailableError, RouletteError
from roulette.logging import configure_logging
from roulette.models.dto import Candidate, PriceRange, SearchSettings, WheelState
from roulette.services.geocoding import resolve_location
from roulette.services.session import Location, WheelSession
from roulette.services.storage import PreferencesRepository, create_store

logger = structlog.get_logger(__name__)


def _price_arg(value: str) -> Optional[PriceRange]:
    try:
        return PriceRange.parse(value)
    except (ValueError, ValidationError) as e:
        raise argparse.ArgumentTypeError(f"invalid price range {value!r}: expected 'min,max' with 1 <= min <= max <= 4") from e


def _radius_arg(value: str) -> float:
    try:
        radius = float(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid radius {value!r}") from e
    if not math.isfinite(radius) or radius <= 0:
        raise argparse.ArgumentTypeError("radius must be a finite number greater than 0")
    return radius


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="roulette", description=settings.BRIEF_DESCRIPTION)
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("spin", "fetch restaurants, build the wheel and spin it"),
                            ("wheel", "fetch restaurants and show the wheel without spinning")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--near", help="address, place name or 'lat,lon'")
        p.add_argument("--lat", type=float)
        p.add_argument("--lon", type=float)
        p.add_argument("--radius", type=_radius_arg, help="search radius in miles (this run only)")
        p.add_argument("--price", type=_price_arg, default=argparse.SUPPRESS,
                       help="price range 'min,max' (this run only, '' for any)")
        p.add_argument("--add-history", type=int, action="append", default=[], metavar="INDEX",
                       help="put history entry INDEX on the wheel (repeatable)")
        p.add_argument("--no-delay", action="store_true", help="skip the pause before the wheel is revealed")

    sub.add_parser("history", help="list past picks, newest first")

    p = sub.add_parser("settings", help="show or update saved settings")
    p.add_argument("--radius", type=_radius_arg, help="search radius in miles")
    p.add_argument("--price", type=_price_arg, default=argparse.SUPPRESS,
                   help="price range 'min,max', '' disables the filter")
    p.add_argument("--dietary", help="dietary preference (stored, not applied yet)")
    return parser


def _print_wheel(wheel: WheelState) -> None:
    print(f"Wheel ({len(wheel)} options):")
    for i, option in enumerate(wheel.options, start=1):
        print(f"  {i}. {option.name}")


def _print_winner(candidate: Candidate) -> None:
    print(f"\nThe wheel picked: {candidate.name} ({candidate.price_sign})")
    print(f"  Map: {candidate.map_view_url}")
    if candidate.external_record_url:
        print(f"  Details: {candidate.external_record_url}")


def _print_settings(search_settings: SearchSettings) -> None:
    price = search_settings.price_range
    print(f"searchRadiusMiles: {search_settings.search_radius_miles}")
    print(f"priceRange: {price if price is not None else '(any)'}")
    print(f"dietaryFilter: {search_settings.dietary_filter or '(none)'}")


async def _resolve(args: argparse.Namespace) -> Location:
    if args.lat is not None and args.lon is not None:
        if not (-90 <= args.lat <= 90 and -180 <= args.lon <= 180):
            raise LocationUnavailableError(f"Coordinates {args.lat},{args.lon} are not a valid location.")
        return args.lat, args.lon
    return await resolve_location(args.near)


def _settings_update(args: argparse.Namespace) -> Dict[str, Any]:
    update: Dict[str, Any] = {}
    if args.radius is not None:
        update["search_radius_miles"] = args.radius
    # --price '' parses to None, which still means "given": no filter
    if hasattr(args, "price"):
        update["price_range"] = args.price
    if getattr(args, "dietary", None) is not None:
        update["dietary_filter"] = args.dietary
    return update


async def run(args: argparse.Namespace, session: WheelSession) -> int:
    await session.load()

    if args.command == "history":
        if not len(session.history):
            print("No restaurant history yet")
        for i, entry in enumerate(session.history):
            print(f"{i:2d}. {entry.name}  {entry.timestamp}  {entry.map_view_url}")
        return 0

    update = _settings_update(args)
    search_settings = SearchSettings(**{**session.settings.model_dump(), **update})

    if args.command == "settings":
        if update:
            await session.save_settings(search_settings)
            print("Settings saved!")
        _print_settings(search_settings)
        return 0

    if args.no_delay:
        session.reveal_delay = 0
    location = await _resolve(args)
    await session.refresh(location, search_settings)
    for index in args.add_history:
        session.add_history_entry_to_wheel(index)

    _print_wheel(session.wheel)
    if args.command == "spin":
        _print_winner(await session.spin())
    return 0


async def _main(args: argparse.Namespace) -> int:
    store = create_store()
    session = WheelSession(repository=PreferencesRepository(store))
    try:
        return await run(args, session)
    except RouletteError as e:
        logger.warning("operation_failed", error=e.error, detail=e.detail)
        print(e.to_response().detail, file=sys.stderr)
        return 1
    finally:
        close = getattr(store, "close", None)
        if close is not None:
            await close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
