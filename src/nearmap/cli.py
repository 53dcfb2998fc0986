"""
NearMap CLI entrypoint.

This CLI is intended for quick local demos and debugging without a map client.
It delegates all logic to the resolver/acquisition/ranking packages.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

from nearmap.acquisition.acquirer import GeolocationAcquirer
from nearmap.acquisition.profiles import FAST, PRECISE, build_profiles
from nearmap.acquisition.sensors import StaticLocationSensor, build_sensor
from nearmap.catalog.loader import load_entities
from nearmap.config.settings import Settings, get_settings
from nearmap.core.errors import LocationError
from nearmap.core.geo import haversine_km
from nearmap.core.logging import configure_logging
from nearmap.domain.models import GeoPoint
from nearmap.ranking.proximity import filter_nearby, format_distance, rank_entities
from nearmap.resolver.location import get_default_resolver, summarize_precision
from nearmap.viewport.targeting import compute_viewport_target


def _consumer_from_args(args: argparse.Namespace, settings: Settings) -> GeoPoint | None:
    """Explicit --lat/--lng wins; --locate asks the configured sensor."""
    if args.lat is not None and args.lng is not None:
        sensor = StaticLocationSensor(GeoPoint(lat=float(args.lat), lng=float(args.lng)))
    elif args.locate:
        sensor = build_sensor(settings)
    else:
        return None

    acquirer = GeolocationAcquirer(sensor, build_profiles(settings))
    try:
        return asyncio.run(acquirer.acquire(args.profile))
    except LocationError as exc:
        print(f"Location unavailable ({exc.kind.value}); ranking without distances.")
        return None


def _cmd_rank(args: argparse.Namespace) -> int:
    """Handle the `rank` subcommand."""
    settings = get_settings()
    entities = load_entities(args.catalog or settings.catalog.path)
    resolved = get_default_resolver().resolve_all(entities)
    consumer = _consumer_from_args(args, settings)
    ranked = rank_entities(consumer, resolved)

    if args.nearby:
        cfg = settings.ranking.nearby
        ranked = filter_nearby(
            ranked,
            max_distance_km=float(args.max_distance_km or cfg.max_distance_km),
            online_only=not args.include_offline and cfg.online_only,
        )

    if args.max_results is not None:
        ranked = ranked[: int(args.max_results)]

    target = compute_viewport_target(consumer, ranked, settings.viewport)

    if args.json:
        payload = {
            "consumer": consumer.model_dump() if consumer else None,
            "results": [r.model_dump(mode="json") for r in ranked],
            "viewport": target.model_dump(mode="json"),
            "precision": summarize_precision(resolved),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    print(f"Entities: {len(resolved)}  precision: {summarize_precision(resolved)}")
    print(f"Viewport: center=({target.center.lat:.4f}, {target.center.lng:.4f}) zoom={target.zoom}")
    for i, r in enumerate(ranked, start=1):
        name = getattr(r, "name", None) or r.id
        status = "online" if r.is_online else "offline"
        distance = format_distance(r.distance_km) or "-"
        print(f"{i:>2}. {name}  {distance}  {status}  [{r.location_precision.value}]")
    return 0


def _cmd_regions(_: argparse.Namespace) -> int:
    for name in get_default_resolver().table.names():
        print(name)
    return 0


def _cmd_distance(args: argparse.Namespace) -> int:
    a = GeoPoint(lat=float(args.lat1), lng=float(args.lng1))
    b = GeoPoint(lat=float(args.lat2), lng=float(args.lng2))
    print(f"{haversine_km(a, b):.3f} km")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the NearMap CLI."""
    parser = argparse.ArgumentParser(prog="nearmap")
    parser.add_argument("--log-level", type=str, default=None, help="Override app.log_level (e.g. DEBUG)")
    sub = parser.add_subparsers(dest="command", required=True)

    rank = sub.add_parser("rank", help="Rank catalog entities by distance to a consumer location.")
    rank.add_argument("--catalog", type=str, default=None, help="Catalog JSON (default from config)")
    rank.add_argument("--lat", type=float, default=None)
    rank.add_argument("--lng", type=float, default=None)
    rank.add_argument("--locate", action="store_true", help="Use the configured location sensor")
    rank.add_argument("--profile", choices=[FAST, PRECISE], default=PRECISE)
    rank.add_argument("--nearby", action="store_true", help="Only entities within the nearby radius")
    rank.add_argument("--max-distance-km", type=float, default=None)
    rank.add_argument("--include-offline", action="store_true", help="Nearby search includes offline entities")
    rank.add_argument("--max-results", type=int, default=None)
    rank.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    rank.set_defaults(func=_cmd_rank)

    reg = sub.add_parser("regions", help="List region names with a fallback centroid.")
    reg.set_defaults(func=_cmd_regions)

    dist = sub.add_parser("distance", help="Great-circle distance between two points (km).")
    dist.add_argument("lat1", type=float)
    dist.add_argument("lng1", type=float)
    dist.add_argument("lat2", type=float)
    dist.add_argument("lng2", type=float)
    dist.set_defaults(func=_cmd_distance)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m nearmap.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
