"""
Location resolution.

Every catalog entity gets a best-known coordinate plus a precision tag:
1. exact coordinates (after a defensive numeric parse) -> EXACT
2. region name found in the centroid table               -> REGION
3. otherwise                                             -> UNKNOWN (no coordinate)

Resolution is pure: same entity + same table, same answer.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Iterable

from nearmap.config.settings import get_settings
from nearmap.core.geo import coerce_float, is_valid_coordinate
from nearmap.domain.models import GeoPoint, LocatableEntity, LocationPrecision, RawCoordinate, ResolvedEntity
from nearmap.resolver.regions import RegionCentroidTable, load_region_table

logger = logging.getLogger(__name__)


def parse_exact_location(raw: RawCoordinate | None) -> GeoPoint | None:
    """Coerce raw catalog values into a valid point, or None."""
    if raw is None:
        return None
    lat = coerce_float(raw.lat)
    lng = coerce_float(raw.lng)
    if lat is None or lng is None:
        return None
    if not is_valid_coordinate({"lat": lat, "lng": lng}):
        return None
    return GeoPoint(lat=lat, lng=lng)


class LocationResolver:
    def __init__(self, table: RegionCentroidTable):
        self._table = table

    @property
    def table(self) -> RegionCentroidTable:
        return self._table

    def resolve(self, entity: LocatableEntity) -> ResolvedEntity:
        exact = parse_exact_location(entity.exact_location)
        if exact is not None:
            location, precision = exact, LocationPrecision.EXACT
        else:
            location = self._table.lookup(entity.region_name)
            precision = LocationPrecision.REGION if location is not None else LocationPrecision.UNKNOWN

        if precision is LocationPrecision.UNKNOWN:
            logger.debug("No usable coordinate for entity %s (region=%r)", entity.id, entity.region_name)

        payload = entity.model_dump()
        payload["resolved_location"] = location
        payload["location_precision"] = precision
        return ResolvedEntity.model_validate(payload)

    def resolve_all(self, entities: Iterable[LocatableEntity]) -> list[ResolvedEntity]:
        """Resolve a catalog, keeping catalog order."""
        return [self.resolve(e) for e in entities]


def summarize_precision(resolved: Iterable[ResolvedEntity]) -> dict[str, int]:
    """Count entities per precision (all keys present, zero-filled)."""
    counts = {p.value: 0 for p in LocationPrecision}
    for r in resolved:
        counts[r.location_precision.value] += 1
    return counts


@lru_cache
def get_default_resolver() -> LocationResolver:
    """Resolver backed by the configured region table (cached)."""
    settings = get_settings()
    table = load_region_table(settings.regions.source, timeout_seconds=settings.app.http_timeout_seconds)
    logger.info("Loaded %s region centroids", len(table))
    return LocationResolver(table)
