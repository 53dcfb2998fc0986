from __future__ import annotations

# Proximity ranking.
#
# Order rules:
# - primary: distance to the consumer, ascending; no distance sorts last (+inf)
# - secondary: online entities before offline ones
# - tertiary: catalog order (Python's sort is stable)
#
# Without a consumer coordinate the distance step is skipped entirely, so the
# list degrades to online-first, then catalog order.

import math
from typing import Iterable

from nearmap.core.geo import haversine_km, is_valid_coordinate
from nearmap.domain.models import GeoPoint, MapMarker, RankedEntity, ResolvedEntity, LocationPrecision


def _ranked(entity: ResolvedEntity, distance_km: float | None) -> RankedEntity:
    payload = entity.model_dump()
    payload["distance_km"] = distance_km
    return RankedEntity.model_validate(payload)


def _sort_key(entity: RankedEntity) -> tuple[float, bool]:
    distance = entity.distance_km if entity.distance_km is not None else math.inf
    # False sorts before True, so "not online" puts online entities first.
    return distance, not entity.is_online


def rank_entities(consumer: GeoPoint | None, resolved: Iterable[ResolvedEntity]) -> list[RankedEntity]:
    """Annotate distances and return entities in proximity order."""
    if consumer is not None and not is_valid_coordinate(consumer):
        consumer = None

    annotated: list[RankedEntity] = []
    for entity in resolved:
        distance: float | None = None
        if consumer is not None and entity.on_map:
            distance = haversine_km(consumer, entity.resolved_location)
        annotated.append(_ranked(entity, distance))

    return sorted(annotated, key=_sort_key)


def filter_nearby(
    ranked: Iterable[RankedEntity],
    *,
    max_distance_km: float,
    online_only: bool = True,
) -> list[RankedEntity]:
    """Keep entities within `max_distance_km` of the consumer (ranked order kept).

    Entities without a distance are never "nearby".
    """
    out: list[RankedEntity] = []
    for r in ranked:
        if r.distance_km is None or r.distance_km > max_distance_km:
            continue
        if online_only and not r.is_online:
            continue
        out.append(r)
    return out


def map_markers(ranked: Iterable[RankedEntity]) -> list[MapMarker]:
    """Entities that can be placed on the map; UNKNOWN precision is left out."""
    markers: list[MapMarker] = []
    for r in ranked:
        if not r.on_map:
            continue
        markers.append(
            MapMarker(
                entity_id=r.id,
                location=r.resolved_location,
                is_online=r.is_online,
                approximate=r.location_precision is LocationPrecision.REGION,
                distance_km=r.distance_km,
            )
        )
    return markers


def format_distance(distance_km: float | None) -> str | None:
    if distance_km is None:
        return None
    if distance_km < 1:
        return f"{round(distance_km * 1000)} m"
    return f"{distance_km:.1f} km"
