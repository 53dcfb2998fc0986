"""
Viewport target computation.

Pure function of (consumer coordinate, ranked entities, viewport settings):
- consumer known: center on the consumer, zoom stepped by how many entities
  can be shown (1 -> close, a few -> medium, none or many -> wide);
- consumer unknown but entities on the map: center on their centroid, wide zoom;
- nothing known: global default center, world zoom.
"""

from __future__ import annotations

from typing import Iterable

from nearmap.config.settings import ViewportSettings
from nearmap.core.geo import centroid
from nearmap.domain.models import GeoPoint, RankedEntity, ViewportTarget


def clamp_zoom(zoom: int, settings: ViewportSettings) -> int:
    return max(settings.zoom_min, min(settings.zoom_max, int(zoom)))


def default_target(settings: ViewportSettings) -> ViewportTarget:
    return ViewportTarget(
        center=GeoPoint(lat=settings.default_center_lat, lng=settings.default_center_lng),
        zoom=clamp_zoom(settings.zoom.world, settings),
    )


def zoom_for_count(count: int, settings: ViewportSettings) -> int:
    steps = settings.zoom
    if count == 1:
        return steps.close
    if 2 <= count <= steps.medium_max_count:
        return steps.medium
    return steps.wide


def compute_viewport_target(
    consumer: GeoPoint | None,
    ranked: Iterable[RankedEntity],
    settings: ViewportSettings,
) -> ViewportTarget:
    located = [r.resolved_location for r in ranked if r.on_map]

    if consumer is not None:
        return ViewportTarget(center=consumer, zoom=clamp_zoom(zoom_for_count(len(located), settings), settings))

    mean = centroid(located)
    if mean is not None:
        lat, lng = mean
        return ViewportTarget(center=GeoPoint(lat=lat, lng=lng), zoom=clamp_zoom(settings.zoom.wide, settings))

    return default_target(settings)
