from __future__ import annotations

# Map session: the orchestrator for one consumer looking at one catalog.
#
# It wires together:
# - catalog input (raw rows or LocatableEntity) -> LocationResolver (cached per catalog)
# - GeolocationAcquirer (consumer coordinate, per-profile state)
# - ProximityRanker (pure; re-run on demand)
# - ViewportController (pulls the ranking through `ranked_for`)
#
# Data only flows one way: the controller asks for a ranking, nobody pushes
# into the controller's state.

import logging
from typing import Any, Iterable

from nearmap.acquisition.acquirer import GeolocationAcquirer
from nearmap.acquisition.profiles import PRECISE, build_profiles
from nearmap.acquisition.sensors import LocationSensor, build_sensor
from nearmap.catalog.loader import parse_entities
from nearmap.config.settings import Settings, get_settings
from nearmap.core.errors import LocationError
from nearmap.domain.models import GeoPoint, LocatableEntity, MapMarker, RankedEntity, ResolvedEntity
from nearmap.ranking.proximity import filter_nearby, map_markers, rank_entities
from nearmap.resolver.location import LocationResolver, get_default_resolver, summarize_precision
from nearmap.viewport.controller import MapRenderer, ViewportController

logger = logging.getLogger(__name__)


class MapSession:
    def __init__(
        self,
        renderer: MapRenderer,
        *,
        settings: Settings | None = None,
        sensor: LocationSensor | None = None,
        resolver: LocationResolver | None = None,
        acquirer: GeolocationAcquirer | None = None,
        controller: ViewportController | None = None,
    ):
        self._settings = settings or get_settings()
        self._resolver = resolver or get_default_resolver()
        self._acquirer = acquirer or GeolocationAcquirer(
            sensor or build_sensor(self._settings),
            build_profiles(self._settings),
        )
        self._controller = controller or ViewportController(
            renderer,
            self._acquirer,
            self.ranked_for,
            self._settings.viewport,
        )
        self._resolved: list[ResolvedEntity] = []

    @property
    def acquirer(self) -> GeolocationAcquirer:
        return self._acquirer

    @property
    def controller(self) -> ViewportController:
        return self._controller

    @property
    def resolved(self) -> list[ResolvedEntity]:
        return list(self._resolved)

    async def set_catalog(self, entities: Iterable[LocatableEntity | dict[str, Any]]) -> list[RankedEntity]:
        """Replace the catalog: re-resolve, re-rank, and re-frame if the map is ours."""
        self._resolved = self._resolver.resolve_all(parse_entities(entities))
        logger.info("Catalog resolved: %s", summarize_precision(self._resolved))
        await self._controller.on_ranking_changed()
        return self.ranked()

    def ranked_for(self, consumer: GeoPoint | None) -> list[RankedEntity]:
        return rank_entities(consumer, self._resolved)

    def ranked(self) -> list[RankedEntity]:
        """Current ranking against the freshest consumer coordinate we have."""
        consumer = self._acquirer.latest_point() or self._controller.consumer
        return self.ranked_for(consumer)

    def markers(self) -> list[MapMarker]:
        return map_markers(self.ranked())

    async def find_nearby(self, *, profile: str = PRECISE) -> list[RankedEntity]:
        """Nearby search: fresh consumer fix, then only close (online) entities.

        Returns an empty list when the location cannot be acquired.
        """
        try:
            consumer = await self._acquirer.acquire(profile)
        except LocationError as exc:
            logger.info("Nearby search unavailable: %s", exc.kind.value)
            return []
        cfg = self._settings.ranking.nearby
        return filter_nearby(
            self.ranked_for(consumer),
            max_distance_km=cfg.max_distance_km,
            online_only=cfg.online_only,
        )

    async def locate(self, profile: str = PRECISE) -> bool:
        return await self._controller.locate(profile)
