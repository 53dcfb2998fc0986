"""
API routes.

Endpoints:
- GET  `/api/health`: liveness.
- GET  `/api/regions`: region names known to the centroid table.
- POST `/api/resolve`: resolve a catalog (precision per entity + summary).
- POST `/api/rank`: rank a catalog against an optional consumer coordinate, plus
  map markers and the viewport target a map client should start from.

The consumer coordinate is supplied by the client here; acquiring it is the
client's (or `MapSession`'s) job.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from nearmap.catalog.loader import parse_entities
from nearmap.config.settings import get_settings
from nearmap.domain.models import GeoPoint
from nearmap.ranking.proximity import filter_nearby, format_distance, map_markers, rank_entities
from nearmap.resolver.location import get_default_resolver, summarize_precision
from nearmap.viewport.targeting import compute_viewport_target

logger = logging.getLogger(__name__)

router = APIRouter()


class ResolveRequest(BaseModel):
    entities: list[Any] = Field(default_factory=list)


class RankRequest(BaseModel):
    consumer: GeoPoint | None = None
    entities: list[Any] = Field(default_factory=list)
    nearby: bool = False
    max_distance_km: float | None = Field(default=None, gt=0)
    online_only: bool | None = None


@router.get("/api/health")
def get_health() -> dict:
    return {"status": "ok"}


@router.get("/api/regions")
def get_regions() -> dict:
    """Return normalized region names usable as a fallback location."""
    return {"regions": get_default_resolver().table.names()}


@router.post("/api/resolve")
def post_resolve(req: ResolveRequest) -> dict:
    resolved = get_default_resolver().resolve_all(parse_entities(req.entities))
    return {
        "results": [r.model_dump(mode="json") for r in resolved],
        "meta": {"precision": summarize_precision(resolved), "received": len(req.entities)},
    }


@router.post("/api/rank")
def post_rank(req: RankRequest) -> dict:
    t0 = time.perf_counter()
    settings = get_settings()
    resolved = get_default_resolver().resolve_all(parse_entities(req.entities))
    ranked = rank_entities(req.consumer, resolved)

    if req.nearby and req.consumer is not None:
        cfg = settings.ranking.nearby
        ranked = filter_nearby(
            ranked,
            max_distance_km=req.max_distance_km or cfg.max_distance_km,
            online_only=cfg.online_only if req.online_only is None else req.online_only,
        )

    target = compute_viewport_target(req.consumer, ranked, settings.viewport)
    results = []
    for r in ranked:
        item = r.model_dump(mode="json")
        item["distance_label"] = format_distance(r.distance_km)
        results.append(item)

    return {
        "results": results,
        "markers": [m.model_dump(mode="json") for m in map_markers(ranked)],
        "viewport": target.model_dump(mode="json"),
        "meta": {
            "precision": summarize_precision(resolved),
            "received": len(req.entities),
            "api_ms": int((time.perf_counter() - t0) * 1000),
        },
    }
