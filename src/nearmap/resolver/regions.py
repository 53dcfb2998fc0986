"""
Region centroid table.

Entities without exact coordinates fall back to an approximate centroid keyed by
their region (country) name. The table is configuration data, not code: it ships
as `nearmap/config/regions.yaml` and can be replaced by any YAML/JSON file or an
http(s) URL (see `RegionSettings.source`).

Accepted payload shapes:
- `{"regions": [{"name": ..., "lat": ..., "lng": ..., "aliases": [...]}, ...]}`
- a bare list of such rows
- a flat mapping `{"south africa": {"lat": ..., "lng": ...}, ...}`
"""

from __future__ import annotations

import json
import logging
import re
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from nearmap.core.env import resolve_project_path
from nearmap.core.geo import coerce_float, is_valid_coordinate
from nearmap.core.http import get_json
from nearmap.domain.models import GeoPoint

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")


def normalize_region_name(name: str) -> str:
    """Fold case and whitespace: `"  South   AFRICA "` -> `"south africa"`."""
    return _WS_RE.sub(" ", name).strip().casefold()


class RegionCentroidTable:
    """Immutable normalized-name -> centroid lookup."""

    def __init__(self, centroids: Mapping[str, GeoPoint]):
        self._centroids: dict[str, GeoPoint] = {}
        for name, point in centroids.items():
            key = normalize_region_name(name)
            if key:
                self._centroids[key] = point

    def __len__(self) -> int:
        return len(self._centroids)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def lookup(self, name: str | None) -> GeoPoint | None:
        if not name or not isinstance(name, str):
            return None
        return self._centroids.get(normalize_region_name(name))

    def names(self) -> list[str]:
        return sorted(self._centroids)

    @classmethod
    def from_rows(cls, rows: Iterable[Any]) -> "RegionCentroidTable":
        """Build a table from `{name, lat, lng, aliases?}` rows, skipping bad ones."""
        centroids: dict[str, GeoPoint] = {}
        for row in rows:
            if not isinstance(row, dict):
                continue
            name = row.get("name")
            point = _row_point(row)
            if not isinstance(name, str) or not name.strip() or point is None:
                logger.warning("Skipping invalid region row: %r", row)
                continue
            centroids[name] = point
            for alias in row.get("aliases") or []:
                if isinstance(alias, str) and alias.strip():
                    centroids[alias] = point
        return cls(centroids)

    @classmethod
    def from_payload(cls, payload: Any) -> "RegionCentroidTable":
        if isinstance(payload, dict) and "regions" in payload:
            payload = payload["regions"]
        if isinstance(payload, list):
            return cls.from_rows(payload)
        if isinstance(payload, dict):
            rows = [{"name": k, **v} for k, v in payload.items() if isinstance(v, dict)]
            return cls.from_rows(rows)
        raise ValueError("Region table payload must be a list or a mapping.")


def _row_point(row: dict[str, Any]) -> GeoPoint | None:
    lat = coerce_float(row.get("lat"))
    lng = coerce_float(row.get("lng", row.get("lon")))
    if lat is None or lng is None:
        return None
    if not is_valid_coordinate({"lat": lat, "lng": lng}):
        return None
    return GeoPoint(lat=lat, lng=lng)


def _parse_text(text: str, *, suffix: str) -> Any:
    if suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def load_region_table(source: str | Path | None = None, *, timeout_seconds: float = 15) -> RegionCentroidTable:
    """Load the centroid table from the packaged default, a file, or a URL."""
    if not source:
        text = resources.files("nearmap.config").joinpath("regions.yaml").read_text(encoding="utf-8")
        return RegionCentroidTable.from_payload(yaml.safe_load(text) or {})

    src = str(source)
    if src.startswith(("http://", "https://")):
        logger.info("Fetching region centroid table from %s", src)
        return RegionCentroidTable.from_payload(get_json(src, timeout_seconds=timeout_seconds))

    path = resolve_project_path(src, must_exist=True)
    payload = _parse_text(path.read_text(encoding="utf-8"), suffix=path.suffix.lower())
    return RegionCentroidTable.from_payload(payload or {})
