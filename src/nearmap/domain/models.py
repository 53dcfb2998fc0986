"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- catalog input (`LocatableEntity`, tolerant of messy external rows)
- derived pipeline data (`ResolvedEntity`, `RankedEntity`)
- component-owned state (`AcquisitionState`, `ViewportState`)

Keeping these models in one place helps:
- validation at the boundary (malformed catalog fields never reach ranking),
- typed refactors,
- consistent JSON output across CLI/API.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from nearmap.core.errors import LocationErrorKind


class GeoPoint(BaseModel):
    """A geographic point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class RawCoordinate(BaseModel):
    """Coordinate values exactly as the catalog delivered them (unvalidated)."""

    model_config = ConfigDict(frozen=True)

    lat: Any = None
    lng: Any = None


_TRUTHY = {"1", "true", "yes", "y", "on"}


class LocatableEntity(BaseModel):
    """A service-provider record as owned by the external catalog.

    Extra domain fields (name, avatar, rating, ...) are kept untouched.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    exact_location: RawCoordinate | None = None
    region_name: str | None = None
    is_online: bool = False

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_fields(cls, data: Any) -> Any:
        # Catalog rows usually carry flat latitude/longitude + country columns.
        if not isinstance(data, dict):
            return data
        out = dict(data)
        if out.get("exact_location") is None:
            lat = out.pop("latitude", None)
            lng = out.pop("longitude", None)
            if lat is not None or lng is not None:
                out["exact_location"] = {"lat": lat, "lng": lng}
        if out.get("region_name") is None and "country" in out:
            out["region_name"] = out.get("country")
        return out

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("exact_location", mode="before")
    @classmethod
    def _tolerate_location(cls, value: Any) -> Any:
        if value is None or isinstance(value, (dict, RawCoordinate)):
            return value
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return {"lat": value[0], "lng": value[1]}
        return None

    @field_validator("region_name", mode="before")
    @classmethod
    def _tolerate_region(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, str):
            return None
        return value if value.strip() else None

    @field_validator("is_online", mode="before")
    @classmethod
    def _tolerate_online(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            return value.strip().lower() in _TRUTHY
        return False


class LocationPrecision(str, Enum):
    """How trustworthy a resolved coordinate is (EXACT > REGION > UNKNOWN)."""

    EXACT = "exact"
    REGION = "region"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        return _PRECISION_RANK[self]

    def preferred_over(self, other: "LocationPrecision") -> bool:
        return self.rank > other.rank


_PRECISION_RANK = {
    LocationPrecision.EXACT: 2,
    LocationPrecision.REGION: 1,
    LocationPrecision.UNKNOWN: 0,
}


class ResolvedEntity(LocatableEntity):
    """Catalog entity plus its best-known coordinate."""

    resolved_location: GeoPoint | None = None
    location_precision: LocationPrecision = LocationPrecision.UNKNOWN

    @property
    def on_map(self) -> bool:
        return self.location_precision is not LocationPrecision.UNKNOWN and self.resolved_location is not None


class RankedEntity(ResolvedEntity):
    """Resolved entity annotated with its distance to the consumer (if known)."""

    distance_km: float | None = None


class MapMarker(BaseModel):
    """What a marker renderer needs to place one entity on the map."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    location: GeoPoint
    is_online: bool
    approximate: bool
    distance_km: float | None = None


class AcquisitionStatus(str, Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    ACQUIRED = "acquired"
    FAILED = "failed"


class AcquisitionState(BaseModel):
    """Per-profile state of the consumer-location acquisition."""

    model_config = ConfigDict(frozen=True)

    status: AcquisitionStatus = AcquisitionStatus.IDLE
    point: GeoPoint | None = None
    error: LocationErrorKind | None = None
    acquired_at: float | None = None


class ViewportTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    center: GeoPoint
    zoom: int


class ViewportState(BaseModel):
    """Current map viewport as last applied (or as the user left it)."""

    model_config = ConfigDict(frozen=True)

    center: GeoPoint
    zoom: int
    user_is_interacting: bool = False
    last_programmatic_update_id: int = 0
