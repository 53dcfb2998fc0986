"""
Location sensors.

A sensor is the single-shot asynchronous source of the consumer's own
coordinate. The acquirer treats it as a black box beyond the profile knobs:

    async def request_location(profile) -> GeoPoint   # or raise LocationError

Implementations:
- `StaticLocationSensor`: a fixed coordinate (CLI flags, tests); no coordinate
  means the platform has no sensor at all (UNSUPPORTED).
- `IpLocationSensor`: coarse IP geolocation over HTTP. It cannot honour
  `high_accuracy`, but it does honour the profile timeout.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from nearmap.acquisition.profiles import AcquisitionProfile
from nearmap.config.settings import Settings
from nearmap.core.errors import LocationError, LocationErrorKind
from nearmap.core.geo import coerce_float, is_valid_coordinate
from nearmap.core.http import get_json_async
from nearmap.domain.models import GeoPoint

logger = logging.getLogger(__name__)


class LocationSensor(Protocol):
    async def request_location(self, profile: AcquisitionProfile) -> GeoPoint: ...


class StaticLocationSensor:
    def __init__(self, point: GeoPoint | None):
        self._point = point

    async def request_location(self, profile: AcquisitionProfile) -> GeoPoint:
        if self._point is None:
            raise LocationError(LocationErrorKind.UNSUPPORTED, "no location sensor configured")
        return self._point


def _payload_point(payload: Any) -> GeoPoint | None:
    if not isinstance(payload, dict):
        return None
    if str(payload.get("status", "success")).lower() == "fail":
        return None
    for lat_key, lng_key in (("lat", "lon"), ("latitude", "longitude"), ("lat", "lng")):
        lat = coerce_float(payload.get(lat_key))
        lng = coerce_float(payload.get(lng_key))
        if lat is not None and lng is not None:
            if not is_valid_coordinate({"lat": lat, "lng": lng}):
                return None
            return GeoPoint(lat=lat, lng=lng)
    return None


class IpLocationSensor:
    def __init__(self, url: str, *, transport: httpx.AsyncBaseTransport | None = None):
        self._url = url
        self._transport = transport

    async def request_location(self, profile: AcquisitionProfile) -> GeoPoint:
        if profile.high_accuracy:
            logger.debug("IP geolocation is coarse; high_accuracy requested by profile %s", profile.name)
        try:
            payload = await get_json_async(
                self._url,
                timeout_seconds=profile.timeout_seconds,
                transport=self._transport,
            )
        except httpx.TimeoutException as exc:
            raise LocationError(LocationErrorKind.TIMEOUT, str(exc)) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in {401, 403}:
                raise LocationError(LocationErrorKind.DENIED, f"status={status}") from exc
            raise LocationError(LocationErrorKind.UNAVAILABLE, f"status={status}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise LocationError(LocationErrorKind.UNAVAILABLE, str(exc)) from exc

        point = _payload_point(payload)
        if point is None:
            raise LocationError(LocationErrorKind.UNAVAILABLE, "IP geolocation returned no usable coordinate")
        return point


def build_sensor(settings: Settings) -> LocationSensor:
    cfg = settings.sensor
    if cfg.kind == "ip":
        return IpLocationSensor(cfg.ip_url)
    if cfg.kind == "static" and cfg.static_lat is not None and cfg.static_lng is not None:
        return StaticLocationSensor(GeoPoint(lat=cfg.static_lat, lng=cfg.static_lng))
    return StaticLocationSensor(None)
