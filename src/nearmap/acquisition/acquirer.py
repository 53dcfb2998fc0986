"""
Consumer geolocation acquisition.

`GeolocationAcquirer` wraps a `LocationSensor` and owns one `AcquisitionState`
per profile (IDLE -> ACQUIRING -> ACQUIRED | FAILED). Guarantees:
- profiles never touch each other's state;
- at most one sensor call in flight per profile: concurrent callers share it;
- a result younger than the profile's cache window is reused without a call;
- the sensor call is bounded by the profile timeout.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Mapping

from nearmap.acquisition.profiles import AcquisitionProfile
from nearmap.acquisition.sensors import LocationSensor
from nearmap.core.errors import LocationError, LocationErrorKind
from nearmap.core.geo import is_valid_coordinate
from nearmap.domain.models import AcquisitionState, AcquisitionStatus, GeoPoint

logger = logging.getLogger(__name__)


class GeolocationAcquirer:
    def __init__(
        self,
        sensor: LocationSensor,
        profiles: Mapping[str, AcquisitionProfile],
        *,
        clock: Callable[[], float] = time.time,
    ):
        if not profiles:
            raise ValueError("at least one acquisition profile is required")
        self._sensor = sensor
        self._profiles = dict(profiles)
        self._clock = clock
        self._states: dict[str, AcquisitionState] = {name: AcquisitionState() for name in self._profiles}
        self._in_flight: dict[str, asyncio.Task[GeoPoint]] = {}

    def profile(self, name: str) -> AcquisitionProfile:
        try:
            return self._profiles[name]
        except KeyError:
            raise ValueError(f"Unknown acquisition profile '{name}'") from None

    def state(self, name: str) -> AcquisitionState:
        self.profile(name)
        return self._states[name]

    def is_stale(self, name: str) -> bool:
        """True unless the profile holds a result still inside its cache window."""
        profile = self.profile(name)
        st = self._states[name]
        if st.status is not AcquisitionStatus.ACQUIRED or st.acquired_at is None:
            return True
        age_ms = (self._clock() - st.acquired_at) * 1000.0
        return age_ms > profile.max_cache_age_ms or profile.max_cache_age_ms <= 0

    def latest_point(self) -> GeoPoint | None:
        """Freshest acquired coordinate across all profiles (None if none yet)."""
        best: AcquisitionState | None = None
        for st in self._states.values():
            if st.status is not AcquisitionStatus.ACQUIRED or st.acquired_at is None:
                continue
            if best is None or st.acquired_at > (best.acquired_at or 0.0):
                best = st
        return best.point if best else None

    async def acquire(self, name: str) -> GeoPoint:
        """Return the consumer's coordinate for profile `name`.

        Raises:
            LocationError: the sensor failed, timed out, or is unsupported.
            ValueError: unknown profile name.
        """
        profile = self.profile(name)
        if not self.is_stale(name):
            return self._states[name].point  # type: ignore[return-value]

        task = self._in_flight.get(name)
        if task is None:
            self._states[name] = AcquisitionState(status=AcquisitionStatus.ACQUIRING)
            task = asyncio.ensure_future(self._run(profile))
            self._in_flight[name] = task
            task.add_done_callback(lambda t, n=name: self._on_done(n, t))
        else:
            logger.debug("Joining in-flight acquisition for profile %s", name)
        # Shield: one caller giving up must not cancel the shared sensor call.
        return await asyncio.shield(task)

    def _on_done(self, name: str, task: asyncio.Task[GeoPoint]) -> None:
        if self._in_flight.get(name) is task:
            del self._in_flight[name]
        if not task.cancelled():
            # Mark the exception retrieved even when every awaiter went away.
            task.exception()

    async def _run(self, profile: AcquisitionProfile) -> GeoPoint:
        try:
            raw = await asyncio.wait_for(self._sensor.request_location(profile), timeout=profile.timeout_seconds)
            if not is_valid_coordinate(raw):
                raise LocationError(LocationErrorKind.UNAVAILABLE, "sensor returned an invalid coordinate")
            point = GeoPoint(lat=float(raw.lat), lng=float(raw.lng))
        except asyncio.TimeoutError:
            err = LocationError(LocationErrorKind.TIMEOUT, f"no fix within {profile.timeout_ms} ms")
            self._fail(profile.name, err)
            raise err from None
        except LocationError as exc:
            self._fail(profile.name, exc)
            raise
        except asyncio.CancelledError:
            self._states[profile.name] = AcquisitionState()
            raise
        except Exception as exc:
            logger.warning("Location sensor raised unexpectedly (profile=%s): %s", profile.name, exc)
            err = LocationError(LocationErrorKind.UNAVAILABLE, str(exc))
            self._fail(profile.name, err)
            raise err from exc

        self._states[profile.name] = AcquisitionState(
            status=AcquisitionStatus.ACQUIRED,
            point=point,
            acquired_at=self._clock(),
        )
        logger.info("Acquired consumer location via %s profile", profile.name)
        return point

    def _fail(self, name: str, err: LocationError) -> None:
        self._states[name] = AcquisitionState(status=AcquisitionStatus.FAILED, error=err.kind)
        logger.info("Location acquisition failed (profile=%s): %s", name, err.kind.value)
