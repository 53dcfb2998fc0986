"""
Viewport controller.

A small state machine that keeps the map viewport consistent with the ranking
without fighting the user:

    IDLE -> LOCATING -> CENTERED -> USER_INTERACTING -(explicit recenter)-> LOCATING -> CENTERED

Ordering is enforced with tokens rather than locks:
- each locate/recenter gets a request sequence number; a completion older than
  one already settled is discarded (out-of-order acquisitions), and the phase
  only reaches CENTERED once the newest request has settled, so a catalog
  change never reframes on a fix that a pending request is about to replace;
- each apply gets a monotonically increasing update id; an apply still waiting
  for the renderer gives up as soon as a newer id is issued;
- each user interaction episode bumps an epoch; anything started in an older
  epoch never moves the map.

The renderer may not be ready (still mounting). Applies poll `is_ready()` with a
bounded exponential backoff and give up with a logged `ViewportApplyFailure`,
leaving the viewport at its last good state.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Protocol

from nearmap.acquisition.acquirer import GeolocationAcquirer
from nearmap.acquisition.profiles import PRECISE
from nearmap.config.settings import ViewportSettings
from nearmap.core.errors import LocationError, ViewportApplyFailure
from nearmap.domain.models import GeoPoint, RankedEntity, ViewportState, ViewportTarget
from nearmap.viewport.targeting import clamp_zoom, compute_viewport_target, default_target

logger = logging.getLogger(__name__)


class ViewportPhase(str, Enum):
    IDLE = "idle"
    LOCATING = "locating"
    CENTERED = "centered"
    USER_INTERACTING = "user_interacting"


class MapRenderer(Protocol):
    def is_ready(self) -> bool: ...

    def set_viewport(self, center: GeoPoint, zoom: int) -> None: ...


RankedProvider = Callable[[GeoPoint | None], list[RankedEntity]]


class ViewportController:
    def __init__(
        self,
        renderer: MapRenderer,
        acquirer: GeolocationAcquirer,
        ranked_provider: RankedProvider,
        settings: ViewportSettings,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._renderer = renderer
        self._acquirer = acquirer
        self._ranked_provider = ranked_provider
        self._settings = settings
        self._sleep = sleep

        initial = default_target(settings)
        self._state = ViewportState(center=initial.center, zoom=initial.zoom)
        self._phase = ViewportPhase.IDLE

        self._request_seq = 0
        self._settled_seq = 0
        self._issued_update_id = 0
        self._interaction_epoch = 0
        self._consumer: GeoPoint | None = None

    @property
    def phase(self) -> ViewportPhase:
        return self._phase

    @property
    def state(self) -> ViewportState:
        return self._state

    @property
    def consumer(self) -> GeoPoint | None:
        """Consumer coordinate behind the last settled target (None when unknown)."""
        return self._consumer

    # -- programmatic transitions -------------------------------------------------

    async def locate(self, profile: str = PRECISE) -> bool:
        """Acquire the consumer location and center on the ranking once.

        Returns True iff this call moved the viewport.
        """
        if self._phase is ViewportPhase.USER_INTERACTING:
            logger.debug("locate() ignored: user has manual control of the map")
            return False
        return await self._locate(profile)

    async def on_explicit_recenter(self, profile: str = PRECISE) -> bool:
        """User asked to re-center: leave manual control and locate again.

        The acquirer reuses its cached coordinate unless it is stale for `profile`.
        """
        self._state = self._state.model_copy(update={"user_is_interacting": False})
        self._phase = ViewportPhase.LOCATING
        return await self._locate(profile)

    async def on_ranking_changed(self) -> bool:
        """Re-frame after a catalog change, but only when the map is ours to move."""
        if self._phase is not ViewportPhase.CENTERED or self._locate_pending():
            return False
        return await self._settle(self._settled_seq, self._interaction_epoch, self._consumer)

    def _locate_pending(self) -> bool:
        return self._settled_seq < self._request_seq

    async def _locate(self, profile: str) -> bool:
        self._request_seq += 1
        seq = self._request_seq
        epoch = self._interaction_epoch
        self._phase = ViewportPhase.LOCATING

        try:
            consumer: GeoPoint | None = await self._acquirer.acquire(profile)
        except LocationError as exc:
            logger.info("No consumer location (%s); framing entities without it", exc.kind.value)
            consumer = None
        return await self._settle(seq, epoch, consumer)

    async def _settle(self, seq: int, epoch: int, consumer: GeoPoint | None) -> bool:
        if epoch != self._interaction_epoch or self._phase is ViewportPhase.USER_INTERACTING:
            logger.debug("Suppressing automatic recenter (request %s): user interaction", seq)
            self._settled_seq = max(self._settled_seq, seq)
            return False
        if seq < self._settled_seq:
            logger.debug("Discarding stale location result (request %s < %s)", seq, self._settled_seq)
            return False
        self._settled_seq = seq
        self._consumer = consumer

        target = compute_viewport_target(consumer, self._ranked_provider(consumer), self._settings)
        return await self._apply(target, epoch)

    async def _apply(self, target: ViewportTarget, epoch: int) -> bool:
        self._issued_update_id += 1
        update_id = self._issued_update_id
        try:
            return await self._apply_when_ready(update_id, epoch, target)
        except ViewportApplyFailure as exc:
            logger.warning("%s", exc)
            if (
                self._phase is ViewportPhase.LOCATING
                and update_id == self._issued_update_id
                and not self._locate_pending()
            ):
                self._phase = (
                    ViewportPhase.CENTERED if self._state.last_programmatic_update_id else ViewportPhase.IDLE
                )
            return False

    def _renderer_ready(self) -> bool:
        try:
            return bool(self._renderer.is_ready())
        except Exception as exc:
            logger.debug("Renderer readiness check failed: %s", exc)
            return False

    async def _apply_when_ready(self, update_id: int, epoch: int, target: ViewportTarget) -> bool:
        cfg = self._settings
        for attempt in range(cfg.ready_max_retries + 1):
            if update_id != self._issued_update_id:
                logger.debug("Dropping viewport update %s: superseded by %s", update_id, self._issued_update_id)
                return False
            if epoch != self._interaction_epoch or self._phase is ViewportPhase.USER_INTERACTING:
                logger.debug("Dropping viewport update %s: user interaction", update_id)
                return False

            if self._renderer_ready():
                try:
                    self._renderer.set_viewport(target.center, target.zoom)
                except Exception as exc:
                    raise ViewportApplyFailure(update_id, f"renderer rejected update: {exc}") from exc
                self._state = ViewportState(
                    center=target.center,
                    zoom=target.zoom,
                    user_is_interacting=False,
                    last_programmatic_update_id=update_id,
                )
                # A newer locate still in flight keeps the map in LOCATING.
                self._phase = ViewportPhase.LOCATING if self._locate_pending() else ViewportPhase.CENTERED
                return True

            if attempt < cfg.ready_max_retries:
                delay = min(cfg.ready_max_delay_seconds, cfg.ready_base_delay_seconds * (2**attempt))
                logger.debug("Renderer not ready; retrying update %s in %.2fs", update_id, delay)
                await self._sleep(delay)

        raise ViewportApplyFailure(update_id, f"renderer not ready after {cfg.ready_max_retries} retries")

    # -- user transitions ---------------------------------------------------------

    def on_user_pan(self, center: GeoPoint) -> None:
        self._begin_interaction(center=center)

    def on_user_zoom(self, zoom: int) -> None:
        self._begin_interaction(zoom=clamp_zoom(zoom, self._settings))

    def zoom_in(self) -> None:
        self.on_user_zoom(self._state.zoom + 1)

    def zoom_out(self) -> None:
        self.on_user_zoom(self._state.zoom - 1)

    def _begin_interaction(self, **update: object) -> None:
        if self._phase is not ViewportPhase.USER_INTERACTING:
            self._interaction_epoch += 1
        self._phase = ViewportPhase.USER_INTERACTING
        self._state = self._state.model_copy(update={**update, "user_is_interacting": True})
