import asyncio
import logging

import pytest

from nearmap.acquisition.acquirer import GeolocationAcquirer
from nearmap.acquisition.profiles import FAST, PRECISE, AcquisitionProfile, build_profiles
from nearmap.acquisition.sensors import StaticLocationSensor
from nearmap.config.settings import get_settings
from nearmap.core.errors import LocationError, LocationErrorKind
from nearmap.domain.models import GeoPoint, LocationPrecision, RankedEntity
from nearmap.viewport.controller import ViewportController, ViewportPhase
from nearmap.viewport.targeting import compute_viewport_target

POINT_A = GeoPoint(lat=-33.9, lng=18.4)
POINT_B = GeoPoint(lat=-26.2, lng=28.0)


class RecordingRenderer:
    def __init__(self, ready: bool = True):
        self.ready = ready
        self.calls: list[tuple[GeoPoint, int]] = []
        self.ready_checks = 0

    def is_ready(self) -> bool:
        self.ready_checks += 1
        return self.ready

    def set_viewport(self, center: GeoPoint, zoom: int) -> None:
        self.calls.append((center, zoom))


class GatedSensor:
    def __init__(self):
        self.gates: dict[str, asyncio.Future] = {}
        self.calls: list[str] = []

    def _gate(self, name):
        if name not in self.gates:
            self.gates[name] = asyncio.get_running_loop().create_future()
        return self.gates[name]

    async def request_location(self, profile: AcquisitionProfile) -> GeoPoint:
        self.calls.append(profile.name)
        result = await self._gate(profile.name)
        self.gates.pop(profile.name, None)
        if isinstance(result, Exception):
            raise result
        return result

    def release(self, name, result):
        self._gate(name).set_result(result)


async def _no_sleep(_delay: float) -> None:
    await asyncio.sleep(0)


def _ranked(n: int) -> list[RankedEntity]:
    return [
        RankedEntity(
            id=str(i),
            resolved_location=GeoPoint(lat=float(i), lng=float(i)),
            location_precision=LocationPrecision.EXACT,
        )
        for i in range(n)
    ]


def _controller(renderer, sensor, *, ranked=None, viewport=None, sleep=_no_sleep) -> ViewportController:
    settings = get_settings()
    acquirer = GeolocationAcquirer(sensor, build_profiles(settings))
    entities = ranked if ranked is not None else _ranked(1)
    return ViewportController(
        renderer,
        acquirer,
        lambda consumer: entities,
        viewport or settings.viewport,
        sleep=sleep,
    )


async def _settle():
    for _ in range(20):
        await asyncio.sleep(0)


def _sleep_until(event: asyncio.Event):
    async def sleep(_delay: float) -> None:
        await event.wait()

    return sleep


@pytest.mark.asyncio
async def test_locate_applies_once_and_centers():
    renderer = RecordingRenderer()
    ctl = _controller(renderer, StaticLocationSensor(POINT_A))
    assert ctl.phase is ViewportPhase.IDLE

    assert await ctl.locate() is True
    assert renderer.calls == [(POINT_A, 6)]
    assert ctl.phase is ViewportPhase.CENTERED
    assert ctl.state.center == POINT_A
    assert ctl.state.last_programmatic_update_id == 1


@pytest.mark.asyncio
async def test_locating_does_not_touch_viewport_until_fix():
    renderer = RecordingRenderer()
    sensor = GatedSensor()
    ctl = _controller(renderer, sensor)

    task = asyncio.ensure_future(ctl.locate())
    await _settle()
    assert ctl.phase is ViewportPhase.LOCATING
    assert renderer.calls == []

    sensor.release(PRECISE, POINT_A)
    await task
    assert renderer.calls == [(POINT_A, 6)]


@pytest.mark.asyncio
async def test_failed_acquisition_frames_entities_instead():
    renderer = RecordingRenderer()
    sensor = GatedSensor()
    ctl = _controller(renderer, sensor, ranked=_ranked(3))

    task = asyncio.ensure_future(ctl.locate())
    await _settle()
    sensor.release(PRECISE, LocationError(LocationErrorKind.DENIED))
    assert await task is True

    (center, zoom), = renderer.calls
    assert center == GeoPoint(lat=1.0, lng=1.0)
    assert zoom == 4
    assert ctl.consumer is None


@pytest.mark.asyncio
async def test_out_of_order_completions_never_apply_stale_result():
    renderer = RecordingRenderer()
    sensor = GatedSensor()
    ctl = _controller(renderer, sensor)

    first = asyncio.ensure_future(ctl.locate(FAST))
    await _settle()
    second = asyncio.ensure_future(ctl.locate(PRECISE))
    await _settle()

    # The later request answers first...
    sensor.release(PRECISE, POINT_B)
    assert await second is True
    # ...and the older one must not overwrite it.
    sensor.release(FAST, POINT_A)
    assert await first is False

    assert [c for c, _ in renderer.calls] == [POINT_B]
    assert ctl.state.center == POINT_B
    assert ctl.state.last_programmatic_update_id == 1


@pytest.mark.asyncio
async def test_user_pan_suppresses_automatic_recenter_until_explicit():
    renderer = RecordingRenderer()
    sensor = GatedSensor()
    ctl = _controller(renderer, sensor)

    task = asyncio.ensure_future(ctl.locate())
    await _settle()
    user_center = GeoPoint(lat=10, lng=10)
    ctl.on_user_pan(user_center)
    assert ctl.phase is ViewportPhase.USER_INTERACTING

    sensor.release(PRECISE, POINT_A)
    assert await task is False
    assert renderer.calls == []
    assert ctl.state.center == user_center
    assert ctl.state.user_is_interacting is True

    # Further automatic attempts are ignored while the user is in control.
    assert await ctl.locate() is False
    assert renderer.calls == []

    recenter = asyncio.ensure_future(ctl.on_explicit_recenter())
    await _settle()
    sensor.release(PRECISE, POINT_A)
    assert await recenter is True
    assert renderer.calls == [(POINT_A, 6)]
    assert ctl.phase is ViewportPhase.CENTERED
    assert ctl.state.user_is_interacting is False


@pytest.mark.asyncio
async def test_recenter_reuses_fresh_cached_fix():
    renderer = RecordingRenderer()
    sensor = GatedSensor()
    ctl = _controller(renderer, sensor)

    task = asyncio.ensure_future(ctl.locate(FAST))
    await _settle()
    sensor.release(FAST, POINT_A)
    await task

    ctl.on_user_zoom(9)
    assert await ctl.on_explicit_recenter(FAST) is True
    assert sensor.calls == [FAST]
    assert renderer.calls[-1] == (POINT_A, 6)


@pytest.mark.asyncio
async def test_waits_for_renderer_with_bounded_backoff():
    renderer = RecordingRenderer(ready=False)
    delays: list[float] = []

    async def fake_sleep(delay):
        delays.append(delay)
        if len(delays) == 3:
            renderer.ready = True

    ctl = _controller(renderer, StaticLocationSensor(POINT_A), sleep=fake_sleep)
    assert await ctl.locate() is True
    assert delays == [0.1, 0.2, 0.4]
    assert renderer.calls == [(POINT_A, 6)]


@pytest.mark.asyncio
async def test_gives_up_after_max_retries_and_logs(caplog):
    renderer = RecordingRenderer(ready=False)
    delays: list[float] = []

    async def fake_sleep(delay):
        delays.append(delay)

    viewport = get_settings().viewport.model_copy(update={"ready_max_retries": 4})
    ctl = _controller(renderer, StaticLocationSensor(POINT_A), viewport=viewport, sleep=fake_sleep)

    with caplog.at_level(logging.WARNING, logger="nearmap.viewport.controller"):
        assert await ctl.locate() is False

    assert delays == [0.1, 0.2, 0.4, 0.8]
    assert renderer.ready_checks == 5
    assert renderer.calls == []
    assert "not ready after 4 retries" in caplog.text
    assert ctl.phase is ViewportPhase.IDLE
    assert ctl.state.last_programmatic_update_id == 0


@pytest.mark.asyncio
async def test_backoff_delay_is_capped():
    renderer = RecordingRenderer(ready=False)
    delays: list[float] = []

    async def fake_sleep(delay):
        delays.append(delay)

    ctl = _controller(renderer, StaticLocationSensor(POINT_A), sleep=fake_sleep)
    await ctl.locate()
    assert len(delays) == 10
    assert max(delays) == 1.0


@pytest.mark.asyncio
async def test_pending_apply_dropped_when_newer_update_issued():
    renderer = RecordingRenderer(ready=False)
    mounted = asyncio.Event()
    ctl = _controller(renderer, StaticLocationSensor(POINT_A), sleep=_sleep_until(mounted))

    first = asyncio.ensure_future(ctl.locate(FAST))
    await _settle()
    second = asyncio.ensure_future(ctl.locate(PRECISE))
    await _settle()
    renderer.ready = True
    mounted.set()

    assert await asyncio.gather(first, second) == [False, True]
    assert len(renderer.calls) == 1
    assert ctl.state.last_programmatic_update_id == 2


@pytest.mark.asyncio
async def test_user_interaction_cancels_pending_apply():
    renderer = RecordingRenderer(ready=False)
    mounted = asyncio.Event()
    ctl = _controller(renderer, StaticLocationSensor(POINT_A), sleep=_sleep_until(mounted))

    task = asyncio.ensure_future(ctl.locate())
    await _settle()
    assert renderer.ready_checks == 1
    ctl.zoom_in()
    renderer.ready = True
    mounted.set()

    assert await task is False
    assert renderer.calls == []
    assert ctl.state.zoom == 3


@pytest.mark.asyncio
async def test_renderer_exception_is_swallowed():
    class ExplodingRenderer(RecordingRenderer):
        def set_viewport(self, center, zoom):
            raise RuntimeError("container unmounted")

    ctl = _controller(ExplodingRenderer(), StaticLocationSensor(POINT_A))
    assert await ctl.locate() is False
    assert ctl.phase is ViewportPhase.IDLE


@pytest.mark.asyncio
async def test_ranking_change_reframes_only_when_centered():
    renderer = RecordingRenderer()
    entities = _ranked(1)
    settings = get_settings()
    acquirer = GeolocationAcquirer(StaticLocationSensor(POINT_A), build_profiles(settings))
    ctl = ViewportController(renderer, acquirer, lambda consumer: entities, settings.viewport, sleep=_no_sleep)

    assert await ctl.on_ranking_changed() is False
    await ctl.locate()
    entities.extend(_ranked(3))
    assert await ctl.on_ranking_changed() is True
    assert renderer.calls[-1] == (POINT_A, 5)

    ctl.on_user_pan(GeoPoint(lat=0, lng=0))
    assert await ctl.on_ranking_changed() is False
    assert len(renderer.calls) == 2


@pytest.mark.asyncio
async def test_ranking_change_waits_for_newer_pending_fix():
    renderer = RecordingRenderer()
    sensor = GatedSensor()
    ctl = _controller(renderer, sensor)

    first = asyncio.ensure_future(ctl.locate(FAST))
    await _settle()
    second = asyncio.ensure_future(ctl.locate(PRECISE))
    await _settle()

    sensor.release(FAST, POINT_A)
    assert await first is True
    # The older fix is shown, but the newer request is still outstanding.
    assert ctl.phase is ViewportPhase.LOCATING

    assert await ctl.on_ranking_changed() is False

    sensor.release(PRECISE, POINT_B)
    assert await second is True
    assert ctl.phase is ViewportPhase.CENTERED
    assert ctl.state.center == POINT_B
    assert ctl.consumer == POINT_B
    assert [c for c, _ in renderer.calls] == [POINT_A, POINT_B]

    assert await ctl.on_ranking_changed() is True
    assert renderer.calls[-1] == (POINT_B, 6)


def test_user_zoom_is_clamped():
    ctl = _controller(RecordingRenderer(), StaticLocationSensor(POINT_A))
    ctl.on_user_zoom(40)
    assert ctl.state.zoom == 18
    ctl.zoom_out()
    assert ctl.state.zoom == 17
    ctl.on_user_zoom(-3)
    ctl.zoom_out()
    assert ctl.state.zoom == 2


@pytest.mark.parametrize("count, zoom", [(0, 4), (1, 6), (2, 5), (5, 5), (6, 4), (40, 4)])
def test_target_zoom_steps_with_consumer(count, zoom):
    target = compute_viewport_target(POINT_A, _ranked(count), get_settings().viewport)
    assert target.center == POINT_A
    assert target.zoom == zoom


def test_target_without_consumer_or_entities_is_world_view():
    unknown = [RankedEntity(id="u")]
    target = compute_viewport_target(None, unknown, get_settings().viewport)
    assert target.center == GeoPoint(lat=-30.5595, lng=22.9375)
    assert target.zoom == 2
