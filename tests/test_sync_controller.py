import asyncio

import pytest

from spotmap.client.debounce import Debouncer
from spotmap.client.sync import SyncPhase, ViewportSyncController
from spotmap.client.url_state import FilterOptions, UrlState, decode_url_state
from spotmap.models.dto import BoundingBox

BOUNDS_MS = 40
URL_MS = 20


class RecordingLoader:
    def __init__(self):
        self.keys = []

    async def reset(self, key):
        self.keys.append(key)
        return True


def _box(lat: float) -> BoundingBox:
    return BoundingBox(min_lat=lat, max_lat=lat + 1, min_lon=0, max_lon=1)


def _controller(initial_state=None):
    loader = RecordingLoader()
    urls = []
    controller = ViewportSyncController(
        loader,
        urls.append,
        initial_state=initial_state,
        bounds_debounce_ms=BOUNDS_MS,
        url_debounce_ms=URL_MS,
    )
    return controller, loader, urls


async def _settle(ms: int):
    await asyncio.sleep(ms / 1000 + 0.03)


@pytest.mark.asyncio
async def test_fetching_suspended_until_first_bounds():
    controller, loader, _ = _controller()
    assert controller.phase is SyncPhase.UNINITIALIZED
    assert controller.fetch_enabled is False

    controller.set_search("bars")
    await _settle(URL_MS)
    assert loader.keys == []

    controller.report_bounds(_box(10))
    await asyncio.sleep(0)
    assert controller.phase is SyncPhase.BOUNDS_KNOWN
    assert [k.bounds for k in loader.keys] == [_box(10)]
    assert loader.keys[0].search == "bars"
    await controller.close()


@pytest.mark.asyncio
async def test_first_unbounded_report_also_enables_fetching():
    controller, loader, _ = _controller()
    controller.on_map_bounds(-80, 80, -400, 400)
    await asyncio.sleep(0)
    assert controller.fetch_enabled is True
    assert loader.keys[0].bounds is None
    await controller.close()


@pytest.mark.asyncio
async def test_later_reports_are_debounced_into_one_fetch():
    controller, loader, urls = _controller()
    controller.report_bounds(_box(0))
    await asyncio.sleep(0)

    for lat in (1, 2, 3, 4):
        controller.report_bounds(_box(lat))
        await asyncio.sleep(0.005)

    assert controller.phase is SyncPhase.STEADY
    assert len(loader.keys) == 1

    await _settle(BOUNDS_MS)
    assert [k.bounds for k in loader.keys] == [_box(0), _box(4)]
    assert controller.bounds == _box(4)

    await _settle(URL_MS)
    assert decode_url_state(urls[-1]).bounds == _box(4)
    await controller.close()


@pytest.mark.asyncio
async def test_restored_bounds_suppress_first_live_report():
    restored = UrlState(bounds=_box(40), search_query="rings", selected_spot_id=3)
    controller, loader, _ = _controller(restored)
    assert controller.phase is SyncPhase.BOUNDS_KNOWN

    controller.start()
    await asyncio.sleep(0)
    controller.report_bounds(_box(-10))
    await _settle(BOUNDS_MS)

    assert controller.bounds == _box(40)
    assert [k.bounds for k in loader.keys] == [_box(40)]

    controller.report_bounds(_box(41))
    await _settle(BOUNDS_MS)
    assert controller.bounds == _box(41)
    await controller.close()


@pytest.mark.asyncio
async def test_url_updates_are_debounced_and_reflect_latest_state():
    controller, _, urls = _controller()
    controller.report_bounds(_box(10))
    controller.set_search("b")
    controller.set_search("ba")
    controller.set_search("bar")
    controller.set_filters(FilterOptions(has_bars=True))
    controller.select_spot(42)

    await _settle(URL_MS)
    assert len(urls) == 1
    assert urls[0] == (
        "minLat=10.000000&maxLat=11.000000&minLon=0.000000&maxLon=1.000000&q=bar&bars=1&spot=42"
    )
    await controller.close()


@pytest.mark.asyncio
async def test_close_cancels_pending_timers():
    controller, loader, urls = _controller()
    controller.report_bounds(_box(0))
    await asyncio.sleep(0)
    controller.report_bounds(_box(5))
    controller.select_spot(1)

    await controller.close()
    await _settle(BOUNDS_MS)

    assert controller.bounds == _box(0)
    assert len(loader.keys) == 1
    assert urls == []


@pytest.mark.asyncio
async def test_debouncer_keeps_single_pending_timer():
    fired = []
    debouncer = Debouncer(URL_MS, fired.append)
    debouncer.schedule("a")
    debouncer.schedule("b")
    assert debouncer.pending is True

    assert debouncer.flush() is True
    assert fired == ["b"]
    assert debouncer.pending is False
    assert debouncer.flush() is False

    await _settle(URL_MS)
    assert fired == ["b"]
