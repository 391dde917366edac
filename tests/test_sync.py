import random

import pytest

from context import AppContext
from history import HistoryBuffer
from models import SensorReading
from sensor import VirtualBLESensor
from settings import SettingsManager
from sync import SyncController
from uploader import Uploader


@pytest.fixture
def make_ctx(qtbot, collector):
    contexts = []

    def factory(timeout=10.0, sync_interval_ms=30000):
        sensor = VirtualBLESensor(interval_ms=20, connect_delay_ms=20, rng=random.Random(7))
        uploader = Uploader(collector.base_url, timeout=timeout)
        sync = SyncController(sensor, uploader, "VIRTUAL_SENSOR_001", interval_ms=sync_interval_ms)
        ctx = AppContext(sensor, HistoryBuffer(), uploader, sync)
        contexts.append(ctx)
        return ctx

    yield factory
    for ctx in contexts:
        ctx.shutdown()


def test_readings_are_pushed_into_history(qtbot, make_ctx):
    ctx = make_ctx()
    ctx.sensor.start()

    qtbot.waitUntil(lambda: len(ctx.history) >= 3, timeout=2000)

    assert ctx.history.latest() is ctx.sensor.current


def test_history_stays_bounded_while_running(qtbot, make_ctx):
    ctx = make_ctx()
    ctx.sensor.start()

    counter = {"n": 0}
    ctx.sensor.reading_generated.connect(lambda _r: counter.__setitem__("n", counter["n"] + 1))
    qtbot.waitUntil(lambda: counter["n"] >= 15, timeout=5000)

    assert len(ctx.history) == 10


def test_sync_now_without_reading_is_refused(qtbot, make_ctx, collector):
    ctx = make_ctx()
    assert ctx.sync.sync_now() is False
    assert collector.requests == []


def test_manual_sync_of_history_entry(qtbot, make_ctx, collector):
    ctx = make_ctx()
    old = SensorReading(temperature=22.0, humidity=44.0)
    ctx.history.push(old)

    with qtbot.waitSignal(ctx.sync.synced, timeout=5000) as blocker:
        assert ctx.sync.sync_now(ctx.history.get(0))

    assert blocker.args[0].status_code == 201
    assert collector.requests[0]["json"]["temperature"] == 22.0
    assert not ctx.sync.is_busy


def test_server_error_is_reported_as_synced(qtbot, make_ctx, collector):
    collector.status = 500
    ctx = make_ctx()

    with qtbot.assertNotEmitted(ctx.sync.sync_failed):
        with qtbot.waitSignal(ctx.sync.synced, timeout=5000) as blocker:
            ctx.sync.sync_now(SensorReading(temperature=30.0, humidity=70.0))

    assert blocker.args[0].status_code == 500


def test_timeout_leaves_state_untouched(qtbot, make_ctx, collector):
    collector.delay = 1.0
    ctx = make_ctx(timeout=0.2)
    ctx.sensor.start()
    qtbot.waitUntil(lambda: len(ctx.history) >= 1, timeout=2000)
    ctx.sensor.stop()
    before = ctx.history.to_list()

    with qtbot.waitSignal(ctx.sync.sync_failed, timeout=5000) as blocker:
        ctx.sync.sync_now()

    assert "0.2" in blocker.args[0]
    assert ctx.history.to_list() == before
    assert not ctx.sensor.is_advertising
    assert not ctx.sensor.is_connected
    assert not ctx.sync.is_busy


def test_uploads_are_serialized(qtbot, make_ctx, collector):
    collector.delay = 0.3
    ctx = make_ctx()
    reading = SensorReading(temperature=25.0, humidity=50.0)

    with qtbot.waitSignal(ctx.sync.synced, timeout=5000):
        assert ctx.sync.sync_now(reading) is True
        assert ctx.sync.sync_now(reading) is False

    assert len(collector.requests) == 1


def test_auto_sync_requires_connection(qtbot, make_ctx, collector):
    ctx = make_ctx(sync_interval_ms=50)
    ctx.start()
    qtbot.waitUntil(lambda: ctx.sensor.current is not None, timeout=2000)

    with qtbot.assertNotEmitted(ctx.sync.sync_started, wait=200):
        pass
    assert collector.requests == []

    with qtbot.waitSignal(ctx.sync.synced, timeout=5000):
        ctx.sensor.connect_sensor()

    assert collector.requests[0]["json"]["sensor_id"] == "VIRTUAL_SENSOR_001"


def test_context_from_settings(qtbot, tmp_path):
    settings = SettingsManager(tmp_path / "settings.json")
    settings.set("base_url", "http://collector.local:3000/")
    settings.set("upload_timeout_s", 3)

    ctx = AppContext.from_settings(settings)

    assert ctx.uploader.url == "http://collector.local:3000/api/sensor-data"
    assert ctx.uploader.timeout == 3.0
    assert ctx.sensor.timer.interval() == 3000
    assert ctx.sync.timer.interval() == 30000
    assert ctx.sync.sensor_id == "VIRTUAL_SENSOR_001"
    ctx.shutdown()


def test_unexpected_error_releases_controller(qtbot, make_ctx, monkeypatch, collector):
    ctx = make_ctx()
    reading = SensorReading(temperature=25.0, humidity=50.0)

    def boom(*_args, **_kwargs):
        raise RuntimeError("fallo interno")

    monkeypatch.setattr(ctx.uploader, "upload", boom)
    with qtbot.waitSignal(ctx.sync.sync_failed, timeout=5000) as blocker:
        assert ctx.sync.sync_now(reading)

    assert "fallo interno" in blocker.args[0]
    assert not ctx.sync.is_busy

    monkeypatch.undo()
    with qtbot.waitSignal(ctx.sync.synced, timeout=5000):
        assert ctx.sync.sync_now(reading)


def test_timers_keep_running_after_failed_sync(qtbot, make_ctx, collector):
    collector.delay = 1.0
    ctx = make_ctx(timeout=0.2, sync_interval_ms=60000)
    ctx.start()
    qtbot.waitUntil(lambda: ctx.sensor.current is not None, timeout=2000)

    with qtbot.waitSignal(ctx.sync.sync_failed, timeout=5000):
        ctx.sync.sync_now()

    assert ctx.sensor.timer.isActive()
    assert ctx.sync.timer.isActive()
    with qtbot.waitSignal(ctx.sensor.reading_generated, timeout=1000):
        pass


def test_auto_sync_skips_ticks_while_busy(qtbot, make_ctx, collector):
    collector.delay = 0.5
    ctx = make_ctx(sync_interval_ms=30)
    ctx.start()
    qtbot.waitUntil(lambda: ctx.sensor.current is not None, timeout=2000)

    seen = []
    ctx.sync.synced.connect(lambda _r: seen.append(len(collector.requests)))

    with qtbot.waitSignal(ctx.sync.synced, timeout=5000):
        ctx.sensor.connect_sensor()
    ctx.sync.stop()

    # Unos 15 ticks del timer caen mientras la primera subida sigue en curso
    assert seen[0] == 1


def test_invalid_timeout_setting_falls_back_to_default(qtbot, tmp_path):
    settings = SettingsManager(tmp_path / "settings.json")
    settings.set("upload_timeout_s", 0)

    ctx = AppContext.from_settings(settings)

    assert ctx.uploader.timeout == 10.0
    ctx.shutdown()
