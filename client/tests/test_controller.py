from __future__ import annotations

import asyncio

import pytest

from posefeed.api.schemas import HighlightMarker, InferenceResult
from posefeed.core.config import Settings
from posefeed.core.errors import TransportError
from posefeed.session.controller import INITIAL_FPS, SessionController
from posefeed.vision.capture import decode_data_uri


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def _controller(settings, capture, transport, **kwargs) -> SessionController:
    return SessionController(
        session_id="session_test",
        capture=capture,
        transport=transport,
        settings=settings,
        **kwargs,
    )


def test_fps_starts_at_initial_value_and_follows_window(settings, make_capture, make_transport):
    clock = FakeClock()
    ctl = _controller(settings, make_capture(frames=False), make_transport(), clock=clock)
    assert ctl.fps == INITIAL_FPS

    for _ in range(7):
        clock.now += 0.125
        ctl.tick()
    assert ctl.fps == INITIAL_FPS

    clock.now += 0.125  # 8 ticks in exactly one second
    ctl.tick()
    assert ctl.fps == 8

    for _ in range(4):
        clock.now += 0.25
        ctl.tick()
    assert ctl.fps == 4


@pytest.mark.asyncio
async def test_at_most_one_request_outstanding(settings, fake_capture, make_transport):
    transport = make_transport(gated=True)
    ctl = _controller(settings, fake_capture, transport)

    for cycle in range(5):
        for _ in range(4):
            ctl.tick()
            await asyncio.sleep(0)
        assert len(transport.calls) == cycle + 1
        assert ctl.in_flight
        transport.gates[-1].set()
        await _settle()
        assert not ctl.in_flight

    assert len(transport.calls) == 5
    assert transport.max_outstanding == 1
    assert ctl.requests_issued == 5


@pytest.mark.asyncio
async def test_request_carries_session_and_fps(settings, fake_capture, make_transport):
    transport = make_transport()
    ctl = _controller(settings, fake_capture, transport)
    ctl.tick()
    await _settle()
    call = transport.calls[0]
    assert call["session_id"] == "session_test"
    assert call["fps"] == INITIAL_FPS
    assert call["image"].startswith("data:image/jpeg;base64,")


@pytest.mark.asyncio
async def test_result_updates_presenter_and_markers(settings, fake_capture, make_transport):
    result = InferenceResult(
        pose_text="Detected: Warrior II",
        confidence=0.9,
        has_pose=True,
        highlight_joints=[HighlightMarker(name="left_knee", x=0.42, y=0.72)],
    )
    ctl = _controller(settings, fake_capture, make_transport([result]))
    ctl.tick()
    await _settle()

    assert ctl.presenter.status == "Detected: Warrior II"
    assert ctl.presenter.confidence_text == "Confidence: 90%"
    assert [(m.name, m.x, m.y) for m in ctl.smoother.markers] == [("left_knee", 0.42, 0.72)]
    assert ctl.smoother.surface_size == (640, 480)


@pytest.mark.asyncio
async def test_service_error_keeps_markers(settings, fake_capture, make_transport):
    transport = make_transport([InferenceResult(error="model failure")])
    ctl = _controller(settings, fake_capture, transport)
    ctl.smoother.surface_size = (640, 480)
    ctl.smoother.update([HighlightMarker(name="left_knee", x=0.4, y=0.7)])

    ctl.tick()
    await _settle()

    assert ctl.presenter.status == "Error: model failure"
    assert [(m.name, m.x, m.y) for m in ctl.smoother.markers] == [("left_knee", 0.4, 0.7)]
    assert not ctl.in_flight


@pytest.mark.asyncio
async def test_transport_failure_releases_flag(settings, fake_capture, make_transport):
    transport = make_transport([TransportError("connection refused")])
    ctl = _controller(settings, fake_capture, transport)

    ctl.tick()
    await _settle()
    assert not ctl.in_flight

    ctl.tick()
    await _settle()
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_unexpected_failure_releases_flag(settings, fake_capture, make_transport):
    transport = make_transport([RuntimeError("boom")])
    ctl = _controller(settings, fake_capture, transport)

    ctl.tick()
    await _settle()
    assert not ctl.in_flight
    assert ctl.streaming


@pytest.mark.asyncio
async def test_no_frame_means_no_request(settings, make_capture, make_transport):
    transport = make_transport()
    ctl = _controller(settings, make_capture(frames=False), transport)
    ctl.tick()
    await _settle()
    assert transport.calls == []
    assert not ctl.in_flight


@pytest.mark.asyncio
async def test_result_after_stop_is_ignored(settings, fake_capture, make_transport):
    result = InferenceResult(
        pose_text="Detected: Tree Pose",
        highlight_joints=[HighlightMarker(name="left_knee", x=0.5, y=0.5)],
    )
    transport = make_transport([result], gated=True)
    ctl = _controller(settings, fake_capture, transport)

    ctl.tick()
    await asyncio.sleep(0)
    ctl.request_stop()
    transport.gates[-1].set()
    await ctl.wait_idle()

    assert ctl.presenter.status == ""
    assert ctl.smoother.markers == []
    assert not ctl.in_flight


@pytest.mark.asyncio
async def test_tick_after_stop_does_nothing(settings, fake_capture, make_transport):
    transport = make_transport()
    ctl = _controller(settings, fake_capture, transport)
    ctl.request_stop()
    ctl.tick()
    await _settle()
    assert transport.calls == []
    assert fake_capture.reads == 0


@pytest.mark.asyncio
async def test_display_quit_stops_session(settings, fake_capture, make_transport, make_display):
    display = make_display(quit_after=3)
    ctl = _controller(settings, fake_capture, make_transport(), display=display)
    await asyncio.wait_for(ctl.run(), timeout=5)
    assert not ctl.streaming
    assert len(display.frames) == 3
    assert display.frames[0].shape == (480, 640, 3)


@pytest.mark.asyncio
async def test_run_loops_until_stop(settings, fake_capture, make_transport):
    transport = make_transport()
    ctl = _controller(settings, fake_capture, transport)

    async def stopper():
        while len(transport.calls) < 3:
            await asyncio.sleep(0.005)
        ctl.request_stop()

    await asyncio.wait_for(asyncio.gather(ctl.run(), stopper()), timeout=5)
    assert len(transport.calls) >= 3
    assert not ctl.in_flight


@pytest.mark.asyncio
async def test_transmitted_frame_carries_markers_unmirrored(fake_capture, make_transport, make_display):
    settings = Settings(mirror_display=True, display_refresh_hz=200.0, jpeg_quality=90)
    marked = InferenceResult(highlight_joints=[HighlightMarker(name="left_knee", x=0.25, y=0.5)])
    cleared = InferenceResult(highlight_joints=[])
    transport = make_transport([marked, cleared])
    display = make_display()
    ctl = _controller(settings, fake_capture, transport, display=display)

    for _ in range(3):
        ctl.tick()
        await _settle()

    first = decode_data_uri(transport.calls[0]["image"])
    assert first.max() < 30

    # frame 2 was drawn with the marker returned for frame 1
    second = decode_data_uri(transport.calls[1]["image"])
    assert second[240, 160][2] > 150
    assert second[240, 480].max() < 30

    # the local preview is mirrored, the transmitted frame is not
    preview = display.frames[1]
    assert preview[240, 480][2] > 150
    assert preview[240, 160].max() < 30

    # an empty marker list clears the overlay on the next transmitted frame
    third = decode_data_uri(transport.calls[2]["image"])
    assert third[240, 160].max() < 30


@pytest.mark.asyncio
async def test_snapshot_failure_does_not_stop_loop(settings, fake_capture, make_transport):
    transport = make_transport()
    ctl = _controller(settings, fake_capture, transport)
    real_snapshot = ctl._snapshot
    failures = []

    def flaky_snapshot():
        if not failures:
            failures.append(1)
            raise RuntimeError("encoder crashed")
        return real_snapshot()

    ctl._snapshot = flaky_snapshot
    ctl.tick()
    await _settle()
    assert not ctl.in_flight
    assert transport.calls == []
    assert ctl.streaming

    ctl.tick()
    await _settle()
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_stop_event_is_observable(settings, fake_capture, make_transport, make_display):
    ctl = _controller(settings, fake_capture, make_transport(), display=make_display(quit_after=2))
    runner = asyncio.ensure_future(ctl.run())
    await asyncio.wait_for(ctl.stop_requested.wait(), timeout=5)
    assert ctl.stop_requested.is_set()
    await asyncio.wait_for(runner, timeout=5)
