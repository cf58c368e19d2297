from __future__ import annotations

import asyncio
from typing import List, Optional

import numpy as np
import pytest

from posefeed.api.schemas import InferenceResult, SessionSummary
from posefeed.core.config import Settings
from posefeed.core.errors import CaptureUnavailableError


class FakeCapture:
    def __init__(self, width: int = 640, height: int = 480, *, fail_open: bool = False, frames: bool = True):
        self.frame = np.zeros((height, width, 3), dtype=np.uint8) if frames else None
        self.fail_open = fail_open
        self.opened = False
        self.released = False
        self.reads = 0

    def open(self) -> None:
        if self.fail_open:
            raise CaptureUnavailableError("Could not open camera index 0")
        self.opened = True

    def read(self):
        self.reads += 1
        return None if self.frame is None else self.frame.copy()

    def release(self) -> None:
        self.released = True


class FakeTransport:
    """Answers from a script; with ``gated=True`` each request waits for the test to release it."""

    def __init__(self, results: Optional[list] = None, *, gated: bool = False):
        self.results = list(results or [])
        self.gated = gated
        self.calls: List[dict] = []
        self.gates: List[asyncio.Event] = []
        self.outstanding = 0
        self.max_outstanding = 0
        self.started: List[str] = []
        self.ended: List[str] = []
        self.start_error: Optional[Exception] = None
        self.end_error: Optional[Exception] = None
        self.summary = SessionSummary(duration_seconds=65.0, pose_counts={"Tree Pose": 3})

    async def process_frame(self, image: str, session_id: str, fps: int) -> InferenceResult:
        self.calls.append({"image": image, "session_id": session_id, "fps": fps})
        self.outstanding += 1
        self.max_outstanding = max(self.max_outstanding, self.outstanding)
        try:
            if self.gated:
                gate = asyncio.Event()
                self.gates.append(gate)
                await gate.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self.outstanding -= 1
        result = self.results.pop(0) if self.results else InferenceResult(pose_text="Detecting...")
        if isinstance(result, Exception):
            raise result
        return result

    async def start_session(self, session_id: str) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started.append(session_id)

    async def end_session(self, session_id: str) -> SessionSummary:
        if self.end_error is not None:
            raise self.end_error
        self.ended.append(session_id)
        return self.summary


class FakeDisplay:
    def __init__(self, quit_after: Optional[int] = None):
        self.quit_after = quit_after
        self.frames = []

    def show(self, frame) -> bool:
        self.frames.append(frame)
        return self.quit_after is None or len(self.frames) < self.quit_after


@pytest.fixture
def settings() -> Settings:
    return Settings(mirror_display=False, display_refresh_hz=200.0, jpeg_quality=70)


@pytest.fixture
def fake_capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def make_capture():
    return FakeCapture


@pytest.fixture
def make_display():
    return FakeDisplay
