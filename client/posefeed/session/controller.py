"""Frame scheduler for one streaming session.

``run()`` calls ``tick()`` once per display refresh until ``request_stop()``.
Every tick counts toward the fps window, pulls the newest camera frame and,
when no exchange is outstanding, starts a capture cycle. A cycle draws the
stabilized markers onto a copy of the frame, encodes it, sends it to the
service and applies the answer. The in-flight flag is set before the cycle
starts and released in ``finally``, so at most one request is ever pending and
a failed request never stalls the loop.
"""
from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional, Protocol

import cv2
import numpy as np
from loguru import logger

from posefeed.api.schemas import InferenceResult
from posefeed.api.transport import InferenceTransport
from posefeed.core.config import Settings, get_settings
from posefeed.core.errors import TransportError
from posefeed.gui.presenter import FeedbackPresenter
from posefeed.vision.capture import CaptureSource, encode_data_uri
from posefeed.vision.overlay import draw_highlight_markers
from posefeed.vision.smoother import MarkerSmoother

INITIAL_FPS = 30
FPS_WINDOW_SEC = 1.0


class Display(Protocol):
    def show(self, frame: np.ndarray) -> bool:
        """Present a composited frame; return False when the user asked to quit."""


class SessionController:
    """Owns scheduler state (fps window, in-flight flag, marker state) for one session.

    Built when a session starts and discarded when it stops.
    """

    def __init__(
        self,
        *,
        session_id: str,
        capture: CaptureSource,
        transport: InferenceTransport,
        settings: Optional[Settings] = None,
        presenter: Optional[FeedbackPresenter] = None,
        smoother: Optional[MarkerSmoother] = None,
        display: Optional[Display] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or get_settings()
        self.session_id = session_id
        self.capture = capture
        self.transport = transport
        self.presenter = presenter or FeedbackPresenter(self.settings.low_visibility_threshold)
        self.smoother = smoother or MarkerSmoother(
            alpha=self.settings.smoothing_alpha,
            snap_radius_px=self.settings.snap_radius_px,
        )
        self.display = display
        self._clock = clock

        self.fps: int = INITIAL_FPS
        self._frame_count = 0
        self._window_start = clock()

        self._in_flight = False
        self._cycle_task: Optional[asyncio.Task] = None
        self._latest_frame: Optional[np.ndarray] = None
        self._stop = asyncio.Event()
        self.requests_issued = 0

    # --- lifecycle ------------------------------------------------------

    @property
    def streaming(self) -> bool:
        return not self._stop.is_set()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def stop_requested(self) -> asyncio.Event:
        return self._stop

    def request_stop(self) -> None:
        if not self._stop.is_set():
            logger.info("Stop requested for session {}", self.session_id)
        self._stop.set()

    async def run(self) -> None:
        interval = 1.0 / max(1.0, float(self.settings.display_refresh_hz))
        logger.info("Scheduler running session={} interval={:.4f}s", self.session_id, interval)
        try:
            while self.streaming:
                self.tick()
                await asyncio.sleep(interval)
        finally:
            await self.wait_idle()
            logger.info("Scheduler stopped session={} requests={}", self.session_id, self.requests_issued)

    async def wait_idle(self) -> None:
        """Wait for the outstanding cycle, if any, to settle."""
        task = self._cycle_task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    # --- scheduling -----------------------------------------------------

    def tick(self) -> None:
        if not self.streaming:
            return
        self._count_frame()

        frame = self.capture.read()
        if frame is not None:
            self._latest_frame = frame

        if not self._in_flight:
            self.capture_and_process()

        if self.display is not None and self._latest_frame is not None:
            if not self.display.show(self.compose_view(self._latest_frame)):
                self.request_stop()

    def _count_frame(self) -> None:
        self._frame_count += 1
        now = self._clock()
        if now - self._window_start >= FPS_WINDOW_SEC:
            self.fps = self._frame_count
            self._frame_count = 0
            self._window_start = now

    def capture_and_process(self) -> Optional[asyncio.Task]:
        """Start one capture cycle unless one is already outstanding."""
        if self._in_flight or not self.streaming:
            return None
        self._in_flight = True
        image = None
        try:
            image = self._snapshot()
        except Exception:
            logger.exception("Frame snapshot failed")
        finally:
            if image is None:
                self._in_flight = False
        if image is None:
            return None
        self._cycle_task = asyncio.get_running_loop().create_task(self._exchange(image))
        return self._cycle_task

    def _snapshot(self) -> Optional[str]:
        frame = self._latest_frame
        if frame is None:
            return None
        surface = frame.copy()
        draw_highlight_markers(surface, self.smoother.markers)
        height, width = surface.shape[:2]
        self.smoother.surface_size = (width, height)
        return encode_data_uri(surface, self.settings.jpeg_quality)

    async def _exchange(self, image: str) -> None:
        self.requests_issued += 1
        try:
            try:
                result = await self.transport.process_frame(image, self.session_id, self.fps)
            except TransportError as exc:
                logger.warning("Error processing frame: {}", exc)
                return
            if not self.streaming:
                logger.debug("Dropping result that arrived after stop")
                return
            self._apply(result)
        except Exception:
            logger.exception("Unexpected error in capture cycle")
        finally:
            self._in_flight = False

    def _apply(self, result: InferenceResult) -> None:
        if result.error:
            logger.warning("Server error: {}", result.error)
            self.presenter.show_error(result.error)
            return
        self.presenter.update(result)
        self.smoother.update(result.highlight_joints)

    # --- preview --------------------------------------------------------

    def compose_view(self, frame: np.ndarray) -> np.ndarray:
        """Live frame with markers and the text panel, for local display only."""
        view = draw_highlight_markers(frame.copy(), self.smoother.markers)
        if self.settings.mirror_display:
            view = cv2.flip(view, 1)
        return self.presenter.draw(view)
