"""Session lifecycle: camera + backend bookkeeping around a SessionController."""
from __future__ import annotations

import time
import uuid
from typing import List, Optional

from loguru import logger

from posefeed.api.transport import InferenceTransport
from posefeed.core.config import Settings, get_settings
from posefeed.core.errors import CaptureUnavailableError, TransportError
from posefeed.gui.presenter import FeedbackPresenter
from posefeed.session.controller import Display, SessionController
from posefeed.vision.capture import CaptureSource


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class FeedbackClient:
    """One camera, one backend session at a time.

    The session id is generated once per client and reused across restarts.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        capture: Optional[CaptureSource] = None,
        transport: Optional[InferenceTransport] = None,
        display: Optional[Display] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session_id = new_session_id()
        self.capture = capture or CaptureSource(self.settings)
        self.transport = transport or InferenceTransport(self.settings)
        self.display = display
        self.presenter = FeedbackPresenter(self.settings.low_visibility_threshold)
        self.controller: Optional[SessionController] = None
        self.last_summary: Optional[List[str]] = None

    @property
    def active(self) -> bool:
        return self.controller is not None

    async def start(self) -> SessionController:
        if self.controller is not None:
            return self.controller
        try:
            self.capture.open()
            await self.transport.start_session(self.session_id)
        except (CaptureUnavailableError, TransportError) as exc:
            logger.error("Error starting session: {}", exc)
            self.capture.release()
            self.presenter.session_failed()
            raise
        self.controller = SessionController(
            session_id=self.session_id,
            capture=self.capture,
            transport=self.transport,
            settings=self.settings,
            presenter=self.presenter,
            display=self.display,
        )
        self.last_summary = None
        self.presenter.session_started()
        logger.info("Session {} started", self.session_id)
        return self.controller

    def request_stop(self) -> None:
        if self.controller is not None:
            self.controller.request_stop()

    async def stop(self) -> Optional[List[str]]:
        controller, self.controller = self.controller, None
        if controller is None:
            return None
        controller.request_stop()
        await controller.wait_idle()
        self.capture.release()
        controller.smoother.reset()

        try:
            summary = await self.transport.end_session(self.session_id)
        except TransportError as exc:
            logger.error("Error ending session: {}", exc)
        else:
            self.last_summary = self.presenter.render_summary(summary)
            for line in self.last_summary:
                logger.info("summary | {}", line)
        self.presenter.session_stopped()
        logger.info("Session {} stopped", self.session_id)
        return self.last_summary

    async def run(self) -> Optional[List[str]]:
        """Start, stream until a stop is requested, then tear down."""
        controller = await self.start()
        try:
            await controller.run()
        finally:
            await self.stop()
        return self.last_summary
