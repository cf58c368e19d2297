"""HTTP transport to the pose inference service (async, one attempt per call).

- process_frame: POST /process_frame with one encoded frame
- start_session / end_session: session bookkeeping on the backend

No retries and no queueing: the scheduler's next tick is the retry.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from posefeed.api.schemas import FrameRequest, InferenceResult, SessionRequest, SessionSummary
from posefeed.core.config import Settings, get_settings
from posefeed.core.errors import MalformedResponseError, TransportError


class InferenceTransport:
    """Thin wrapper around an ``httpx.AsyncClient`` bound to the service URL."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.settings.service_url.rstrip("/"),
            timeout=self.settings.request_timeout,
        )

    async def __aenter__(self) -> "InferenceTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- Public API -----------------------------------------------------

    async def process_frame(self, image: str, session_id: str, fps: int) -> InferenceResult:
        """Send one frame and decode the service's answer."""
        payload = FrameRequest(image=image, session_id=session_id, fps=int(fps))
        status, body = await self._post_json("/process_frame", payload.model_dump())
        result = InferenceResult.from_payload(body)
        if status >= 400 and result.error is None:
            result.error = f"HTTP {status}"
        return result

    async def start_session(self, session_id: str) -> None:
        status, _ = await self._post_json("/start_session", SessionRequest(session_id=session_id).model_dump())
        if status >= 400:
            raise TransportError(f"start_session rejected with HTTP {status}")
        logger.info("Session {} registered with service", session_id)

    async def end_session(self, session_id: str) -> SessionSummary:
        status, body = await self._post_json("/end_session", SessionRequest(session_id=session_id).model_dump())
        if status >= 400:
            raise TransportError(f"end_session rejected with HTTP {status}")
        if not isinstance(body, dict):
            raise MalformedResponseError("session summary is not a JSON object")
        try:
            return SessionSummary.model_validate(body)
        except ValidationError as exc:
            raise MalformedResponseError(f"invalid session summary: {exc}") from exc

    # --- Internal helpers -----------------------------------------------

    async def _post_json(self, path: str, payload: dict) -> tuple[int, Any]:
        try:
            resp = await self._client.post(path, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(f"POST {path} failed: {exc!r}") from exc
        try:
            body = resp.json()
        except ValueError as exc:
            raise TransportError(f"POST {path} returned non-JSON body (HTTP {resp.status_code})") from exc
        return resp.status_code, body
