"""Camera capture source and frame encoding."""
from __future__ import annotations

import base64
from typing import Optional, Tuple

import cv2
import numpy as np
from loguru import logger

from posefeed.core.config import Settings, get_settings
from posefeed.core.errors import CaptureUnavailableError


def encode_data_uri(frame: np.ndarray, quality: int = 70) -> str:
    """Encode a BGR frame as a ``data:image/jpeg;base64,...`` URI."""
    jpeg_q = max(1, min(100, int(quality)))
    success, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), jpeg_q])
    if not success:
        raise ValueError("JPEG encoding failed")
    return "data:image/jpeg;base64," + base64.b64encode(buffer).decode("ascii")


def decode_data_uri(image: str) -> Optional[np.ndarray]:
    """Inverse of :func:`encode_data_uri`; returns ``None`` for anything undecodable."""
    _, _, encoded = image.partition(",") if image.startswith("data:") else ("", "", image)
    try:
        raw = base64.b64decode(encoded, validate=True)
    except ValueError:
        return None
    if not raw:
        return None
    return cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)


class CaptureSource:
    """Live camera stream. Frames are BGR ``np.ndarray`` as read by OpenCV."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._cap = None

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def open(self) -> None:
        if self._cap is not None:
            return
        index = int(self.settings.camera_index)
        cap = cv2.VideoCapture(index)
        if not cap or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise CaptureUnavailableError(f"Could not open camera index {index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self.settings.camera_width))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self.settings.camera_height))
        # Reduce camera internal buffer to minimize latency
        try:
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except cv2.error:
            pass
        self._cap = cap
        logger.info("Camera {} opened at {}", index, self.frame_size())

    def read(self) -> Optional[np.ndarray]:
        if self._cap is None:
            return None
        ok, frame = self._cap.read()
        if not ok or frame is None:
            logger.debug("Camera read failed")
            return None
        return frame

    def frame_size(self) -> Tuple[int, int]:
        """Negotiated ``(width, height)``; ``(0, 0)`` when closed."""
        if self._cap is None:
            return 0, 0
        return int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)), int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera released")
