"""Core configuration and constants.

Uses environment variables for configuration. Follows PEP8 and Google style docstrings.
"""
from __future__ import annotations

from functools import lru_cache
import os

from pydantic import BaseModel


class Settings(BaseModel):
    """Client settings loaded from environment variables.

    Attributes:
        app_name: App display name, used as the preview window title.
        service_url: Base URL of the pose inference service.
        request_timeout: Per-request transport timeout in seconds.
        camera_index: OpenCV camera index.
        camera_width: Requested capture width (ideal, the driver may ignore it).
        camera_height: Requested capture height.
        display_refresh_hz: Scheduler tick rate.
        jpeg_quality: JPEG quality (0-100) for transmitted frames.
        snap_radius_px: Marker deadband radius in pixels.
        smoothing_alpha: Weight of the new marker position when blending.
        low_visibility_threshold: Visibility score below which an angle is flagged.
        mirror_display: Flip the local preview horizontally (transmitted frames are never flipped).
        log_level: Logging level string.
    """

    app_name: str = os.getenv("APP_NAME", "Pose Feedback Client")

    service_url: str = os.getenv("SERVICE_URL", "http://127.0.0.1:8000")
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "10"))

    # Capture
    camera_index: int = int(os.getenv("CAMERA_INDEX", "0"))
    camera_width: int = int(os.getenv("CAMERA_WIDTH", "1280"))
    camera_height: int = int(os.getenv("CAMERA_HEIGHT", "720"))

    # Scheduler / transmitted frame
    display_refresh_hz: float = float(os.getenv("DISPLAY_REFRESH_HZ", "60"))
    jpeg_quality: int = int(os.getenv("JPEG_QUALITY", "70"))

    # Marker smoothing
    snap_radius_px: float = float(os.getenv("SNAP_RADIUS_PX", "25"))
    smoothing_alpha: float = float(os.getenv("SMOOTHING_ALPHA", "0.3"))

    # Presenter
    low_visibility_threshold: float = float(os.getenv("LOW_VISIBILITY_THRESHOLD", "0.7"))
    mirror_display: bool = os.getenv("MIRROR_DISPLAY", "1").strip().lower() in {"1", "true", "yes", "on"}

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Mock inference service (dev only)
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
