"""Preview window and CLI entry point for the feedback client."""
from __future__ import annotations

import argparse
import asyncio
import signal
from typing import Optional

import cv2
import numpy as np
from loguru import logger

from posefeed.api.transport import InferenceTransport
from posefeed.core.config import Settings, get_settings
from posefeed.core.errors import CaptureUnavailableError, TransportError
from posefeed.core.logging_config import setup_logging
from posefeed.session.lifecycle import FeedbackClient

QUIT_KEYS = {ord("q"), 27}


class MirrorWindow:
    """OpenCV window showing the composited preview. 'q' or Esc quits."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.title = f"{(settings or get_settings()).app_name} (q to quit)"
        self._opened = False

    def show(self, frame: np.ndarray) -> bool:  # pragma: no cover - GUI only
        if not self._opened:
            cv2.namedWindow(self.title, cv2.WINDOW_NORMAL)
            self._opened = True
        cv2.imshow(self.title, frame)
        return (cv2.waitKey(1) & 0xFF) not in QUIT_KEYS

    def close(self) -> None:  # pragma: no cover - GUI only
        if self._opened:
            cv2.destroyWindow(self.title)
            self._opened = False


def build_settings(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.service_url:
        overrides["service_url"] = args.service_url
    if args.camera_index is not None:
        overrides["camera_index"] = args.camera_index
    if args.log_level:
        overrides["log_level"] = args.log_level
    return get_settings().model_copy(update=overrides)


async def run_client(settings: Settings, *, headless: bool = False) -> int:
    window = None if headless else MirrorWindow(settings)
    async with InferenceTransport(settings) as transport:
        client = FeedbackClient(settings, transport=transport, display=window)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, client.request_stop)
            except (NotImplementedError, RuntimeError):  # pragma: no cover - Windows
                pass
        try:
            summary = await client.run()
        except CaptureUnavailableError:
            print("Could not access camera. Check that it is connected and that camera permissions are granted.")
            return 1
        except TransportError as exc:
            print(f"Could not start session: {exc}")
            return 1
        finally:
            if window is not None:
                window.close()
    for line in summary or []:
        print(line)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Real-time pose feedback client")
    parser.add_argument("--service-url", default=None, help="Inference service base URL (default: $SERVICE_URL)")
    parser.add_argument("--camera-index", type=int, default=None, help="OpenCV camera index (default: $CAMERA_INDEX)")
    parser.add_argument("--headless", action="store_true", help="Do not open a preview window (stop with Ctrl+C)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: $LOG_LEVEL)")
    args = parser.parse_args(argv)

    settings = build_settings(args)
    setup_logging(settings.log_level)
    logger.info("Streaming to {} as camera {}", settings.service_url, settings.camera_index)
    return asyncio.run(run_client(settings, headless=args.headless))


if __name__ == "__main__":
    raise SystemExit(main())
