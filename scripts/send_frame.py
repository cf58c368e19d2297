#!/usr/bin/env python3
"""Send one image to the inference service and print the decoded response."""
from __future__ import annotations

import argparse
import json
from pathlib import Path

import cv2
import requests

from posefeed.api.schemas import InferenceResult
from posefeed.vision.capture import encode_data_uri


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Post a single frame to /process_frame")
    parser.add_argument("image", type=Path, help="Image file readable by OpenCV")
    parser.add_argument("--base-url", default="http://127.0.0.1:8000", help="Service URL (default: %(default)s)")
    parser.add_argument("--session-id", default="probe", help="Session id to send (default: %(default)s)")
    parser.add_argument("--quality", type=int, default=70, help="JPEG quality (default: %(default)s)")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    frame = cv2.imread(str(args.image))
    if frame is None:
        raise SystemExit(f"Could not read image: {args.image}")
    base = args.base_url.rstrip("/")
    session = {"session_id": args.session_id}
    requests.post(f"{base}/start_session", json=session, timeout=10).raise_for_status()
    payload = {"image": encode_data_uri(frame, args.quality), "session_id": args.session_id, "fps": 0}
    try:
        resp = requests.post(f"{base}/process_frame", json=payload, timeout=10)
        data = resp.json()
    finally:
        requests.post(f"{base}/end_session", json=session, timeout=10)
    print(json.dumps(data, indent=2, ensure_ascii=False))
    result = InferenceResult.from_payload(data)
    if result.error:
        raise SystemExit(f"Service error: {result.error}")
    print(f"markers={len(result.highlight_joints)} confidence={result.confidence:.2f}")


if __name__ == "__main__":
    main()
