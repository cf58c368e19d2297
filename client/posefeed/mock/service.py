"""Mock pose inference service for local development.

Implements the wire contract the client talks to with canned values. It
decodes the submitted frame (to prove the client's encoding) but does no pose
detection: labels, angles and markers follow a fixed script driven by the
frame counter of each session. Session stats live in memory only, from
/start_session until /end_session; frames for any other id are rejected.

Endpoints:
- GET /health
- POST /start_session
- POST /process_frame
- POST /end_session
"""
from __future__ import annotations

import math
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

from fastapi import FastAPI
from loguru import logger

from posefeed.api.schemas import FrameRequest, SessionRequest
from posefeed.vision.capture import decode_data_uri

FRAMES_PER_POSE = 90

# (label, base angles, landmark needing correction or None, feedback)
_SCRIPT = [
    (
        "Tree Pose",
        {"left_knee": 172.0, "right_knee": 48.0, "left_hip": 178.0, "right_hip": 120.0},
        None,
        "Good balance, keep breathing",
    ),
    (
        "Warrior II",
        {"left_knee": 128.0, "right_knee": 176.0, "left_elbow": 178.0, "right_elbow": 176.0},
        ("left_knee", 0.42, 0.72),
        "Bend your front knee closer to 90 degrees",
    ),
    (
        "Downward Dog",
        {"left_knee": 168.0, "right_knee": 166.0, "left_hip": 82.0, "right_hip": 84.0},
        ("left_hip", 0.50, 0.38),
        "Push your hips higher",
    ),
]


@dataclass
class _SessionStats:
    started_at: float = field(default_factory=time.time)
    frames: int = 0
    pose_counts: Counter = field(default_factory=Counter)
    feedback: Dict[str, List[str]] = field(default_factory=dict)


_sessions: Dict[str, _SessionStats] = {}

app = FastAPI(title="Pose inference mock")


def _mock_result(stats: _SessionStats) -> dict:
    idx = stats.frames
    label, base_angles, target, feedback = _SCRIPT[(idx // FRAMES_PER_POSE) % len(_SCRIPT)]
    phase = idx * 0.15
    angles = {k: round(v + 3.0 * math.sin(phase + i), 1) for i, (k, v) in enumerate(base_angles.items())}
    visibility = {k: (0.55 if k.startswith("right_") and idx % 40 < 10 else 0.95) for k in angles}

    highlight_joints = []
    if target is not None:
        name, x, y = target
        # sub-pixel detector noise plus a slow drift every few seconds
        drift = 0.05 * math.sin(idx / 30.0)
        highlight_joints.append({
            "name": name,
            "x": round(x + drift + 0.002 * math.sin(idx * 1.7), 4),
            "y": round(y + 0.002 * math.cos(idx * 1.3), 4),
        })

    stats.pose_counts[label] += 1
    if target is not None:
        messages = stats.feedback.setdefault(label, [])
        if feedback not in messages:
            messages.append(feedback)

    return {
        "pose_text": f"Detected: {label}",
        "confidence": round(0.82 + 0.1 * math.sin(phase), 3),
        "feedback_text": feedback,
        "has_pose": True,
        "angles": angles,
        "visibility": visibility,
        "highlight_joints": highlight_joints,
    }


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.post("/start_session")
async def start_session(payload: SessionRequest) -> dict:
    _sessions[payload.session_id] = _SessionStats()
    logger.info("Mock session started {}", payload.session_id)
    return {"status": "started", "session_id": payload.session_id}


@app.post("/process_frame")
async def process_frame(payload: FrameRequest) -> dict:
    frame = decode_data_uri(payload.image)
    if frame is None:
        return {"error": "Invalid image"}
    stats = _sessions.get(payload.session_id)
    if stats is None:
        return {"error": "Unknown session"}
    result = _mock_result(stats)
    stats.frames += 1
    logger.debug("Mock frame {} session={} fps={} shape={}", stats.frames, payload.session_id, payload.fps, frame.shape)
    return result


@app.post("/end_session")
async def end_session(payload: SessionRequest) -> dict:
    stats = _sessions.pop(payload.session_id, None)
    if stats is None:
        return {"duration_seconds": 0.0, "pose_counts": {}, "feedback_summary": {}}
    logger.info("Mock session ended {} frames={}", payload.session_id, stats.frames)
    return {
        "duration_seconds": round(time.time() - stats.started_at, 2),
        "pose_counts": dict(stats.pose_counts),
        "feedback_summary": {
            pose: [{"message": m} for m in messages] for pose, messages in stats.feedback.items()
        },
    }
