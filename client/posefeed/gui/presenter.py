"""Maps inference results and session summaries to on-screen text.

The presenter keeps plain strings so it can be asserted on in tests; ``draw``
paints them onto a preview frame with OpenCV.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from posefeed.api.schemas import InferenceResult, SessionSummary

GOOD_MARKER = "Good"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_angle_name(key: str) -> str:
    """``left_knee`` -> ``Left Knee``."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), key.replace("_", " "))


def format_duration(seconds: float) -> str:
    total = max(0, _round_half_up(float(seconds)))
    minutes, secs = divmod(total, 60)
    return f"{minutes}m {secs}s"


@dataclass
class AngleReading:
    key: str
    label: str
    degrees: int
    low_visibility: bool

    def as_text(self) -> str:
        suffix = " (low visibility)" if self.low_visibility else ""
        return f"{self.label}: {self.degrees} deg{suffix}"


class PanelStyle:
    """Colors (BGR) and sizes for the preview panel."""

    FONT = cv2.FONT_HERSHEY_SIMPLEX
    STATUS_SCALE = 0.8
    BODY_SCALE = 0.6
    LINE_GAP = 8
    MARGIN = 16
    PANEL_OPACITY = 0.5

    TEXT = (255, 255, 255)
    GOOD = (80, 175, 76)
    WARN = (7, 193, 255)
    MUTED = (160, 160, 160)


class FeedbackPresenter:
    """Status, confidence, feedback and angle readouts for the current session."""

    def __init__(self, low_visibility_threshold: float = 0.7) -> None:
        self.low_visibility_threshold = float(low_visibility_threshold)
        self.status: str = ""
        self.confidence_text: str = ""
        self.feedback_text: str = ""
        self.feedback_level: Optional[str] = None
        self.angles: List[AngleReading] = []
        self.angles_visible: bool = False

    # --- state updates --------------------------------------------------

    def update(self, result: InferenceResult) -> None:
        self.status = result.pose_text

        if result.confidence > 0:
            self.confidence_text = f"Confidence: {_round_half_up(result.confidence * 100)}%"
        else:
            self.confidence_text = ""

        if result.feedback_text:
            self.feedback_text = result.feedback_text
            self.feedback_level = "good" if GOOD_MARKER in result.feedback_text else "needs-adjustment"
        else:
            self.feedback_text = ""
            self.feedback_level = None

        if result.has_pose and result.angles:
            self.angles = self._angle_readings(result)
            self.angles_visible = True
        else:
            self.angles = []
            self.angles_visible = False

    def show_error(self, message: str) -> None:
        self.status = f"Error: {message}"

    def session_started(self) -> None:
        self.status = "Session started"

    def session_failed(self) -> None:
        self.status = "Error: Could not start session"

    def session_stopped(self) -> None:
        self.status = "Session stopped"
        self.confidence_text = ""
        self.feedback_text = ""
        self.feedback_level = None
        self.angles = []
        self.angles_visible = False

    def _angle_readings(self, result: InferenceResult) -> List[AngleReading]:
        readings: List[AngleReading] = []
        for key, value in result.angles.items():
            vis = result.visibility.get(key, 1.0)
            readings.append(
                AngleReading(
                    key=key,
                    label=format_angle_name(key),
                    degrees=_round_half_up(value),
                    low_visibility=vis < self.low_visibility_threshold,
                )
            )
        return readings

    # --- session summary ------------------------------------------------

    @staticmethod
    def render_summary(summary: SessionSummary) -> List[str]:
        lines: List[str] = []
        if summary.duration_seconds is not None:
            lines.append(f"Duration: {format_duration(summary.duration_seconds)}")

        if summary.pose_counts:
            lines.append("Poses:")
            lines.extend(f"  {pose}: {count} reps" for pose, count in summary.pose_counts.items())
        else:
            lines.append("No poses recorded.")

        if summary.feedback_summary:
            for pose, messages in summary.feedback_summary.items():
                lines.append(f"{pose} feedback:")
                lines.extend(f"  - {m.message}" for m in messages)
        else:
            lines.append("No corrective feedback recorded.")
        return lines

    # --- drawing --------------------------------------------------------

    def lines(self) -> List[Tuple[str, float, Tuple[int, int, int]]]:
        """Text rows for the preview panel as ``(text, scale, color)``."""
        rows: List[Tuple[str, float, Tuple[int, int, int]]] = []
        if self.status:
            rows.append((self.status, PanelStyle.STATUS_SCALE, PanelStyle.TEXT))
        if self.confidence_text:
            rows.append((self.confidence_text, PanelStyle.BODY_SCALE, PanelStyle.TEXT))
        if self.feedback_text:
            color = PanelStyle.GOOD if self.feedback_level == "good" else PanelStyle.WARN
            rows.append((self.feedback_text, PanelStyle.BODY_SCALE, color))
        if self.angles_visible:
            for reading in self.angles:
                color = PanelStyle.MUTED if reading.low_visibility else PanelStyle.TEXT
                rows.append((reading.as_text(), PanelStyle.BODY_SCALE, color))
        return rows

    def draw(self, frame: np.ndarray) -> np.ndarray:
        rows = self.lines()
        if frame is None or not rows:
            return frame
        sizes = [cv2.getTextSize(text, PanelStyle.FONT, scale, 2)[0] for text, scale, _ in rows]
        panel_w = max(w for w, _ in sizes) + 2 * PanelStyle.MARGIN
        panel_h = sum(h + PanelStyle.LINE_GAP for _, h in sizes) + 2 * PanelStyle.MARGIN
        height, width = frame.shape[:2]
        panel_w, panel_h = min(panel_w, width), min(panel_h, height)

        roi = frame[0:panel_h, 0:panel_w]
        frame[0:panel_h, 0:panel_w] = cv2.addWeighted(
            np.zeros_like(roi), PanelStyle.PANEL_OPACITY, roi, 1.0 - PanelStyle.PANEL_OPACITY, 0
        )

        y = PanelStyle.MARGIN
        for (text, scale, color), (_, h) in zip(rows, sizes):
            y += h
            cv2.putText(frame, text, (PanelStyle.MARGIN, y), PanelStyle.FONT, scale, color, 2, cv2.LINE_AA)
            y += PanelStyle.LINE_GAP
        return frame
