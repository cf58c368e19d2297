"""Draw stabilized highlight markers onto a BGR frame.

The markers are painted on the surface before it is encoded, so they are part
of the transmitted frame as well as the local preview.
"""
from __future__ import annotations

from typing import Sequence

import cv2
import numpy as np

from posefeed.api.schemas import HighlightMarker

ARROW_LENGTH = 45
ARROW_HEAD = 10
RING_RADIUS = 14
DOT_RADIUS = 7
STROKE = 5

# BGR, soft red
STROKE_COLOR = (113, 113, 248)
FILL_COLOR = (68, 68, 239)


def draw_highlight_markers(frame: np.ndarray, markers: Sequence[HighlightMarker]) -> np.ndarray:
    """Draw a downward arrow, a ring and a dot on every marker. Modifies ``frame`` in place."""
    if frame is None or not markers:
        return frame
    height, width = frame.shape[:2]
    for marker in markers:
        x = int(round(marker.x * width))
        y = int(round(marker.y * height))

        cv2.line(frame, (x, y - ARROW_LENGTH), (x, y), STROKE_COLOR, STROKE, cv2.LINE_AA)
        head = np.array(
            [[x, y], [x - ARROW_HEAD, y - ARROW_HEAD], [x + ARROW_HEAD, y - ARROW_HEAD]],
            dtype=np.int32,
        )
        cv2.fillConvexPoly(frame, head, FILL_COLOR, cv2.LINE_AA)
        cv2.circle(frame, (x, y), RING_RADIUS, STROKE_COLOR, STROKE, cv2.LINE_AA)
        cv2.circle(frame, (x, y), DOT_RADIUS, FILL_COLOR, -1, cv2.LINE_AA)
    return frame
