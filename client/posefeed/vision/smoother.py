"""Temporal smoothing for highlight markers returned by the inference service.

Each marker is matched by name against the previously displayed set:

- new name: adopted as-is
- moved less than ``snap_radius_px`` (in pixels of the current surface): kept
  where it was, so detector noise produces no visible motion
- moved further: blended towards the new position, ``alpha * new + (1 - alpha) * prev``

Markers missing from an update disappear immediately, and an empty update
clears everything. Positions are stored normalized; pixel conversion only
happens for the distance check, using the surface size recorded by the
scheduler at capture time, so a resized surface never invalidates the state.
"""
from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from posefeed.api.schemas import HighlightMarker

DEFAULT_ALPHA = 0.3
DEFAULT_SNAP_RADIUS_PX = 25.0


class MarkerSmoother:
    """Holds the stabilized marker state between frames."""

    def __init__(self, alpha: float = DEFAULT_ALPHA, snap_radius_px: float = DEFAULT_SNAP_RADIUS_PX) -> None:
        self.alpha = float(alpha)
        self.snap_radius_px = float(snap_radius_px)
        self.surface_size: Optional[Tuple[int, int]] = None
        self._state: List[HighlightMarker] = []

    @property
    def markers(self) -> List[HighlightMarker]:
        return [m.model_copy() for m in self._state]

    def reset(self) -> None:
        self._state = []

    def update(self, new_markers: Sequence[HighlightMarker]) -> List[HighlightMarker]:
        """Replace the state with the smoothed version of ``new_markers``."""
        if not new_markers or not self.surface_size or min(self.surface_size) <= 0:
            self._state = []
            return self.markers
        width, height = self.surface_size
        updated: List[HighlightMarker] = []
        seen: set[str] = set()
        for marker in new_markers:
            # one entry per name; the service's first occurrence wins
            if marker.name in seen:
                continue
            seen.add(marker.name)
            prev = next((p for p in self._state if p.name == marker.name), None)
            if prev is None:
                updated.append(marker.model_copy())
                continue
            dist = math.hypot((marker.x - prev.x) * width, (marker.y - prev.y) * height)
            if dist < self.snap_radius_px:
                updated.append(prev.model_copy())
                continue
            updated.append(
                HighlightMarker(
                    name=marker.name,
                    x=self.alpha * marker.x + (1.0 - self.alpha) * prev.x,
                    y=self.alpha * marker.y + (1.0 - self.alpha) * prev.y,
                )
            )
        self._state = updated
        return self.markers
