"""Pydantic schemas for the inference service wire contract.

Responses are parsed leniently: a missing or malformed field falls back to a
safe default (no markers, zero confidence, no angles) instead of failing the
whole frame. Only a body that is not a JSON object is rejected.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from posefeed.core.errors import MalformedResponseError


def _finite_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


class HighlightMarker(BaseModel):
    """Named landmark flagged for correction, in normalized frame coordinates."""

    name: str
    x: float
    y: float

    @field_validator("x", "y", mode="before")
    @classmethod
    def _clamp_unit(cls, value: Any) -> float:
        out = _finite_float(value)
        if out is None:
            raise ValueError("coordinate must be a finite number")
        return min(1.0, max(0.0, out))


class FrameRequest(BaseModel):
    image: str
    session_id: str
    fps: int = 0


class SessionRequest(BaseModel):
    session_id: str


class InferenceResult(BaseModel):
    pose_text: str = ""
    confidence: float = 0.0
    feedback_text: Optional[str] = None
    has_pose: bool = False
    angles: Dict[str, float] = Field(default_factory=dict)
    visibility: Dict[str, float] = Field(default_factory=dict)
    highlight_joints: List[HighlightMarker] = Field(default_factory=list)
    error: Optional[str] = None

    @field_validator("pose_text", mode="before")
    @classmethod
    def _text_or_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("feedback_text", "error", mode="before")
    @classmethod
    def _text_or_none(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> float:
        out = _finite_float(value)
        return 0.0 if out is None else out

    @field_validator("has_pose", mode="before")
    @classmethod
    def _has_pose(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes"}
        return bool(value)

    @field_validator("angles", "visibility", mode="before")
    @classmethod
    def _numeric_mapping(cls, value: Any) -> Dict[str, float]:
        if not isinstance(value, dict):
            return {}
        out: Dict[str, float] = {}
        for key, raw in value.items():
            num = _finite_float(raw)
            if num is not None:
                out[str(key)] = num
        return out

    @field_validator("highlight_joints", mode="before")
    @classmethod
    def _markers(cls, value: Any) -> List[HighlightMarker]:
        if not isinstance(value, list):
            return []
        markers: List[HighlightMarker] = []
        for item in value:
            try:
                markers.append(HighlightMarker.model_validate(item))
            except ValidationError:
                continue
        return markers

    @classmethod
    def from_payload(cls, payload: Any) -> "InferenceResult":
        """Build a result from decoded JSON, rejecting non-object bodies."""
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"expected a JSON object, got {type(payload).__name__}")
        return cls.model_validate(payload)


class FeedbackMessage(BaseModel):
    message: str


class SessionSummary(BaseModel):
    duration_seconds: Optional[float] = None
    pose_counts: Dict[str, int] = Field(default_factory=dict)
    feedback_summary: Dict[str, List[FeedbackMessage]] = Field(default_factory=dict)
