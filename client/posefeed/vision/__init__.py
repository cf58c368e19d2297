"""Vision package exports."""

from .capture import CaptureSource, decode_data_uri, encode_data_uri
from .overlay import draw_highlight_markers
from .smoother import MarkerSmoother

__all__ = ["CaptureSource", "MarkerSmoother", "draw_highlight_markers", "encode_data_uri", "decode_data_uri"]
