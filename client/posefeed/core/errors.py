"""Client error taxonomy.

Only capture acquisition failures are fatal to a session; everything raised
while a single capture cycle is running is caught by the scheduler and logged.
"""
from __future__ import annotations


class PoseFeedError(Exception):
    """Base class for client errors."""


class CaptureUnavailableError(PoseFeedError):
    """Camera could not be opened (missing device, permission denied)."""


class TransportError(PoseFeedError):
    """Network, timeout or decoding failure on one exchange with the service."""


class MalformedResponseError(TransportError):
    """Service replied with JSON that is not an object."""
