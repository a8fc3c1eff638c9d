"""Error taxonomy for journey operations.

Every orchestrator operation reports failures to its immediate caller with
one of these. The HTTP layer maps them to status codes; the presentation
layer uses the distinction between ValidationError ("fix your input") and
TransportError / MalformedResponseError ("try again").
"""

from __future__ import annotations


class JourneyError(Exception):
    """Base class for all journey errors."""


class ValidationError(JourneyError):
    """Local input is incomplete or invalid. No backend call was attempted."""

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


class TransportError(JourneyError):
    """The backend could not be reached, failed, timed out, or sent an undecodable body."""


class MalformedResponseError(JourneyError):
    """The backend answered, but the content is not a valid structured update."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class BusyError(JourneyError):
    """Another update is already in flight. Nothing was attempted."""


class PhaseError(JourneyError):
    """The operation is not valid in the journey's current phase."""


class StaleUpdateError(JourneyError):
    """The backend result arrived after a newer update or a reset; it was discarded."""
