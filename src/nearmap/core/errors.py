"""
Error taxonomy.

- `LocationError`: the consumer's own location could not be acquired. Callers
  degrade to distance-free ranking instead of halting.
- `ViewportApplyFailure`: the map renderer never became ready (or rejected the
  update). It is logged and swallowed by the viewport controller.

A missing entity coordinate is not an error at all; it is the `UNKNOWN`
location precision on the resolved entity.
"""

from __future__ import annotations

from enum import Enum


class LocationErrorKind(str, Enum):
    DENIED = "denied"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    UNAVAILABLE = "unavailable"


class LocationError(Exception):
    """Raised when a location sensor cannot produce a coordinate."""

    def __init__(self, kind: LocationErrorKind, message: str | None = None):
        self.kind = kind
        super().__init__(message or kind.value)


class ViewportApplyFailure(Exception):
    """A programmatic viewport change could not be applied."""

    def __init__(self, update_id: int, reason: str):
        self.update_id = update_id
        self.reason = reason
        super().__init__(f"viewport update {update_id} not applied: {reason}")
