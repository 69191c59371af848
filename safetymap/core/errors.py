"""
errors.py — Domain exception taxonomy.

Services raise these; main.py registers a single handler that turns them
into the usual FastAPI error body:

    { "detail": "..." }

  InvalidCoordinate  422  latitude / longitude out of range (raised before encoding)
  RecordNotFound     404  vote / delete / focus target missing
  Unauthorized       403  delete attempted by someone other than the author
  StoreUnavailable   503  query or mutation failed; callers should retry with backoff

GeoCodec and the reconciler never raise on well-formed input.
"""

from typing import Optional


class SafetyMapError(Exception):
    """Base class for every error the core surfaces to the view layer."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidCoordinate(SafetyMapError, ValueError):
    status_code = 422

    def __init__(self, latitude: float, longitude: float) -> None:
        self.latitude = latitude
        self.longitude = longitude
        super().__init__(
            f"Invalid coordinate ({latitude}, {longitude}): "
            "latitude must be in [-90, 90] and longitude in [-180, 180]"
        )


class RecordNotFound(SafetyMapError):
    status_code = 404

    def __init__(self, record_id: str, kind: str = "Report") -> None:
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class Unauthorized(SafetyMapError):
    status_code = 403

    def __init__(self, message: str = "You can only delete your own reports") -> None:
        super().__init__(message)


class StoreUnavailable(SafetyMapError):
    """
    The external store failed. Carries the underlying exception as
    ``cause`` (and as ``__cause__`` when raised with ``from``).
    """

    status_code = 503

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f"Report store unavailable during {operation}"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)
