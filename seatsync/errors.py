from __future__ import annotations


class SeatSyncError(Exception):
    """Base class for failures that carry a user-facing message."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SeatSyncError):
    """Malformed or duplicate input."""

    status_code = 400


class NotFoundError(SeatSyncError):
    status_code = 404


class ConflictError(SeatSyncError):
    """The operation would break a containment or history invariant."""

    status_code = 409


class FormatError(SeatSyncError):
    """The uploaded file cannot be read as an import table."""

    status_code = 400


class InternalError(SeatSyncError):
    status_code = 500
