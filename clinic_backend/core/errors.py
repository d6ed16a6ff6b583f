"""Errors raised by the scheduling layer.

Each error carries the HTTP status the API boundary should answer with, so
routes can translate them without knowing every subclass.
"""

from fastapi import HTTPException, status


class SchedulingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ScheduleValidationError(SchedulingError):
    """Malformed availability window or a start outside the slot grid."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDenied(SchedulingError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(SchedulingError):
    """The requested slot is no longer free."""

    status_code = status.HTTP_409_CONFLICT


class InvalidStateTransition(SchedulingError):
    status_code = status.HTTP_409_CONFLICT


def to_http_exception(exc: SchedulingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)
