"""Attendance errors.

Every error is either a state conflict reported to the caller as-is, or a
transient storage failure the caller may retry.
"""
from fastapi import status


class AttendanceError(Exception):
    """Base class for attendance state conflicts."""

    status_code = status.HTTP_409_CONFLICT
    code = "attendance_error"
    default_message = "Attendance operation failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AlreadyClockedIn(AttendanceError):
    code = "already_clocked_in"
    default_message = "Already clocked in. Please clock out first."


class NoActiveSession(AttendanceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "no_active_session"
    default_message = "No active clock-in found. Please clock in first."


class BreakAlreadyUsedToday(AttendanceError):
    code = "break_already_used_today"
    default_message = "You can only take 1 break per day"


class NoBreakOpen(AttendanceError):
    code = "no_break_open"
    default_message = "No break in progress"


class StorageUnavailable(AttendanceError):
    """Transient persistence failure; nothing was written."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "storage_unavailable"
    default_message = "Storage temporarily unavailable, please retry"
