from app.models.attendance import AttendanceSession, DailyBreakMarker

__all__ = [
    "AttendanceSession",
    "DailyBreakMarker",
]
