from app.schemas.attendance import (
    ClockInRequest, ClockOutRequest, BreakRequest,
    AttendanceSessionResponse, AttendanceStatus, StatusResponse,
    BreakWindowResponse, BreakEndResponse,
    HistoryResponse, TodayResponse, AttendanceStats
)

__all__ = [
    "ClockInRequest", "ClockOutRequest", "BreakRequest",
    "AttendanceSessionResponse", "AttendanceStatus", "StatusResponse",
    "BreakWindowResponse", "BreakEndResponse",
    "HistoryResponse", "TodayResponse", "AttendanceStats",
]
