from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime, date


class MemberRef(BaseModel):
    member_id: str = Field(..., min_length=1, max_length=64)
    org_id: str = Field(..., min_length=1, max_length=64)


class ClockInRequest(MemberRef):
    notes: Optional[str] = Field(None, max_length=2000)


class ClockOutRequest(MemberRef):
    # Total break seconds tracked by the client, finalized atomically with clock-out
    break_seconds_override: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)


class BreakRequest(MemberRef):
    pass


class AttendanceSessionResponse(BaseModel):
    id: int
    member_id: str
    org_id: str
    work_date: date
    time_in: datetime
    time_out: Optional[datetime] = None
    break_seconds: int
    break_started_at: Optional[datetime] = None
    net_duration_seconds: Optional[int] = None
    overtime_seconds: int
    over_break_seconds: int
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class AttendanceStatus(AttendanceSessionResponse):
    """Open session plus the live figures a client needs to resync its timer."""
    on_break: bool
    break_used_today: bool
    elapsed_seconds: int
    elapsed_formatted: str
    break_over_limit: bool


class StatusResponse(BaseModel):
    active: Optional[AttendanceStatus] = None


class BreakWindowResponse(BaseModel):
    session_id: int
    started_at: datetime
    break_used_today: bool


class BreakEndResponse(BaseModel):
    elapsed_seconds: int
    break_seconds: int
    over_limit: bool


class HistoryResponse(BaseModel):
    sessions: List[AttendanceSessionResponse]
    total: int


class TodayResponse(BaseModel):
    date: date
    sessions: List[AttendanceSessionResponse]
    total_seconds: int
    total_formatted: str


class AttendanceStats(BaseModel):
    total_days: int
    total_hours: float
    average_hours_per_day: float
    current_month_days: int
    current_month_hours: float
    total_overtime_seconds: int
    total_over_break_seconds: int
