from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Callable, Optional
from datetime import datetime, date
from app.api.deps import get_db, get_clock
from app.schemas.attendance import (
    ClockInRequest, ClockOutRequest, BreakRequest,
    AttendanceSessionResponse, AttendanceStatus, StatusResponse,
    BreakWindowResponse, BreakEndResponse,
    HistoryResponse, TodayResponse, AttendanceStats
)
from app.services import metrics
from app.services.attendance_service import attendance_service
from app.services.status_cache import status_cache

router = APIRouter(prefix="/attendance", tags=["Attendance"])


def build_status(session, break_used_today: bool, now: datetime) -> AttendanceStatus:
    """Attach the live figures to an open session."""
    elapsed = metrics.elapsed_net_seconds(session, now)
    data = AttendanceSessionResponse.model_validate(session).model_dump()
    return AttendanceStatus(
        **data,
        on_break=session.break_started_at is not None,
        break_used_today=break_used_today,
        elapsed_seconds=elapsed,
        elapsed_formatted=metrics.format_duration(elapsed),
        break_over_limit=attendance_service.is_over_limit(metrics.live_break_seconds(session, now))
    )


@router.post("/clock-in", response_model=AttendanceSessionResponse, status_code=status.HTTP_201_CREATED)
async def clock_in(
    data: ClockInRequest,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock)
):
    """Clock in (open a work session)."""
    session = attendance_service.clock_in(
        db, data.member_id, data.org_id, notes=data.notes, now=clock()
    )
    await status_cache.invalidate(data.org_id, data.member_id)
    return session


@router.post("/clock-out", response_model=AttendanceSessionResponse)
async def clock_out(
    data: ClockOutRequest,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock)
):
    """Clock out (close the open session and compute net time and overtime)."""
    session = attendance_service.clock_out(
        db,
        data.member_id,
        data.org_id,
        break_seconds_override=data.break_seconds_override,
        notes=data.notes,
        now=clock()
    )
    await status_cache.invalidate(data.org_id, data.member_id)
    return session


@router.post("/break/start", response_model=BreakWindowResponse)
async def start_break(
    data: BreakRequest,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock)
):
    """Start the day's break."""
    window = attendance_service.start_break(db, data.member_id, data.org_id, now=clock())
    await status_cache.invalidate(data.org_id, data.member_id)
    return BreakWindowResponse(
        session_id=window.session_id,
        started_at=window.started_at,
        break_used_today=window.break_used_today
    )


@router.post("/break/end", response_model=BreakEndResponse)
async def end_break(
    data: BreakRequest,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock)
):
    """End the current break."""
    tally = attendance_service.end_break(db, data.member_id, data.org_id, now=clock())
    await status_cache.invalidate(data.org_id, data.member_id)
    return BreakEndResponse(
        elapsed_seconds=tally.elapsed_seconds,
        break_seconds=tally.break_seconds,
        over_limit=tally.over_limit
    )


@router.get("/status", response_model=StatusResponse)
async def get_status(
    member_id: str = Query(..., min_length=1),
    org_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock)
):
    """Get current active session (if any) with live elapsed time."""
    now = clock()

    # Generation is read before the database so a payload read ahead of a
    # concurrent mutation is stored under a key no later request looks up
    generation, cached = await status_cache.get(org_id, member_id)
    if cached is not None:
        if cached["active"] is None:
            return StatusResponse(active=None)
        session = AttendanceSessionResponse.model_validate(cached["active"])
        return StatusResponse(active=build_status(session, cached["break_used_today"], now))

    session = attendance_service.get_active(db, member_id, org_id)
    if session is None:
        await status_cache.set(org_id, member_id, generation, {"active": None})
        return StatusResponse(active=None)

    break_used = attendance_service.break_used_today(db, member_id, org_id, session.work_date)
    await status_cache.set(org_id, member_id, generation, {
        "active": AttendanceSessionResponse.model_validate(session).model_dump(mode="json"),
        "break_used_today": break_used,
    })
    return StatusResponse(active=build_status(session, break_used, now))


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    member_id: str = Query(..., min_length=1),
    org_id: str = Query(..., min_length=1),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    include_open: bool = True,
    limit: int = Query(30, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """List sessions newest first, optionally within a date range."""
    sessions, total = attendance_service.list_history(
        db,
        member_id,
        org_id,
        start_date=start_date,
        end_date=end_date,
        include_open=include_open,
        skip=offset,
        limit=limit
    )
    return HistoryResponse(
        sessions=[AttendanceSessionResponse.model_validate(s) for s in sessions],
        total=total
    )


@router.get("/today", response_model=TodayResponse)
async def get_today(
    member_id: str = Query(..., min_length=1),
    org_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock)
):
    """Get today's sessions and total net working time."""
    now = clock()
    sessions, total_seconds = attendance_service.get_today(db, member_id, org_id, now=now)
    return TodayResponse(
        date=now.date(),
        sessions=[AttendanceSessionResponse.model_validate(s) for s in sessions],
        total_seconds=total_seconds,
        total_formatted=metrics.format_hours_minutes(total_seconds)
    )


@router.get("/stats", response_model=AttendanceStats)
async def get_attendance_stats(
    member_id: str = Query(..., min_length=1),
    org_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock)
):
    """Get attendance statistics over closed sessions."""
    stats = attendance_service.get_stats(db, member_id, org_id, now=clock())
    return AttendanceStats(**stats)
