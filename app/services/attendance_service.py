"""
Attendance Service - session ledger and break accounting.

Every mutation is a check-then-write inside one transaction. The open-session
partial unique index, the per-day break marker constraint and the session
version column make a lost race fail at commit; the transaction is rolled back
and the caller gets the same conflict error a sequential request would get.
"""
from dataclasses import dataclass
from datetime import datetime, date
from typing import List, Optional, Tuple
import logging

from sqlalchemy import extract
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import (
    AttendanceError,
    AlreadyClockedIn,
    NoActiveSession,
    BreakAlreadyUsedToday,
    NoBreakOpen,
    StorageUnavailable,
)
from app.models.attendance import AttendanceSession, DailyBreakMarker
from app.services import metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BreakWindow:
    """A break currently in progress on an open session."""
    session_id: int
    started_at: datetime
    break_used_today: bool = True


@dataclass(frozen=True)
class BreakTally:
    """Result of closing a break window."""
    elapsed_seconds: int
    break_seconds: int
    over_limit: bool


class AttendanceService:
    def __init__(self, break_limit_seconds: int = None, expected_daily_seconds: int = None):
        if break_limit_seconds is None:
            break_limit_seconds = settings.BREAK_LIMIT_SECONDS
        if expected_daily_seconds is None:
            expected_daily_seconds = settings.EXPECTED_DAILY_SECONDS
        self.break_limit_seconds = break_limit_seconds
        self.expected_daily_seconds = expected_daily_seconds

    # ------------------------------------------------------------------
    # Session ledger
    # ------------------------------------------------------------------

    def get_active(self, db: Session, member_id: str, org_id: str) -> Optional[AttendanceSession]:
        """Currently open session for a member within an organization."""
        return db.query(AttendanceSession).filter(
            AttendanceSession.member_id == member_id,
            AttendanceSession.org_id == org_id,
            AttendanceSession.time_out.is_(None)
        ).order_by(AttendanceSession.time_in.desc()).first()

    def clock_in(
        self,
        db: Session,
        member_id: str,
        org_id: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> AttendanceSession:
        """
        Open a new session.

        Raises:
            AlreadyClockedIn: an open session already exists, including one
                opened concurrently by another request.
            StorageUnavailable: the write failed; nothing was persisted.
        """
        now = now or datetime.now()

        if self.get_active(db, member_id, org_id):
            logger.warning(f"Clock in rejected: member {member_id} already clocked in (org {org_id})")
            raise AlreadyClockedIn()

        session = AttendanceSession(
            member_id=member_id,
            org_id=org_id,
            work_date=now.date(),
            time_in=now,
            break_seconds=0,
            overtime_seconds=0,
            over_break_seconds=0,
            notes=notes
        )
        db.add(session)
        self._commit(db, on_conflict=AlreadyClockedIn())
        db.refresh(session)

        logger.info(f"Clock in: member {member_id} (org {org_id}) session {session.id}")
        return session

    def clock_out(
        self,
        db: Session,
        member_id: str,
        org_id: str,
        break_seconds_override: Optional[int] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> AttendanceSession:
        """
        Close the open session and compute its final figures.

        A break still in progress is folded into the break total unless the
        caller supplies ``break_seconds_override``.

        Raises:
            NoActiveSession: nothing to close, or it was closed concurrently.
            StorageUnavailable: the write failed; the session is still open.
        """
        now = now or datetime.now()
        session = self._require_active(db, member_id, org_id)

        if break_seconds_override is not None:
            total_break = break_seconds_override
        else:
            total_break = metrics.live_break_seconds(session, now)

        gross = metrics.gross_seconds(session.time_in, now)
        net = metrics.net_seconds(gross, total_break)

        session.time_out = now
        session.break_seconds = total_break
        session.break_started_at = None
        session.net_duration_seconds = net
        session.over_break_seconds = metrics.over_break_seconds(total_break, self.break_limit_seconds)
        session.overtime_seconds = metrics.overtime_seconds(net, self.expected_daily_seconds)
        if notes:
            session.notes = notes

        self._commit(db, on_conflict=NoActiveSession())
        db.refresh(session)

        logger.info(
            f"Clock out: member {member_id} (org {org_id}) session {session.id}, "
            f"duration {net}s (break {total_break}s, overtime {session.overtime_seconds}s)"
        )
        return session

    def list_history(
        self,
        db: Session,
        member_id: str,
        org_id: str,
        start_date: date = None,
        end_date: date = None,
        include_open: bool = True,
        skip: int = 0,
        limit: int = 30
    ) -> Tuple[List[AttendanceSession], int]:
        """Sessions newest first, with the total matching count for pagination."""
        query = db.query(AttendanceSession).filter(
            AttendanceSession.member_id == member_id,
            AttendanceSession.org_id == org_id
        )

        if start_date:
            query = query.filter(AttendanceSession.work_date >= start_date)
        if end_date:
            query = query.filter(AttendanceSession.work_date <= end_date)
        if not include_open:
            query = query.filter(AttendanceSession.time_out.isnot(None))

        total = query.count()
        sessions = query.order_by(
            AttendanceSession.time_in.desc()
        ).offset(skip).limit(limit).all()

        return sessions, total

    # ------------------------------------------------------------------
    # Break accounting
    # ------------------------------------------------------------------

    def break_used_today(self, db: Session, member_id: str, org_id: str, day: date) -> bool:
        return db.query(DailyBreakMarker).filter(
            DailyBreakMarker.member_id == member_id,
            DailyBreakMarker.org_id == org_id,
            DailyBreakMarker.work_date == day
        ).first() is not None

    def start_break(
        self,
        db: Session,
        member_id: str,
        org_id: str,
        now: Optional[datetime] = None
    ) -> BreakWindow:
        """
        Open the day's break window.

        The quota is consumed here, at break start. Calling again while the
        break is still open returns the same window.

        Raises:
            NoActiveSession: the member is not clocked in.
            BreakAlreadyUsedToday: the day's break has already been taken.
        """
        now = now or datetime.now()
        session = self._require_active(db, member_id, org_id)

        if session.break_started_at is not None:
            return BreakWindow(session_id=session.id, started_at=session.break_started_at)

        # Quota day is the session's clock-in date, even if the break crosses midnight
        if self.break_used_today(db, member_id, org_id, session.work_date):
            logger.warning(f"Break rejected: member {member_id} already took a break on {session.work_date}")
            raise BreakAlreadyUsedToday()

        session.break_started_at = now
        db.add(DailyBreakMarker(
            member_id=member_id,
            org_id=org_id,
            work_date=session.work_date,
            session_id=session.id,
            used_at=now
        ))
        try:
            self._commit(db, on_conflict=BreakAlreadyUsedToday(), on_stale=NoActiveSession())
        except NoActiveSession:
            # The session row changed under us; report what the winning write did
            current = self.get_active(db, member_id, org_id)
            if current is None or current.time_out is not None:
                raise
            logger.warning(f"Break rejected: member {member_id} lost a concurrent break start")
            raise BreakAlreadyUsedToday()
        db.refresh(session)

        logger.info(f"Break start: member {member_id} (org {org_id}) session {session.id}")
        return BreakWindow(session_id=session.id, started_at=session.break_started_at)

    def end_break(
        self,
        db: Session,
        member_id: str,
        org_id: str,
        now: Optional[datetime] = None
    ) -> BreakTally:
        """
        Close the open break window.

        Returns the window's length along with the session's break total as
        committed, so callers never need to re-read a session that may have
        been closed in the meantime.

        Raises:
            NoActiveSession: the member is not clocked in.
            NoBreakOpen: no break is in progress.
        """
        now = now or datetime.now()
        session = self._require_active(db, member_id, org_id)

        if session.break_started_at is None:
            raise NoBreakOpen()

        elapsed = metrics.gross_seconds(session.break_started_at, now)
        session.break_seconds = (session.break_seconds or 0) + elapsed
        session.break_started_at = None

        self._commit(db, on_conflict=NoBreakOpen())
        db.refresh(session)

        over_limit = self.is_over_limit(session.break_seconds)
        if over_limit:
            logger.warning(
                f"Break over limit: member {member_id} (org {org_id}) "
                f"{session.break_seconds}s > {self.break_limit_seconds}s"
            )
        logger.info(f"Break end: member {member_id} (org {org_id}) session {session.id}, {elapsed}s")
        return BreakTally(
            elapsed_seconds=elapsed,
            break_seconds=session.break_seconds,
            over_limit=over_limit
        )

    def is_over_limit(self, break_seconds_so_far: int) -> bool:
        return metrics.is_over_limit(break_seconds_so_far, self.break_limit_seconds)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_today(
        self,
        db: Session,
        member_id: str,
        org_id: str,
        now: Optional[datetime] = None
    ) -> Tuple[List[AttendanceSession], int]:
        """Today's sessions in clock-in order and the running net total."""
        now = now or datetime.now()
        sessions = db.query(AttendanceSession).filter(
            AttendanceSession.member_id == member_id,
            AttendanceSession.org_id == org_id,
            AttendanceSession.work_date == now.date()
        ).order_by(AttendanceSession.time_in.asc()).all()

        total_seconds = sum(metrics.elapsed_net_seconds(s, now) for s in sessions)
        return sessions, total_seconds

    def get_stats(
        self,
        db: Session,
        member_id: str,
        org_id: str,
        now: Optional[datetime] = None
    ) -> dict:
        """Totals over closed sessions, overall and for the current month."""
        now = now or datetime.now()
        closed = db.query(AttendanceSession).filter(
            AttendanceSession.member_id == member_id,
            AttendanceSession.org_id == org_id,
            AttendanceSession.time_out.isnot(None)
        )

        all_sessions = closed.all()
        total_days = len({s.work_date for s in all_sessions})
        total_seconds = sum(s.net_duration_seconds or 0 for s in all_sessions)
        total_hours = total_seconds / 3600
        avg_hours = total_hours / total_days if total_days > 0 else 0

        month_sessions = closed.filter(
            extract('year', AttendanceSession.work_date) == now.year,
            extract('month', AttendanceSession.work_date) == now.month
        ).all()
        month_days = len({s.work_date for s in month_sessions})
        month_hours = sum(s.net_duration_seconds or 0 for s in month_sessions) / 3600

        return {
            "total_days": total_days,
            "total_hours": round(total_hours, 2),
            "average_hours_per_day": round(avg_hours, 2),
            "current_month_days": month_days,
            "current_month_hours": round(month_hours, 2),
            "total_overtime_seconds": sum(s.overtime_seconds or 0 for s in all_sessions),
            "total_over_break_seconds": sum(s.over_break_seconds or 0 for s in all_sessions),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_active(self, db: Session, member_id: str, org_id: str) -> AttendanceSession:
        session = self.get_active(db, member_id, org_id)
        if session is None:
            logger.warning(f"No active session for member {member_id} (org {org_id})")
            raise NoActiveSession()
        return session

    def _commit(
        self,
        db: Session,
        on_conflict: AttendanceError,
        on_stale: AttendanceError = None
    ) -> None:
        """Commit, turning a lost race into a conflict error and rolling back on any failure."""
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Concurrent write rejected: {on_conflict.code}")
            raise on_conflict from e
        except StaleDataError as e:
            db.rollback()
            conflict = on_stale or on_conflict
            logger.warning(f"Concurrent write rejected: {conflict.code}")
            raise conflict from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error writing attendance record: {e}")
            raise StorageUnavailable() from e


# Global attendance service instance
attendance_service = AttendanceService()
