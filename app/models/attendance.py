from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Text, ForeignKey,
    Index, UniqueConstraint, CheckConstraint, text
)
from datetime import datetime
from app.core.database import Base


class AttendanceSession(Base):
    """One continuous clock-in to clock-out work period."""

    __tablename__ = "attendance_sessions"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(String(64), nullable=False, index=True)
    org_id = Column(String(64), nullable=False, index=True)
    work_date = Column(Date, nullable=False)  # calendar date of time_in
    time_in = Column(DateTime, nullable=False)
    time_out = Column(DateTime, nullable=True)  # NULL while open

    # Break accounting
    break_seconds = Column(Integer, nullable=False, default=0)
    break_started_at = Column(DateTime, nullable=True)  # open break window

    # Derived at clock-out
    net_duration_seconds = Column(Integer, nullable=True)
    overtime_seconds = Column(Integer, nullable=False, default=0)
    over_break_seconds = Column(Integer, nullable=False, default=0)

    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        # At most one open session per member within an organization
        Index(
            "uq_attendance_sessions_open",
            "member_id",
            "org_id",
            unique=True,
            sqlite_where=text("time_out IS NULL"),
            postgresql_where=text("time_out IS NULL"),
        ),
        Index("ix_attendance_sessions_member_day", "member_id", "org_id", "work_date"),
        CheckConstraint("break_seconds >= 0", name="ck_attendance_sessions_break_seconds"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        state = "open" if self.is_open else "closed"
        return f"<AttendanceSession {self.id} {self.member_id}@{self.org_id} ({state})>"

    @property
    def is_open(self) -> bool:
        return self.time_out is None

    @property
    def on_break(self) -> bool:
        return self.break_started_at is not None


class DailyBreakMarker(Base):
    """Records that a member's break for a calendar day has been taken."""

    __tablename__ = "daily_break_markers"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(String(64), nullable=False)
    org_id = Column(String(64), nullable=False)
    work_date = Column(Date, nullable=False)
    session_id = Column(Integer, ForeignKey("attendance_sessions.id"), nullable=False, index=True)
    used_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        UniqueConstraint("member_id", "org_id", "work_date", name="uq_daily_break_markers_member_day"),
    )
