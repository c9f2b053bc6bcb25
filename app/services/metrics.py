"""
Time accounting helpers.

Pure functions over seconds and timestamps. They accept anything shaped like
an attendance session (ORM row or response schema), so cached payloads can be
evaluated the same way as database rows.
"""
from datetime import datetime
from typing import Optional

from app.core.config import settings


def gross_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds elapsed between two timestamps, never negative."""
    return max(0, int((end - start).total_seconds()))


def net_seconds(gross: int, break_seconds: int) -> int:
    return max(0, gross - break_seconds)


def over_break_seconds(break_seconds: int, limit: Optional[int] = None) -> int:
    if limit is None:
        limit = settings.BREAK_LIMIT_SECONDS
    return max(0, break_seconds - limit)


def overtime_seconds(net: int, expected: Optional[int] = None) -> int:
    if expected is None:
        expected = settings.EXPECTED_DAILY_SECONDS
    return max(0, net - expected)


def is_over_limit(break_seconds_so_far: int, limit: Optional[int] = None) -> bool:
    """True once accumulated break time exceeds the daily break limit."""
    if limit is None:
        limit = settings.BREAK_LIMIT_SECONDS
    return break_seconds_so_far > limit


def live_break_seconds(session, now: datetime) -> int:
    """Accumulated break seconds including the part of a break still in progress."""
    total = session.break_seconds or 0
    if session.break_started_at is not None:
        total += gross_seconds(session.break_started_at, now)
    return total


def elapsed_net_seconds(session, now: datetime) -> int:
    """
    Net working seconds for display.

    While on break the figure is frozen at the moment the break started.
    Closed sessions report their stored net duration.
    """
    if session.time_out is not None:
        return session.net_duration_seconds or 0

    reference = session.break_started_at or now
    return net_seconds(gross_seconds(session.time_in, reference), session.break_seconds or 0)


def format_duration(seconds: int) -> str:
    """Format seconds as HH:MM:SS."""
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_hours_minutes(seconds: int) -> str:
    """Format seconds as '7h 40m', or '40m' below one hour."""
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
