from datetime import datetime
from typing import Callable

from app.core.database import get_db

__all__ = ["get_db", "get_clock"]


def get_clock() -> Callable[[], datetime]:
    """Clock used to timestamp attendance events."""
    return datetime.now
