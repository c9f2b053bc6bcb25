"""
Script to initialize the attendance database tables.
Run this after setting up the database for the first time.
"""
from sqlalchemy.exc import SQLAlchemyError
from app.core.database import engine, Base
from app.models import AttendanceSession, DailyBreakMarker  # noqa: F401
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_db():
    """Initialize database tables."""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("✅ Database tables created successfully!")
        for table in Base.metadata.sorted_tables:
            logger.info(f"   - {table.name}")

    except SQLAlchemyError as e:
        logger.error(f"❌ Error creating database tables: {e}")
        raise


if __name__ == "__main__":
    init_db()
