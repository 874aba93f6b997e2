"""Database setup for local client state using SQLModel"""

from typing import Optional
from sqlmodel import SQLModel, create_engine, Session, select
from sqlalchemy.engine import Engine
import os

from filedrive.config import settings
from filedrive.utils.logger import get_logger
from filedrive.models.local_state import LocalStateEntry  # noqa: F401 - registers the table

logger = get_logger(__name__)


class DatabaseService:
    """Database service for the local key-value state"""

    def __init__(self):
        self.engine: Optional[Engine] = None

    def initialize(self, database_url: Optional[str] = None):
        """Initialize database connection and create tables"""
        try:
            database_url = database_url or settings.local_state_url
            logger.debug(f"Raw database URL from settings: {database_url}")

            if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
                # Relative or absolute: sqlite:///./data/filedrive.db
                path = database_url.replace("sqlite:///", "", 1)
                db_dir = os.path.dirname(path)
                if db_dir and not os.path.exists(db_dir):
                    os.makedirs(db_dir, exist_ok=True)
                    logger.debug(f"Created database directory: {db_dir}")

            if database_url.startswith("sqlite:///"):
                self.engine = create_engine(
                    database_url,
                    connect_args={"check_same_thread": False},
                    echo=False,
                )
            else:
                self.engine = create_engine(database_url, echo=False, pool_pre_ping=True)

            SQLModel.metadata.create_all(self.engine)

            if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
                with self.engine.connect() as conn:
                    conn.exec_driver_sql("PRAGMA journal_mode=WAL")
                    conn.exec_driver_sql("PRAGMA synchronous=NORMAL")
                    conn.commit()

            logger.debug("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def get_session(self) -> Session:
        """Get database session"""
        if not self.engine:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return Session(self.engine)

    async def health_check(self) -> bool:
        """Check database health"""
        try:
            with self.get_session() as session:
                session.exec(select(1)).first()
                return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self):
        """Close database connection"""
        if self.engine:
            self.engine.dispose()
            self.engine = None
            logger.debug("Database connection closed")


# Global database instance
database = DatabaseService()
