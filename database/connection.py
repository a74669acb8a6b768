"""
Database connection and session management.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from contextlib import contextmanager
from typing import Generator

from database.models import Base
from core.logger import get_logger

logger = get_logger(__name__)


class Database:
    """
    Database connection manager.

    This is the storage handle passed explicitly to services; there is no
    module-level instance.
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        sqlite_busy_timeout: float = 30.0
    ):
        """
        Initialize database connection.

        Args:
            database_url: PostgreSQL (or SQLite) connection URL
            pool_size: Number of connections to maintain
            max_overflow: Maximum overflow connections
            sqlite_busy_timeout: Seconds a SQLite writer waits for the database lock
        """
        self.database_url = database_url
        self.is_sqlite = database_url.startswith("sqlite")

        engine_kwargs = {
            "poolclass": QueuePool,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_pre_ping": True,  # Verify connections before using
            "echo": False,
        }
        if self.is_sqlite:
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": sqlite_busy_timeout,
            }

        self.engine = create_engine(database_url, **engine_kwargs)
        if self.is_sqlite:
            self._serialize_sqlite_transactions()

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,  # Returned records stay readable after the session closes
            bind=self.engine
        )
        logger.info(f"Database engine initialized: {database_url.split('@')[1] if '@' in database_url else database_url}")

    def _serialize_sqlite_transactions(self):
        """
        Make every SQLite transaction take the write lock up front (BEGIN IMMEDIATE).

        pysqlite defers BEGIN until the first write, so two readers could both
        see the same download counter; with the lock taken at BEGIN the
        read-increment-write sequence is serialized and concurrent writers wait
        on the busy timeout instead.
        """
        @event.listens_for(self.engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(self.engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    @property
    def supports_row_locks(self) -> bool:
        """True when SELECT ... FOR UPDATE is meaningful on this backend."""
        return not self.is_sqlite

    def create_tables(self):
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self):
        """Drop all database tables (use with caution!)."""
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("All database tables dropped")

    def dispose(self):
        """Close pooled connections."""
        self.engine.dispose()

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Get database session context manager.

        Commits on success, rolls back on any exception.

        Usage:
            with database.get_session() as session:
                # Use session
                pass
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
