"""
Database connection management for MediaDrop.

A DatabaseManager owns one engine and session factory. The application
factory and the CLI build one and hand it to the services that need it.
"""

import logging
import os
from typing import Optional, Dict, Any
from contextlib import contextmanager
from sqlalchemy import create_engine, Engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Engine, session factory and schema helpers for one database."""

    def __init__(self, url: str, echo: bool = False,
                 pool_config: Optional[Dict[str, Any]] = None):
        self.url = url
        self.engine = _create_engine(url, echo, pool_config or {})
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info(f"Database configured: {self.engine.url.render_as_string(hide_password=True)} "
                    f"({_get_pool_info(self.engine)})")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'DatabaseManager':
        """
        Build a manager from the ``database`` config section.

        ``DATABASE_URL`` in the environment takes precedence over the
        configured URL.
        """
        db_config = config.get('database', {})
        url = os.getenv('DATABASE_URL') or db_config.get('url', 'sqlite:///mediadrop.db')
        manager = cls(url, echo=db_config.get('echo', False),
                      pool_config=db_config.get('connection_pool', {}))
        if db_config.get('auto_init', True):
            manager.init_database()
        return manager

    @contextmanager
    def session_scope(self):
        """
        Context manager for database sessions.

        Commits on success, rolls back on error and always closes.

        Usage:
            with db.session_scope() as session:
                session.add(album)
        """
        session: Session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.debug(f"Database session rolled back: {e}")
            raise
        finally:
            session.close()

    def init_database(self) -> None:
        """Initialize database schema by creating all tables."""
        Base.metadata.create_all(self.engine)
        logger.info("Database schema initialized successfully")

    def is_available(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database unavailable: {e}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()


def _create_engine(url: str, echo: bool, pool_config: Dict[str, Any]) -> Engine:
    if url.startswith('sqlite'):
        connect_args = {'check_same_thread': False}
        if url in ('sqlite://', 'sqlite:///:memory:'):
            # A single shared connection keeps the in-memory database alive
            return create_engine(url, echo=echo, connect_args=connect_args,
                                 poolclass=StaticPool)
        return create_engine(url, echo=echo, connect_args=connect_args)

    return create_engine(
        url,
        echo=echo,
        pool_size=pool_config.get('pool_size', 5),
        max_overflow=pool_config.get('max_overflow', 10),
        pool_recycle=pool_config.get('pool_recycle', 3600),
        pool_pre_ping=True,
    )


def _get_pool_info(engine: Engine) -> str:
    """Human-readable pool configuration."""
    pool = engine.pool
    pool_type = pool.__class__.__name__

    if hasattr(pool, '_pool') and hasattr(pool, 'size'):
        return f"{pool_type} (size: {pool.size()}, max_overflow: {getattr(pool, '_max_overflow', 'N/A')})"
    return pool_type


@event.listens_for(Engine, "connect")
def set_database_optimizations(dbapi_connection, connection_record):
    """Per-connection settings for SQLite and PostgreSQL."""
    module = type(dbapi_connection).__module__
    cursor = dbapi_connection.cursor()
    try:
        if module.startswith('sqlite3'):
            # Enforce ON DELETE clauses and wait for concurrent writers
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
        elif hasattr(dbapi_connection, 'server_version'):
            cursor.execute("SET statement_timeout = '30s'")
            cursor.execute("SET lock_timeout = '10s'")
    except Exception as e:
        logger.debug(f"Could not set connection options: {e}")
    finally:
        cursor.close()
