"""
Database connection and session management
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from .models import Base
import logging

logger = logging.getLogger(__name__)

# Database configuration
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///data/reports.db')


def create_db_engine(database_url: str = DATABASE_URL):
    """Create an engine with the settings each backend needs"""
    if database_url.startswith('sqlite'):
        # SQLite specific settings
        in_memory = database_url in ('sqlite://', 'sqlite:///:memory:')
        if not in_memory:
            # Ensure data directory exists for SQLite
            db_dir = os.path.dirname(database_url[len('sqlite:///'):])
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
            # pooled connections, queried from the fetcher's worker threads
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                echo=False
            )
        # the in-memory database lives on a single shared connection
        return create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={
                "check_same_thread": False,
            },
            echo=False  # Set to True for SQL debugging
        )
    # PostgreSQL or other databases
    return create_engine(database_url, echo=False)


_engine = None
_session_factory = None


def get_engine():
    """Get database engine, creating it on first use"""
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def get_session_factory():
    """Get the session factory bound to the default engine"""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


def init_database(engine=None, force_recreate=False):
    """Initialize database tables"""
    engine = engine or get_engine()
    try:
        if force_recreate:
            Base.metadata.drop_all(bind=engine)
            logger.info("Dropped existing database tables")

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise e


def close_session(session):
    """Close database session"""
    try:
        session.close()
    except Exception as e:
        logger.error(f"Error closing session: {e}")


# Context manager for database sessions
class DatabaseSession:
    def __init__(self, session_factory=None):
        self.session_factory = session_factory or get_session_factory()
        self.session = None

    def __enter__(self):
        self.session = self.session_factory()
        return self.session

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            try:
                if exc_type:
                    self.session.rollback()
                else:
                    self.session.commit()
            except Exception:
                self.session.rollback()
                raise
            finally:
                close_session(self.session)
