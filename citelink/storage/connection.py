"""
Database connection management.

Provides the SQLAlchemy engine, session factory and a transactional
session scope.

Dependencies: sqlalchemy
System role: Database connection lifecycle management
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import StorageConfig
from .models import Base


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(config: Optional[StorageConfig] = None) -> Engine:
    """
    Create the SQLAlchemy engine.

    In-memory SQLite shares one connection across threads (StaticPool) so
    every session sees the same database.

    Args:
        config: Storage settings; read from the environment when omitted

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    config = config if config is not None else StorageConfig()
    url = config.database_url

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=config.echo_sql, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(url, echo=config.echo_sql, pool_pre_ping=True)


def get_session_factory(engine: Engine) -> sessionmaker:
    """
    Session factory with explicit transaction control.

    expire_on_commit=False keeps loaded rows readable after commit.
    """
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """
    One transaction: commit on success, rollback on any error.

    Usage:
        with session_scope(factory) as session:
            session.add(obj)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
