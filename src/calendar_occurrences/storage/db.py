"""Engine and session factory for the relational store."""

import logging

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..utils.exceptions import StorageUnavailableError
from .schema import Base

logger = logging.getLogger(__name__)


def create_store_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    In-memory SQLite shares one connection so every session sees the same data.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, echo=echo)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    try:
        Base.metadata.create_all(engine)
    except SQLAlchemyError as e:
        raise StorageUnavailableError(f"Failed to initialize database: {e}") from e
    logger.info("Database schema ready")
