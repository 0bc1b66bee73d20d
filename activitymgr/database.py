"""
Storage access layer.

Wraps a SQLAlchemy engine and session factory. Every model manager
operation runs inside exactly one `Database.transaction()` block:
commit on success, rollback on any failure, session always closed.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from activitymgr import models  # noqa: F401  (registers the tables)
from activitymgr.config import get_settings
from activitymgr.exceptions import StorageError
from activitymgr.logging_config import get_logger

logger = get_logger(__name__)


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_timeout": 30,
            "pool_recycle": 1800,  # Recycle connections after 30 min
            "pool_pre_ping": True,
        }
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # A single shared connection, otherwise each session sees an empty database
        kwargs["poolclass"] = StaticPool
    return kwargs


class Database:
    """Engine + session factory for one backing store."""

    def __init__(self, url: str | None = None, echo: bool | None = None):
        settings = get_settings()
        self.url = url or settings.database_url
        self.engine = create_engine(
            self.url,
            echo=settings.debug if echo is None else echo,
            **_engine_kwargs(self.url),
        )
        self.session_maker = sessionmaker(
            self.engine,
            class_=Session,
            expire_on_commit=False,
        )

    def tables_exist(self) -> bool:
        """True when every model table is present."""
        existing = set(inspect(self.engine).get_table_names())
        return set(SQLModel.metadata.tables) <= existing

    def create_tables(self) -> None:
        logger.info("Creating tables")
        SQLModel.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        SQLModel.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Scoped transaction.

        Usage:
            with database.transaction() as session:
                session.add(task)
            # Commits on success, rolls back on any exception

        Raises:
            StorageError: wrapping any SQLAlchemy failure (after rollback)
            Any other exception raised within the block (after rollback)
        """
        session = self.session_maker()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception(f"Storage failure, transaction rolled back: {e}")
            raise StorageError() from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
