"""Relational store access: SQLAlchemy engine, sessions, and natural-key upserts."""

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, select, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import Settings, configure_logging


class Base(DeclarativeBase):
    pass


class Database:
    """Owns the engine and session factory for one process."""

    def __init__(self, settings: Settings, url: str | None = None):
        self.log = configure_logging("database", settings.log_level)
        self.url = url or settings.database_url
        connect_args = {}
        if self.url.startswith("sqlite"):
            # Health sub-queries run on worker threads.
            connect_args["check_same_thread"] = False
        self.engine = create_engine(
            self.url,
            echo=settings.database_echo,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Transactional scope: commit on success, roll back and re-raise on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self):
        # Import for side effects: registers every table on Base.metadata.
        from storage import models, source_tables  # noqa: F401

        Base.metadata.create_all(self.engine)
        self.log.info("schema_ready", tables=sorted(Base.metadata.tables))

    def healthcheck(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            self.log.warning("database_unreachable", error=str(e))
            return False

    def dispose(self):
        self.engine.dispose()


def upsert(session: Session, model: type[Base], key: dict[str, Any], values: dict[str, Any]):
    """Insert or overwrite the row identified by its natural key.

    NULL key columns match with IS NULL, so an absent dimension identifies
    the same row on every run.
    """
    stmt = select(model)
    for column, value in key.items():
        attr = getattr(model, column)
        stmt = stmt.where(attr.is_(None) if value is None else attr == value)
    row = session.execute(stmt).scalar_one_or_none()
    if row is None:
        row = model(**key, **values)
        session.add(row)
    else:
        for column, value in values.items():
            setattr(row, column, value)
    return row
