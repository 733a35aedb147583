import logging
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlmodel import SQLModel, Session, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .config import get_database_url


logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_engine_url: Optional[str] = None


def get_engine() -> Engine:
    """Return a SQLModel engine, creating it if needed."""
    global _engine, _engine_url
    database_url = get_database_url()
    if _engine is None or database_url != _engine_url:
        connect_args = {}
        engine_kwargs = {"echo": False}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if database_url == "sqlite://":
                engine_kwargs["poolclass"] = StaticPool
        _engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)
        _engine_url = database_url
    return _engine


def init_db(engine: Optional[Engine] = None) -> None:
    """Optionally create all tables in dev environments.

    In production, rely on Alembic migrations. Enable this dev helper by setting
    SQLMODEL_CREATE_ALL=1 (or 'true'). An explicitly passed engine gets any
    missing tables created; existing tables and rows are left alone.
    """
    from . import models  # noqa: F401  register tables on the metadata

    if engine is not None:
        SQLModel.metadata.create_all(engine)
        return

    database_url = get_database_url()
    engine = get_engine()
    if database_url == "sqlite://":
        # In-memory sqlite for tests/dev: reset schema each init for isolation
        SQLModel.metadata.drop_all(engine)
        SQLModel.metadata.create_all(engine)
        return
    if os.getenv("SQLMODEL_CREATE_ALL", "0") in ("1", "true", "TRUE"):
        SQLModel.metadata.create_all(engine)


@contextmanager
def transaction(engine: Engine, session: Optional[Session] = None) -> Iterator[Session]:
    """Yield a session whose work commits as one unit.

    When ``session`` is given the caller owns the transaction: nothing is
    committed or rolled back here.
    """
    if session is not None:
        yield session
        return
    with Session(engine, expire_on_commit=False) as own:
        try:
            yield own
            own.commit()
        except Exception:
            own.rollback()
            raise

