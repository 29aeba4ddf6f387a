"""Engine and session wiring for the settlement audit store."""

from collections.abc import Generator
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .core.config import settings

Base = declarative_base()


def _sqlite_file(url: str) -> Path | None:
    """Database file behind a SQLite URL, or ``None`` for in-memory stores."""

    database = make_url(url).database
    if not database or database == ":memory:":
        return None
    return Path(database)


def build_engine(url: str, *, echo: bool = False) -> Engine:
    parsed = make_url(url)
    engine_kwargs: dict[str, object] = {"echo": echo, "future": True}

    if parsed.get_backend_name() == "sqlite":
        # runs are recorded from API worker threads and the CLI loop alike
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        database_file = _sqlite_file(url)
        if database_file is None:
            # one shared connection, otherwise every checkout sees an empty database
            engine_kwargs["poolclass"] = StaticPool
        else:
            database_file.parent.mkdir(parents=True, exist_ok=True)
    else:
        engine_kwargs["pool_pre_ping"] = True
        engine_kwargs["pool_recycle"] = 300

    return create_engine(url, **engine_kwargs)


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=True, autocommit=False, future=True)


engine = build_engine(str(settings.database_url), echo=settings.debug)
SessionLocal = build_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db(bind: Engine | None = None) -> None:
    """Create the settlement tables on ``bind`` (the configured engine by default)."""

    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
