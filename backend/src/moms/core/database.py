from __future__ import annotations

from typing import Callable, Iterator

from sqlmodel import Session, SQLModel, create_engine

from .config import get_settings


def _sqlite_connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        # Required for SQLite when used with FastAPI in threaded servers.
        return {"check_same_thread": False}
    return {}


settings = get_settings()

engine = create_engine(
    settings.database_url,
    echo=settings.database_echo,
    connect_args=_sqlite_connect_args(settings.database_url),
)

SessionFactory = Callable[[], Session]


def init_db() -> None:
    # Import models so SQLModel sees the metadata.
    from moms import models  # noqa: F401  (import for side effect)

    SQLModel.metadata.create_all(engine)


def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session


def session_factory() -> Session:
    """Open a standalone session on the current engine (caller closes it)."""
    return Session(engine)
