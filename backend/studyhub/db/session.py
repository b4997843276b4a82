"""SQLAlchemy engine & session factory.

Request handlers get sessions through ``get_db``; Celery tasks open their own
from ``get_session_factory()``.  Both go through the same factory, which tests
replace with ``set_session_factory``.
"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from studyhub.config import settings

_engine: Engine | None = None
_session_factory: sessionmaker | None = None  # type: ignore[type-arg]


def get_engine() -> Engine:
    """Create the engine on first use."""
    global _engine
    if _engine is None:
        url = settings.DATABASE_URL
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        _engine = create_engine(
            url,
            echo=settings.DATABASE_ECHO,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    return _engine


def get_session_factory() -> sessionmaker:  # type: ignore[type-arg]
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False)
    return _session_factory


def set_session_factory(factory: sessionmaker) -> None:  # type: ignore[type-arg]
    """Point requests and background tasks at another database (tests, scripts)."""
    global _session_factory
    _session_factory = factory


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def get_db() -> Session:  # type: ignore[misc]
    """FastAPI dependency: one session per request, closed afterwards."""
    db = get_session_factory()()
    try:
        yield db  # type: ignore[misc]
    finally:
        db.close()
