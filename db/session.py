from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import models


def build_engine(url: str, **kwargs) -> Engine:
    """Create the process-wide engine. In-memory SQLite shares one connection."""
    if url.startswith("sqlite") and ":memory:" in url:
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        kwargs.setdefault("poolclass", StaticPool)
    return create_engine(url, echo=False, future=True, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


# Orders, products and profiles belong to the shop backend and are never created here.
OWNED_TABLES = (models.SupportTicket.__table__, models.Faq.__table__)


def ensure_schema(engine: Engine) -> None:
    """Create any of our tables that are missing (idempotent)."""
    models.Base.metadata.create_all(bind=engine, tables=list(OWNED_TABLES))
