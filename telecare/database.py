from fastapi import Request
from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.engine import Engine

from .core.config import settings
# table models must be imported before create_all
from .db import models  # noqa: F401


def build_engine(db_url: str, echo: bool = False) -> Engine:
    engine_kwargs = {}

    if db_url.startswith("sqlite"):
        # SQLite specific connect args
        engine_kwargs.update({
            "connect_args": {"check_same_thread": False}
        })
    else:
        # Better resiliency for managed Postgres
        engine_kwargs.update({
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "pool_size": 5,
            "max_overflow": 10,
        })

    return create_engine(db_url, echo=echo, **engine_kwargs)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def create_db_and_tables(bind: Engine = None):
    SQLModel.metadata.create_all(bind or engine)


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session
