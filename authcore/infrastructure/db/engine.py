from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


@lru_cache(maxsize=4)
def get_engine(dsn: str) -> Engine:
    if dsn.startswith("sqlite"):
        # File-backed SQLite only: repositories open more than one connection per request.
        return create_engine(dsn, connect_args={"check_same_thread": False, "timeout": 15})
    return create_engine(dsn, pool_pre_ping=True)
