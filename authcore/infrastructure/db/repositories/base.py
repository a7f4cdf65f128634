from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from sqlalchemy.engine import Connection, Engine


TResult = TypeVar("TResult")


class SqlRepository:
    """Raw-SQL repository that can be rebound to a single open transaction.

    Unbound instances open a connection per call. ``execute_in_transaction``
    hands the callback a copy bound to one ``engine.begin()`` block, so every
    call made through it commits or rolls back together.
    """

    def __init__(self, engine: Engine, *, conn: Connection | None = None):
        self._engine = engine
        self._conn = conn

    def execute_in_transaction(self, fn: Callable[..., TResult]) -> TResult:
        if self._conn is not None:
            return fn(self)
        with self._engine.begin() as conn:
            return fn(type(self)(self._engine, conn=conn))

    @contextmanager
    def _read(self) -> Iterator[Connection]:
        if self._conn is not None:
            yield self._conn
            return
        with self._engine.connect() as conn:
            yield conn

    @contextmanager
    def _write(self) -> Iterator[Connection]:
        if self._conn is not None:
            yield self._conn
            return
        with self._engine.begin() as conn:
            yield conn
