"""Connection and cursor helpers shared by the PostgreSQL repositories."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from .errors import StoreError

try:  # pragma: no cover - resolve connection helper when imported from FastAPI app
    from backend.app_context import get_conn
except ModuleNotFoundError as exc:  # pragma: no cover
    if exc.name != "backend":
        raise
    from ..app_context import get_conn  # type: ignore[no-redef]

logger = logging.getLogger(__name__)


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


class PostgresRepository:
    """Base class giving repositories a dict cursor inside one transaction."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        try:
            with managed_connection(self._conn) as (connection, managed):
                cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
                try:
                    yield cursor
                    if managed:
                        connection.commit()
                except Exception:
                    if managed:
                        connection.rollback()
                    raise
                finally:
                    cursor.close()
        except psycopg2.Error as exc:
            logger.exception("Database operation failed")
            raise StoreError("Database error") from exc


__all__ = ["PostgresRepository", "managed_connection"]
