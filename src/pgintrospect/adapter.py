"""
Database access for catalogue queries.

DbAdapter wraps a single psycopg2 connection. Extraction runs many small
queries concurrently from worker threads over this one connection; psycopg2
serializes them on the connection, so no pooling is done here.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

import psycopg2
import psycopg2.extras

logger = logging.getLogger(__name__)

ConnectionConfig = Union[str, Mapping[str, Any], None]
QueryParams = Optional[Union[Mapping[str, Any], List[Any]]]


class QueryExecutor(Protocol):
    """What the extractors need from a database connection."""

    def connect(self) -> None: ...

    def query(self, text: str, params: QueryParams = None) -> List[Dict[str, Any]]: ...

    def close(self) -> None: ...


class DbAdapter:
    """
    Read-only psycopg2 session returning rows as dicts.

    Args:
        connection_config: A libpq DSN or URI string, a dict of
            ``psycopg2.connect`` keyword arguments, or None to rely on the
            standard PG* environment variables.

    Example:
        with DbAdapter("postgresql://localhost/app") as db:
            rows = db.query("SELECT nspname FROM pg_namespace")
    """

    def __init__(self, connection_config: ConnectionConfig = None):
        self.connection_config = connection_config
        self._connection = None

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._connection.closed

    def connect(self) -> None:
        if self.connected:
            return

        if isinstance(self.connection_config, str):
            self._connection = psycopg2.connect(self.connection_config)
        else:
            self._connection = psycopg2.connect(**dict(self.connection_config or {}))

        # Catalogue reads only; each query sees its own snapshot
        self._connection.set_session(readonly=True, autocommit=True)
        logger.debug("Connected to %s", self._connection.dsn)

    def query(self, text: str, params: QueryParams = None) -> List[Dict[str, Any]]:
        """Run a query and return its rows. json/jsonb columns arrive decoded."""
        if not self.connected:
            self.connect()

        with self._connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
            cursor.execute(text, params)
            rows = cursor.fetchall()

        logger.debug("Query returned %d row(s)", len(rows))
        return [dict(row) for row in rows]

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.debug("Connection closed")

    def __enter__(self) -> "DbAdapter":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


__all__ = ["ConnectionConfig", "QueryExecutor", "DbAdapter"]
