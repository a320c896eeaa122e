"""
ErwinMVC Database

Explicitly owned SQLite client built on aiosqlite. The application lifespan
(or the CLI command that needs it) constructs a ``Database``, connects it,
and closes it; nothing here keeps a module-level connection.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import aiosqlite

logger = logging.getLogger(__name__)

Params = Optional[Union[Sequence[Any], Mapping[str, Any]]]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DatabaseError(Exception):
    """Raised for connection, configuration and identifier errors."""
    pass


def parse_sqlite_url(url: str) -> str:
    """
    Extract the database path from a ``sqlite:///`` URL.

    ``sqlite:///./dev.db`` gives ``./dev.db``, ``sqlite:////var/app.db`` gives
    ``/var/app.db`` and ``sqlite:///:memory:`` gives ``:memory:``.
    """
    prefix = "sqlite:///"
    if not url.startswith(prefix):
        raise DatabaseError(f"Unsupported database URL '{url}', expected sqlite:///<path>")
    path = url[len(prefix):]
    if not path:
        raise DatabaseError(f"Database URL '{url}' has no path")
    return path


def _quote_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise DatabaseError(f"Invalid SQL identifier '{name}'")
    return f'"{name}"'


class Database:
    """
    Async SQLite client.

    Example:
        >>> async with Database("sqlite:///./dev.db") as db:
        ...     rows = await db.fetch_all("SELECT * FROM users")
    """

    def __init__(self, url: str):
        self.url = url
        self.path = parse_sqlite_url(url)
        self._connection: Optional[aiosqlite.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Open the connection. Calling it twice is a no-op."""
        if self._connection is not None:
            return
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        logger.debug(f"Connecting to SQLite database: {self.path}")
        # Autocommit; transactions are explicit BEGIN/COMMIT
        self._connection = await aiosqlite.connect(self.path, isolation_level=None)
        self._connection.row_factory = aiosqlite.Row

    async def close(self) -> None:
        if self._connection is not None:
            logger.debug("Closing database connection")
            await self._connection.close()
            self._connection = None

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise DatabaseError("Database is not connected. Call connect() first.")
        return self._connection

    async def execute(self, sql: str, params: Params = None) -> int:
        """Execute a statement and return the number of affected rows."""
        connection = self._require_connection()
        async with connection.execute(sql, params or ()) as cursor:
            return cursor.rowcount

    async def fetch_all(self, sql: str, params: Params = None) -> List[Dict[str, Any]]:
        connection = self._require_connection()
        async with connection.execute(sql, params or ()) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def fetch_one(self, sql: str, params: Params = None) -> Optional[Dict[str, Any]]:
        connection = self._require_connection()
        async with connection.execute(sql, params or ()) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def begin_transaction(self) -> None:
        await self.execute("BEGIN")

    async def commit_transaction(self) -> None:
        await self.execute("COMMIT")

    async def rollback_transaction(self) -> None:
        await self.execute("ROLLBACK")

    async def insert(self, table: str, values: Mapping[str, Any]) -> int:
        """
        Insert a row and return its id.

        Column names are validated as plain identifiers; values are bound
        as parameters.
        """
        connection = self._require_connection()
        table_sql = _quote_identifier(table)
        if values:
            columns = ", ".join(_quote_identifier(column) for column in values)
            placeholders = ", ".join("?" for _ in values)
            sql = f"INSERT INTO {table_sql} ({columns}) VALUES ({placeholders})"
        else:
            sql = f"INSERT INTO {table_sql} DEFAULT VALUES"

        async with connection.execute(sql, tuple(values.values())) as cursor:
            return cursor.lastrowid

    async def update(self, table: str, row_id: Any, values: Mapping[str, Any]) -> int:
        """Update a row by id and return the number of affected rows."""
        if not values:
            return 0
        assignments = ", ".join(f"{_quote_identifier(column)} = ?" for column in values)
        sql = f"UPDATE {_quote_identifier(table)} SET {assignments} WHERE id = ?"
        return await self.execute(sql, (*values.values(), row_id))

    async def delete(self, table: str, row_id: Any) -> int:
        """Delete a row by id and return the number of affected rows."""
        return await self.execute(f"DELETE FROM {_quote_identifier(table)} WHERE id = ?", (row_id,))
