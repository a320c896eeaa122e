"""
ErwinMVC Migrations

SQL migration files with ``-- UP`` / ``-- DOWN`` sections, applied in name
order inside a transaction each and recorded in ``erwinmvc_migrations``.
"""

import hashlib
import logging
import re
import sqlite3
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .db import Database

logger = logging.getLogger(__name__)

MIGRATIONS_TABLE = "erwinmvc_migrations"


class MigrationStatus(Enum):
    """Migration status enumeration."""
    PENDING = "pending"
    APPLIED = "applied"


class MigrationError(Exception):
    """Base exception for migration errors."""
    pass


@dataclass
class Migration:
    """A migration file and its parsed sections."""
    name: str
    file_path: Path
    checksum: str
    up_sql: str
    down_sql: Optional[str] = None
    description: Optional[str] = None
    applied_at: Optional[str] = None
    status: MigrationStatus = MigrationStatus.PENDING

    @classmethod
    def from_file(cls, file_path: Path) -> "Migration":
        content = file_path.read_text(encoding="utf-8")
        up_sql, down_sql, description = parse_migration(content)
        return cls(
            name=file_path.stem,
            file_path=file_path,
            checksum=hashlib.sha256(content.encode()).hexdigest(),
            up_sql=up_sql,
            down_sql=down_sql,
            description=description,
        )


def parse_migration(content: str) -> "tuple[str, Optional[str], Optional[str]]":
    """
    Split migration content into UP SQL, DOWN SQL and description.

    Content without an ``-- UP`` marker is treated as UP SQL in full.
    """
    description_match = re.search(r"^--\s*Migration:\s*(.+)$", content, re.MULTILINE | re.IGNORECASE)
    up_match = re.search(r"^--\s*UP\s*$\n(.*?)(?=^--\s*DOWN\s*$|\Z)", content, re.DOTALL | re.MULTILINE | re.IGNORECASE)
    down_match = re.search(r"^--\s*DOWN\s*$\n(.*)\Z", content, re.DOTALL | re.MULTILINE | re.IGNORECASE)

    up_sql = up_match.group(1).strip() if up_match else content.strip()
    down_sql = down_match.group(1).strip() if down_match else None
    description = description_match.group(1).strip() if description_match else None
    return up_sql, down_sql or None, description


def split_statements(sql: str) -> List[str]:
    """
    Split a SQL script into complete statements.

    Uses SQLite's own completeness check, so trigger bodies with inner
    semicolons stay in one piece.
    """
    statements = []
    buffer = ""
    for line in sql.splitlines(keepends=True):
        if not buffer and (not line.strip() or line.strip().startswith("--")):
            continue
        buffer += line
        if sqlite3.complete_statement(buffer):
            statements.append(buffer.strip())
            buffer = ""
    if buffer.strip():
        statements.append(buffer.strip())
    return statements


class MigrationRunner:
    """
    Applies and rolls back migrations for a connected ``Database``.
    """

    def __init__(self, migrations_dir: Path, db: Database):
        self.migrations_dir = Path(migrations_dir)
        self.db = db

    async def initialize(self) -> None:
        """Create the tracking table if it does not exist."""
        await self.db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name VARCHAR(255) NOT NULL UNIQUE,
                checksum VARCHAR(64) NOT NULL,
                applied_at TIMESTAMP NOT NULL
            )
            """
        )
        logger.debug("Migrations table ensured")

    def create_migration(self, name: str, up_sql: str, down_sql: str = "", description: str = "") -> Path:
        """
        Write a new timestamped migration file.

        Args:
            name: Migration name (prefixed with a timestamp)
            up_sql: SQL applied by the migration
            down_sql: SQL that reverts it
            description: Human-readable description

        Returns:
            Path to the created file
        """
        self.migrations_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        migration_file = self.migrations_dir / f"{timestamp}_{name}.sql"
        if migration_file.exists():
            raise MigrationError(f"Migration {migration_file.name} already exists")

        content = (
            f"-- Migration: {description or name}\n"
            f"-- Created: {datetime.now().isoformat(timespec='seconds')}\n"
            "\n"
            "-- UP\n"
            f"{up_sql.strip()}\n"
            "\n"
            "-- DOWN\n"
            f"{down_sql.strip()}\n"
        )
        migration_file.write_text(content, encoding="utf-8")
        logger.info(f"Created migration: {migration_file.name}")
        return migration_file

    def discover(self) -> List[Migration]:
        """Load migration files in name order; unreadable files are logged and skipped."""
        if not self.migrations_dir.is_dir():
            return []

        migrations = []
        for sql_file in sorted(self.migrations_dir.glob("*.sql")):
            try:
                migrations.append(Migration.from_file(sql_file))
            except Exception as e:
                logger.error(f"Failed to load migration {sql_file}: {e}")
        return migrations

    async def get_migrations(self) -> List[Migration]:
        """All migrations with their applied status."""
        migrations = self.discover()
        applied = {row["name"]: row for row in await self._get_applied_rows()}
        for migration in migrations:
            row = applied.get(migration.name)
            if row:
                migration.status = MigrationStatus.APPLIED
                migration.applied_at = row["applied_at"]
                if row["checksum"] != migration.checksum:
                    logger.warning(f"Migration {migration.name} changed after it was applied")
        return migrations

    async def get_pending_migrations(self) -> List[Migration]:
        return [m for m in await self.get_migrations() if m.status == MigrationStatus.PENDING]

    async def apply_migrations(self, dry_run: bool = False) -> Dict[str, Any]:
        """
        Apply pending migrations in order, stopping at the first failure.

        Returns:
            Dictionary with "applied" count, "pending" names and "errors"
        """
        pending = await self.get_pending_migrations()
        results: Dict[str, Any] = {"applied": 0, "pending": [m.name for m in pending], "errors": []}

        if dry_run:
            logger.info(f"DRY RUN: Would apply {len(pending)} migrations")
            return results

        for migration in pending:
            try:
                async with self._transaction():
                    for statement in split_statements(migration.up_sql):
                        await self.db.execute(statement)
                    await self._record_applied(migration)
                migration.status = MigrationStatus.APPLIED
                results["applied"] += 1
                logger.info(f"Applied: {migration.name}")
            except Exception as e:
                error_msg = f"Failed to apply {migration.name}: {e}"
                logger.error(error_msg)
                results["errors"].append(error_msg)
                break

        return results

    async def rollback_last(self) -> Optional[str]:
        """
        Roll back the most recently applied migration.

        Returns:
            Name of the rolled back migration, or None if nothing was applied

        Raises:
            MigrationError: If the migration has no DOWN section
        """
        applied = [m for m in await self.get_migrations() if m.status == MigrationStatus.APPLIED]
        if not applied:
            return None

        migration = applied[-1]
        if not migration.down_sql:
            raise MigrationError(f"Migration {migration.name} has no rollback SQL")

        async with self._transaction():
            for statement in split_statements(migration.down_sql):
                await self.db.execute(statement)
            await self.db.execute(f"DELETE FROM {MIGRATIONS_TABLE} WHERE name = :name", {"name": migration.name})

        logger.info(f"Rolled back: {migration.name}")
        return migration.name

    async def get_status(self) -> Dict[str, Any]:
        migrations = await self.get_migrations()
        applied = [m for m in migrations if m.status == MigrationStatus.APPLIED]
        return {
            "total_migrations": len(migrations),
            "applied_count": len(applied),
            "pending_count": len(migrations) - len(applied),
            "last_applied": applied[-1].name if applied else None,
            "migrations_dir": str(self.migrations_dir),
        }

    @asynccontextmanager
    async def _transaction(self):
        await self.db.begin_transaction()
        try:
            yield
            await self.db.commit_transaction()
        except Exception:
            await self.db.rollback_transaction()
            raise

    async def _get_applied_rows(self) -> List[Dict[str, Any]]:
        return await self.db.fetch_all(
            f"SELECT name, checksum, applied_at FROM {MIGRATIONS_TABLE} ORDER BY name"
        )

    async def _record_applied(self, migration: Migration) -> None:
        await self.db.execute(
            f"INSERT INTO {MIGRATIONS_TABLE} (name, checksum, applied_at) VALUES (:name, :checksum, :applied_at)",
            {
                "name": migration.name,
                "checksum": migration.checksum,
                "applied_at": datetime.now().isoformat(timespec="seconds"),
            },
        )


async def apply_all_migrations(migrations_dir: Path, database_url: str, dry_run: bool = False) -> Dict[str, Any]:
    """Open a database, apply pending migrations and close it again."""
    async with Database(database_url) as db:
        runner = MigrationRunner(migrations_dir, db)
        await runner.initialize()
        return await runner.apply_migrations(dry_run=dry_run)
