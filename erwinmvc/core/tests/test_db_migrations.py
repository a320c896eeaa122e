"""
Tests for the SQLite client and the migration runner
"""

import asyncio
import shutil
import tempfile
from pathlib import Path

import pytest

from ..db import Database, DatabaseError, parse_sqlite_url
from ..migrations import (
    MIGRATIONS_TABLE,
    MigrationError,
    MigrationRunner,
    MigrationStatus,
    apply_all_migrations,
    parse_migration,
    split_statements,
)

POSTS_MIGRATION = """-- Migration: Create posts table

-- UP
CREATE TABLE posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    updated_at TIMESTAMP
);

CREATE TRIGGER posts_touch AFTER UPDATE ON posts
BEGIN
    UPDATE posts SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
END;

-- DOWN
DROP TRIGGER IF EXISTS posts_touch;
DROP TABLE IF EXISTS posts;
"""


class TestParsing:

    def test_parse_sqlite_url(self):
        assert parse_sqlite_url("sqlite:///./dev.db") == "./dev.db"
        assert parse_sqlite_url("sqlite:////var/app.db") == "/var/app.db"
        assert parse_sqlite_url("sqlite:///:memory:") == ":memory:"

    @pytest.mark.parametrize("url", ["postgres://localhost/app", "sqlite:///", "dev.db"])
    def test_parse_sqlite_url_rejects(self, url):
        with pytest.raises(DatabaseError):
            parse_sqlite_url(url)

    def test_parse_migration_sections(self):
        up_sql, down_sql, description = parse_migration(POSTS_MIGRATION)

        assert description == "Create posts table"
        assert up_sql.startswith("CREATE TABLE posts")
        assert "DROP TABLE" not in up_sql
        assert down_sql.startswith("DROP TRIGGER")

    def test_parse_migration_without_markers(self):
        up_sql, down_sql, description = parse_migration("CREATE TABLE t (id INTEGER);\n")

        assert up_sql == "CREATE TABLE t (id INTEGER);"
        assert down_sql is None
        assert description is None

    def test_split_statements_keeps_trigger_bodies(self):
        up_sql, _, _ = parse_migration(POSTS_MIGRATION)

        statements = split_statements(up_sql)

        assert len(statements) == 2
        assert statements[1].startswith("CREATE TRIGGER")
        assert statements[1].endswith("END;")


class TestDatabase:

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.url = f"sqlite:///{self.temp_dir / 'data' / 'test.db'}"

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def test_crud_helpers(self):
        async def scenario():
            async with Database(self.url) as db:
                await db.execute("CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT)")
                first = await db.insert("users", {"name": "ada"})
                second = await db.insert("users", {"name": "grace"})
                updated = await db.update("users", first, {"name": "ada lovelace"})
                deleted = await db.delete("users", second)
                missing = await db.delete("users", 999)
                rows = await db.fetch_all("SELECT * FROM users ORDER BY id")
                one = await db.fetch_one("SELECT name FROM users WHERE id = ?", (first,))
                none = await db.fetch_one("SELECT name FROM users WHERE id = ?", (second,))
                return first, second, updated, deleted, missing, rows, one, none

        first, second, updated, deleted, missing, rows, one, none = asyncio.run(scenario())

        assert (first, second) == (1, 2)
        assert (updated, deleted, missing) == (1, 1, 0)
        assert rows == [{"id": 1, "name": "ada lovelace"}]
        assert one == {"name": "ada lovelace"}
        assert none is None

    def test_creates_parent_directory(self):
        async def scenario():
            async with Database(self.url):
                pass

        asyncio.run(scenario())

        assert (self.temp_dir / "data" / "test.db").exists()

    def test_insert_default_values(self):
        async def scenario():
            async with Database("sqlite:///:memory:") as db:
                await db.execute("CREATE TABLE things (id INTEGER PRIMARY KEY, created TEXT DEFAULT 'now')")
                row_id = await db.insert("things", {})
                return await db.fetch_one("SELECT * FROM things WHERE id = ?", (row_id,))

        assert asyncio.run(scenario()) == {"id": 1, "created": "now"}

    def test_update_without_values(self):
        async def scenario():
            async with Database("sqlite:///:memory:") as db:
                return await db.update("anything", 1, {})

        assert asyncio.run(scenario()) == 0

    def test_rejects_unsafe_identifiers(self):
        async def scenario():
            async with Database("sqlite:///:memory:") as db:
                await db.insert("users; DROP TABLE users", {"name": "x"})

        with pytest.raises(DatabaseError):
            asyncio.run(scenario())

    def test_requires_connection(self):
        db = Database("sqlite:///:memory:")

        assert not db.is_connected
        with pytest.raises(DatabaseError):
            asyncio.run(db.fetch_all("SELECT 1"))


class TestMigrationRunner:

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.migrations_dir = self.temp_dir / "migrations"
        self.migrations_dir.mkdir()
        self.url = f"sqlite:///{self.temp_dir / 'test.db'}"

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def write_migration(self, name: str, content: str) -> Path:
        path = self.migrations_dir / f"{name}.sql"
        path.write_text(content)
        return path

    def run(self, scenario):
        async def wrapper():
            async with Database(self.url) as db:
                runner = MigrationRunner(self.migrations_dir, db)
                await runner.initialize()
                return await scenario(runner, db)
        return asyncio.run(wrapper())

    def test_applies_once_and_records(self):
        self.write_migration("20240101_000000_create_posts", POSTS_MIGRATION)

        first = asyncio.run(apply_all_migrations(self.migrations_dir, self.url))
        second = asyncio.run(apply_all_migrations(self.migrations_dir, self.url))

        assert first == {"applied": 1, "pending": ["20240101_000000_create_posts"], "errors": []}
        assert second == {"applied": 0, "pending": [], "errors": []}

        async def scenario(runner, db):
            return await db.fetch_all(f"SELECT name FROM {MIGRATIONS_TABLE}")

        assert self.run(scenario) == [{"name": "20240101_000000_create_posts"}]

    def test_applies_in_name_order(self):
        self.write_migration("002_add_index", "-- UP\nCREATE INDEX posts_title ON posts (title);\n")
        self.write_migration("001_create_posts", POSTS_MIGRATION)

        results = asyncio.run(apply_all_migrations(self.migrations_dir, self.url))

        assert results["applied"] == 2
        assert results["pending"] == ["001_create_posts", "002_add_index"]

    def test_dry_run_applies_nothing(self):
        self.write_migration("001_create_posts", POSTS_MIGRATION)

        results = asyncio.run(apply_all_migrations(self.migrations_dir, self.url, dry_run=True))

        assert results == {"applied": 0, "pending": ["001_create_posts"], "errors": []}

        async def scenario(runner, db):
            return await runner.get_pending_migrations()

        assert [m.name for m in self.run(scenario)] == ["001_create_posts"]

    def test_failure_rolls_back_and_stops(self):
        self.write_migration("001_broken", "-- UP\nCREATE TABLE half (id INTEGER);\nNOT VALID SQL;\n")
        self.write_migration("002_create_posts", POSTS_MIGRATION)

        results = asyncio.run(apply_all_migrations(self.migrations_dir, self.url))

        assert results["applied"] == 0
        assert len(results["errors"]) == 1
        assert results["errors"][0].startswith("Failed to apply 001_broken")

        async def scenario(runner, db):
            tables = await db.fetch_all("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'half'")
            pending = await runner.get_pending_migrations()
            return tables, [m.name for m in pending]

        tables, pending = self.run(scenario)
        assert tables == []
        assert pending == ["001_broken", "002_create_posts"]

    def test_status_and_rollback(self):
        self.write_migration("001_create_posts", POSTS_MIGRATION)
        asyncio.run(apply_all_migrations(self.migrations_dir, self.url))

        async def scenario(runner, db):
            before = await runner.get_status()
            rolled_back = await runner.rollback_last()
            after = await runner.get_status()
            nothing = await runner.rollback_last()
            tables = await db.fetch_all("SELECT name FROM sqlite_master WHERE name = 'posts'")
            return before, rolled_back, after, nothing, tables

        before, rolled_back, after, nothing, tables = self.run(scenario)

        assert before["applied_count"] == 1
        assert before["last_applied"] == "001_create_posts"
        assert rolled_back == "001_create_posts"
        assert after["pending_count"] == 1
        assert nothing is None
        assert tables == []

    def test_rollback_without_down_section(self):
        self.write_migration("001_create_t", "-- UP\nCREATE TABLE t (id INTEGER);\n")
        asyncio.run(apply_all_migrations(self.migrations_dir, self.url))

        async def scenario(runner, db):
            await runner.rollback_last()

        with pytest.raises(MigrationError):
            self.run(scenario)

    def test_create_migration_file(self):
        async def scenario(runner, db):
            path = runner.create_migration("create_tags", "CREATE TABLE tags (id INTEGER);", "DROP TABLE tags;")
            migrations = await runner.get_migrations()
            return path, migrations

        path, migrations = self.run(scenario)

        assert path.name.endswith("_create_tags.sql")
        assert [m.status for m in migrations] == [MigrationStatus.PENDING]
        assert migrations[0].up_sql == "CREATE TABLE tags (id INTEGER);"
        assert migrations[0].down_sql == "DROP TABLE tags;"
        assert migrations[0].description == "create_tags"
