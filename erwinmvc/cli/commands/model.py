"""
ErwinMVC Model Generator

Implementation of `erwinmvc generate model <name>`: write a migration that
creates the model's table and apply it.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from ...core import config
from ...core.db import Database
from ...core.migrations import MigrationRunner, apply_all_migrations
from ..project import MIGRATIONS_DIR, GeneratorError, ResourceNames, find_model_migration
from ..templates import TemplateRenderer

logger = logging.getLogger(__name__)

MODEL_TEMPLATE = "model.sql.j2"


def generate_model(name: str, skip_migrate: bool = False, renderer: Optional[TemplateRenderer] = None) -> Path:
    """
    Generate a migration for a new model.

    Args:
        name: Model name, e.g. "Post"
        skip_migrate: Only write the migration, do not apply it
        renderer: Template renderer; defaults to the packaged templates

    Returns:
        Path to the new migration file

    Raises:
        GeneratorError: If there is no migrations directory or the model
            already exists
    """
    names = ResourceNames.from_name(name)
    typer.echo(f"Generating model: {names.model_name}")

    if not MIGRATIONS_DIR.is_dir():
        raise GeneratorError(f"{MIGRATIONS_DIR}/ not found. Are you in a project directory?")

    existing = find_model_migration(names.table_name)
    if existing is not None:
        raise GeneratorError(f"Model {names.model_name} already exists in {existing}")

    migration_file = write_model_migration(names, renderer or TemplateRenderer())
    typer.echo(f"Created migration {MIGRATIONS_DIR / migration_file.name}")

    if not skip_migrate:
        run_migrations()

    typer.echo(f"\nModel {names.model_name} created successfully!")
    return migration_file


def write_model_migration(names: ResourceNames, renderer: TemplateRenderer) -> Path:
    """Render the table migration for ``names`` into the migrations directory."""
    up_sql = renderer.render(MODEL_TEMPLATE, **names.template_context())
    down_sql = (
        f"DROP TRIGGER IF EXISTS {names.table_name}_touch_updated_at;\n"
        f"DROP TABLE IF EXISTS {names.table_name};"
    )
    # Database is only constructed here, create_migration never connects
    runner = MigrationRunner(MIGRATIONS_DIR, Database(config.database_url()))
    return runner.create_migration(
        f"create_{names.table_name}",
        up_sql,
        down_sql,
        description=f"Create {names.table_name} table",
    )


def run_migrations(dry_run: bool = False) -> bool:
    """
    Apply pending migrations against ``DATABASE_URL`` and report the result.

    Returns:
        True if every pending migration was applied
    """
    typer.echo("\nRunning migrations...")
    try:
        results = asyncio.run(apply_all_migrations(MIGRATIONS_DIR, config.database_url(), dry_run=dry_run))
    except Exception as e:
        logger.error(f"Migration run failed: {e}")
        typer.echo("Migration failed. Run 'erwinmvc migrate' manually.", err=True)
        return False

    for error in results["errors"]:
        typer.echo(f"  {error}", err=True)
    if results["errors"]:
        typer.echo("Migration failed. Run 'erwinmvc migrate' manually.", err=True)
        return False

    if dry_run:
        for migration_name in results["pending"]:
            typer.echo(f"  would apply {migration_name}")
    else:
        typer.echo(f"Applied {results['applied']} migration(s)")
    return True
