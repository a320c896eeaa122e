"""
ErwinMVC CLI

Command-line entry point: scaffold apps, generate models, controllers and
resources, run migrations, list routes and start the dev server.
"""

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Annotated, Optional

import typer

from .. import __version__
from ..core import config
from ..core.db import Database, DatabaseError
from ..core.migrations import MigrationError, MigrationRunner
from ..core.routing import ControllerRegistry, describe_bindings
from .commands.controller import generate_controller
from .commands.dev import start_dev_server
from .commands.init import init_app
from .commands.model import generate_model, run_migrations
from .commands.resource import ResourceOptions, generate_resource
from .project import CONTROLLERS_DIR, MANIFEST_FILE, MIGRATIONS_DIR, GeneratorError, load_manifest

logger = logging.getLogger(__name__)

# Errors reported as "Error: <message>" with exit status 1
CLI_ERRORS = (GeneratorError, MigrationError, DatabaseError, sqlite3.Error, ValueError, OSError)

app = typer.Typer(
    name="erwinmvc",
    help="Convention-based MVC toolkit for Starlette",
    add_completion=False,
    no_args_is_help=True,
)

generate_app = typer.Typer(
    name="generate",
    help="Generate models, controllers and resources",
    no_args_is_help=True,
)
app.add_typer(generate_app, name="generate")
app.add_typer(generate_app, name="g", hidden=True)


def _fail(error: Exception) -> None:
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(1)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"erwinmvc {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """ErwinMVC - scaffolding and conventions for Starlette MVC apps."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if verbose:
        logging.getLogger("erwinmvc").setLevel(logging.DEBUG)


@app.command(name="init")
def init_cmd(
    directory: Annotated[Path, typer.Argument(help="Directory to create the app in")],
    skip_install: Annotated[
        bool,
        typer.Option("--skip-install", help="Don't install the project's dependencies"),
    ] = False,
    with_database: Annotated[
        bool,
        typer.Option("--with-database", help="Set up migrations and the SQLite database"),
    ] = False,
) -> None:
    """Create a new ErwinMVC application."""
    try:
        init_app(directory, skip_install=skip_install, with_database=with_database)
    except CLI_ERRORS as e:
        _fail(e)


@generate_app.command(name="model")
def generate_model_cmd(
    name: Annotated[str, typer.Argument(help="Model name, e.g. Post")],
    skip_migrate: Annotated[
        bool,
        typer.Option("--skip-migrate", help="Write the migration without applying it"),
    ] = False,
) -> None:
    """Generate a model migration."""
    try:
        generate_model(name, skip_migrate=skip_migrate)
    except CLI_ERRORS as e:
        _fail(e)


@generate_app.command(name="controller")
def generate_controller_cmd(
    name: Annotated[str, typer.Argument(help="Model name, e.g. Post (creates PostController)")],
    no_views: Annotated[
        bool,
        typer.Option("--no-views", help="Don't generate views"),
    ] = False,
) -> None:
    """Generate a controller with CRUD actions."""
    try:
        generate_controller(name, views=not no_views)
    except CLI_ERRORS as e:
        _fail(e)


@generate_app.command(name="resource")
def generate_resource_cmd(
    name: Annotated[str, typer.Argument(help="Model name, e.g. Person")],
    skip_model: Annotated[bool, typer.Option("--skip-model", help="Don't generate the model")] = False,
    skip_controller: Annotated[
        bool,
        typer.Option("--skip-controller", help="Don't generate the controller"),
    ] = False,
    skip_views: Annotated[bool, typer.Option("--skip-views", help="Don't generate views")] = False,
    skip_migrate: Annotated[
        bool,
        typer.Option("--skip-migrate", help="Don't apply the model migration"),
    ] = False,
    api_only: Annotated[
        bool,
        typer.Option("--api-only", help="JSON controller without views or form pages"),
    ] = False,
) -> None:
    """Generate a model, controller and views in one go."""
    options = ResourceOptions(
        skip_model=skip_model,
        skip_controller=skip_controller,
        skip_views=skip_views,
        skip_migrate=skip_migrate,
        api_only=api_only,
    )
    try:
        generate_resource(name, options)
    except CLI_ERRORS as e:
        _fail(e)


@app.command(name="migrate")
def migrate_cmd(
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Show pending migrations only")] = False,
    status: Annotated[bool, typer.Option("--status", help="Show migration status")] = False,
    rollback: Annotated[bool, typer.Option("--rollback", help="Roll back the last migration")] = False,
) -> None:
    """Apply pending migrations to DATABASE_URL."""
    if not MIGRATIONS_DIR.is_dir():
        _fail(GeneratorError(f"{MIGRATIONS_DIR}/ not found. Are you in a project directory?"))

    try:
        if status:
            _print_status(asyncio.run(_migration_status()))
        elif rollback:
            name = asyncio.run(_rollback())
            typer.echo(f"Rolled back {name}" if name else "Nothing to roll back")
        elif not run_migrations(dry_run=dry_run):
            raise typer.Exit(1)
    except CLI_ERRORS as e:
        _fail(e)


async def _migration_status() -> dict:
    async with Database(config.database_url()) as db:
        runner = MigrationRunner(MIGRATIONS_DIR, db)
        await runner.initialize()
        status = await runner.get_status()
        status["migrations"] = await runner.get_migrations()
        return status


async def _rollback() -> Optional[str]:
    async with Database(config.database_url()) as db:
        runner = MigrationRunner(MIGRATIONS_DIR, db)
        await runner.initialize()
        return await runner.rollback_last()


def _print_status(status: dict) -> None:
    typer.echo(f"Migrations: {status['applied_count']} applied, {status['pending_count']} pending")
    for migration in status["migrations"]:
        typer.echo(f"  [{migration.status.value:<7}] {migration.name}")


@app.command(name="routes")
def routes_cmd() -> None:
    """List the routes the project's controllers register."""
    try:
        if MANIFEST_FILE.is_file():
            manifest = load_manifest(Path.cwd())
            registry = manifest.registry
            form_routes = getattr(manifest, "form_routes", [])
        else:
            registry = ControllerRegistry()
            registry.load_directory(CONTROLLERS_DIR)
            form_routes = []
    except CLI_ERRORS as e:
        _fail(e)

    if not len(registry) and not form_routes:
        typer.echo("No controllers registered")
        return

    for entry, bindings in registry.bindings():
        typer.echo(f"{entry.name} (/{entry.resource})")
        for line in describe_bindings(bindings):
            typer.echo(f"  {line}")

    if form_routes:
        typer.echo("Form pages")
        for route in form_routes:
            methods = ",".join(sorted(route.methods - {"HEAD"}))
            typer.echo(f"  {methods:<7}{route.path}  -> {route.name}")


@app.command(name="dev")
def dev_cmd(
    host: Annotated[str, typer.Option("--host", help="Host to bind to")] = "localhost",
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to bind to")] = None,
    no_reload: Annotated[bool, typer.Option("--no-reload", help="Disable auto reload")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", help="Enable debug logging")] = False,
) -> None:
    """Start the development server."""
    try:
        start_dev_server(host=host, port=port, reload=not no_reload, verbose=verbose)
    except CLI_ERRORS as e:
        _fail(e)


if __name__ == "__main__":
    app()
