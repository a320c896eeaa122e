"""
ErwinMVC Init Command

Implementation of `erwinmvc init <dir>`: copy the application scaffold into
the target directory with token replacement, then optionally install it and
set up the database.
"""

import asyncio
import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Dict

import typer

from ... import __version__
from ...core.db import Database
from ...core.migrations import MigrationRunner
from ..project import MIGRATIONS_DIR, GeneratorError
from ..templates import get_templates_dir

logger = logging.getLogger(__name__)

SCAFFOLD_TEMPLATE = "app_scaffold"
DATABASE_FILE = "dev.db"

# Files stored under a plain name in the package and renamed on copy
RENAMED_FILES = {
    "gitignore.txt": ".gitignore",
    "env.example.txt": ".env.example",
}


def init_app(target_dir: Path, skip_install: bool = False, with_database: bool = False) -> None:
    """
    Create a new ErwinMVC application.

    Args:
        target_dir: Directory where the application will be created
        skip_install: Do not run ``pip install -e .`` in the new project
        with_database: Create ``migrations/`` and the migrations table

    Raises:
        GeneratorError: If the target directory exists and is not empty, or
            the scaffold is missing

    Example:
        >>> init_app(Path("my-app"), skip_install=True)
    """
    if target_dir.exists() and any(target_dir.iterdir()):
        raise GeneratorError(f"Directory {target_dir} already exists and is not empty")

    template_dir = get_templates_dir() / SCAFFOLD_TEMPLATE
    if not template_dir.is_dir():
        raise GeneratorError(f"Template '{SCAFFOLD_TEMPLATE}' not found")

    project_name = target_dir.resolve().name
    typer.echo(f"Creating ErwinMVC app: {project_name}")

    target_dir.mkdir(parents=True, exist_ok=True)
    _copy_template_files(template_dir, target_dir)
    _replace_tokens(target_dir, {"PROJECT_NAME": project_name, "FRAMEWORK_VERSION": __version__})
    _rename_files(target_dir)
    logger.info(f"Created project '{project_name}' in {target_dir}")

    if not skip_install:
        _install_project(target_dir)

    if with_database:
        _setup_database(target_dir)

    _print_next_steps(target_dir, skip_install, with_database)


def _copy_template_files(source_dir: Path, target_dir: Path) -> None:
    """
    Recursively copy template files to target directory.

    Args:
        source_dir: Source template directory
        target_dir: Target project directory
    """
    for item in source_dir.rglob("*"):
        if item.is_file() and not _should_skip_file(item):
            relative_path = item.relative_to(source_dir)
            target_file = target_dir / relative_path

            target_file.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item, target_file)
            logger.debug(f"Copied {relative_path}")


def _should_skip_file(file_path: Path) -> bool:
    """Check if file should be skipped during template copying."""
    skip_patterns = {".git", "__pycache__", ".DS_Store", ".pyc"}
    return any(pattern in str(file_path) for pattern in skip_patterns)


def _replace_tokens(target_dir: Path, tokens: Dict[str, str]) -> None:
    """
    Replace ``{{TOKEN}}`` placeholders in copied text files.

    Args:
        target_dir: Directory containing files to process
        tokens: Dictionary of token replacements
    """
    text_extensions = {".py", ".html", ".css", ".js", ".md", ".toml", ".txt"}

    for file_path in target_dir.rglob("*"):
        if file_path.is_file() and file_path.suffix in text_extensions:
            try:
                content = file_path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logger.warning(f"Skipping binary file: {file_path}")
                continue

            for token, value in tokens.items():
                content = content.replace(f"{{{{{token}}}}}", value)

            file_path.write_text(content, encoding="utf-8")
            logger.debug(f"Processed tokens in {file_path.relative_to(target_dir)}")


def _rename_files(target_dir: Path) -> None:
    for source_name, target_name in RENAMED_FILES.items():
        source = target_dir / source_name
        if source.exists():
            source.rename(target_dir / target_name)


def _install_project(target_dir: Path) -> None:
    """Install the new project in editable mode; failures are reported, not raised."""
    typer.echo("\nInstalling dependencies...")
    try:
        subprocess.run(
            [sys.executable, "-m", "pip", "install", "-e", "."],
            cwd=target_dir,
            check=True,
        )
    except (subprocess.CalledProcessError, OSError) as e:
        logger.warning(f"pip install failed: {e}")
        typer.echo("Failed to install dependencies. Run 'pip install -e .' manually.", err=True)


def _setup_database(target_dir: Path) -> None:
    typer.echo("\nSetting up database...")
    migrations_dir = target_dir / MIGRATIONS_DIR
    migrations_dir.mkdir(parents=True, exist_ok=True)

    async def initialize() -> None:
        async with Database(f"sqlite:///{target_dir / DATABASE_FILE}") as db:
            await MigrationRunner(migrations_dir, db).initialize()

    asyncio.run(initialize())
    typer.echo(f"Created {MIGRATIONS_DIR}/ and {DATABASE_FILE}")


def _print_next_steps(target_dir: Path, skip_install: bool, with_database: bool) -> None:
    typer.echo(f"\nApp created in {target_dir}")
    typer.echo("\nNext steps:")
    typer.echo(f"  cd {target_dir}")
    if skip_install:
        typer.echo("  pip install -e .")
    typer.echo("  cp .env.example .env")
    if not with_database:
        typer.echo("  mkdir migrations          # enable database features")
    typer.echo("  erwinmvc dev")
