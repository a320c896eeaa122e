"""
ErwinMVC Resource Generator

Implementation of `erwinmvc generate resource <name>`: model, controller,
views and routes in one go. Parts that already exist are skipped.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import typer

from ...core.routing import ACTION_KEYS, build_route_bindings, describe_bindings
from ..project import (
    CONTROLLERS_DIR,
    GeneratorError,
    MIGRATIONS_DIR,
    ResourceNames,
    controller_path,
    find_model_migration,
    form_route_bindings,
    register_in_manifest,
    views_dir,
)
from ..templates import TemplateRenderer
from .controller import CONTROLLER_TEMPLATE, VIEW_TEMPLATE
from .model import run_migrations, write_model_migration

logger = logging.getLogger(__name__)

RESOURCE_CONTROLLER_TEMPLATE = "controller_resource.py.j2"
RESOURCE_VIEWS = ("index", "show", "create", "edit")


@dataclass
class ResourceOptions:
    skip_model: bool = False
    skip_controller: bool = False
    skip_views: bool = False
    skip_migrate: bool = False
    api_only: bool = False


@dataclass
class ResourceResult:
    """Files written by a resource generation."""
    migration: Optional[Path] = None
    controller: Optional[Path] = None
    views: List[Path] = field(default_factory=list)
    registered: bool = False


def generate_resource(
    name: str,
    options: Optional[ResourceOptions] = None,
    renderer: Optional[TemplateRenderer] = None,
) -> ResourceResult:
    """
    Generate a complete resource: model + controller + views.

    Args:
        name: Model name, e.g. "Person"
        options: Parts to skip and API-only mode
        renderer: Template renderer; defaults to the packaged templates

    Returns:
        ResourceResult listing what was created
    """
    options = options or ResourceOptions()
    renderer = renderer or TemplateRenderer()
    names = ResourceNames.from_name(name)
    result = ResourceResult()

    typer.echo(f"\nGenerating resource: {names.model_name}\n")

    if not options.skip_model:
        result.migration = _generate_model(names, renderer, options.skip_migrate)

    if not options.skip_controller:
        result.controller = _generate_controller(names, renderer, options.api_only)
        result.registered = register_in_manifest(names, form_routes=not options.api_only)

    if not options.skip_views and not options.api_only:
        result.views = _generate_views(names, renderer)

    _print_summary(names, options)
    return result


def _generate_model(names: ResourceNames, renderer: TemplateRenderer, skip_migrate: bool) -> Optional[Path]:
    if not MIGRATIONS_DIR.is_dir():
        typer.echo(f"Skipping model (no {MIGRATIONS_DIR}/ directory found)")
        typer.echo(f"Create {MIGRATIONS_DIR}/ first to enable database features\n")
        return None

    if find_model_migration(names.table_name) is not None:
        typer.echo(f"Model {names.model_name} already exists, skipping...")
        return None

    migration_file = write_model_migration(names, renderer)
    typer.echo(f"Created migration {MIGRATIONS_DIR / migration_file.name}")

    if not skip_migrate:
        run_migrations()
    return migration_file


def _generate_controller(names: ResourceNames, renderer: TemplateRenderer, api_only: bool) -> Optional[Path]:
    target = controller_path(names)
    if target.exists():
        typer.echo(f"Controller {target.name} already exists, skipping...")
        return None

    template = CONTROLLER_TEMPLATE if api_only else RESOURCE_CONTROLLER_TEMPLATE
    template = renderer.first_available(template, CONTROLLER_TEMPLATE)
    if template is None:
        raise GeneratorError("Controller template not found")

    CONTROLLERS_DIR.mkdir(parents=True, exist_ok=True)
    target.write_text(renderer.render(template, **names.template_context()), encoding="utf-8")
    typer.echo(f"Created {target}")
    return target


def _generate_views(names: ResourceNames, renderer: TemplateRenderer) -> List[Path]:
    target_dir = views_dir(names)
    target_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for view_type in RESOURCE_VIEWS:
        view_path = target_dir / f"{view_type}.html"
        if view_path.exists():
            typer.echo(f"View {view_path} already exists, skipping...")
            continue

        # Per-view template first, generic fallback
        template = renderer.first_available(f"views/{view_type}.html.j2", VIEW_TEMPLATE)
        if template is None:
            logger.warning(f"No template for view {view_type}, skipping")
            continue

        view_path.write_text(
            renderer.render(template, view_type=view_type, **names.template_context()),
            encoding="utf-8",
        )
        typer.echo(f"Created {view_path}")
        written.append(view_path)
    return written


def _print_summary(names: ResourceNames, options: ResourceOptions) -> None:
    typer.echo(f"\nResource {names.model_name} generated successfully!")
    typer.echo("\nRoutes:")
    bindings = build_route_bindings(names.resource_path, dict.fromkeys(ACTION_KEYS, None))
    if not options.api_only:
        bindings = form_route_bindings(names) + bindings
    for line in describe_bindings(bindings):
        typer.echo(f"  {line}")

    if options.skip_model or not MIGRATIONS_DIR.is_dir():
        return
    typer.echo(f"\nAdd your columns to the {names.table_name} migration and to FIELDS in {names.controller_name}.")
