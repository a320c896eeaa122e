"""
ErwinMVC Controller Generator

Implementation of `erwinmvc generate controller <name>`: write a JSON CRUD
controller, its views and its manifest entry.
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer

from ...core.routing import ACTION_KEYS, build_route_bindings, describe_bindings
from ..project import CONTROLLERS_DIR, GeneratorError, ResourceNames, controller_path, register_in_manifest, views_dir
from ..templates import TemplateRenderer

logger = logging.getLogger(__name__)

CONTROLLER_TEMPLATE = "controller.py.j2"
VIEW_TEMPLATE = "view.html.j2"
CONTROLLER_VIEWS = ("index", "show")


def generate_controller(name: str, views: bool = True, renderer: Optional[TemplateRenderer] = None) -> Path:
    """
    Generate a controller with the five convention actions.

    Args:
        name: Model name, e.g. "Post" (creates PostController)
        views: Also generate index and show views
        renderer: Template renderer; defaults to the packaged templates

    Returns:
        Path to the controller file

    Raises:
        GeneratorError: If the controller already exists
    """
    renderer = renderer or TemplateRenderer()
    names = ResourceNames.from_name(name)
    typer.echo(f"Generating controller: {names.controller_name}")

    target = controller_path(names)
    if target.exists():
        raise GeneratorError(f"Controller {target} already exists")

    CONTROLLERS_DIR.mkdir(parents=True, exist_ok=True)
    target.write_text(renderer.render(CONTROLLER_TEMPLATE, **names.template_context()), encoding="utf-8")
    typer.echo(f"Created {target}")

    if views:
        for view_path in write_generic_views(names, renderer, CONTROLLER_VIEWS):
            typer.echo(f"Created {view_path}")

    if register_in_manifest(names):
        typer.echo(f"Registered {names.controller_name} in app/routes.py")

    typer.echo("\nRoutes:")
    for line in describe_bindings(build_route_bindings(names.resource_path, dict.fromkeys(ACTION_KEYS, None))):
        typer.echo(f"  {line}")
    return target


def write_generic_views(names: ResourceNames, renderer: TemplateRenderer, view_types) -> List[Path]:
    """
    Render views from the generic view template. Existing views are kept.

    Returns:
        Paths of the views that were written
    """
    target_dir = views_dir(names)
    target_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for view_type in view_types:
        view_path = target_dir / f"{view_type}.html"
        if view_path.exists():
            logger.info(f"View {view_path} already exists, skipping")
            continue
        view_path.write_text(
            renderer.render(VIEW_TEMPLATE, view_type=view_type, **names.template_context()),
            encoding="utf-8",
        )
        written.append(view_path)
    return written
