"""
ErwinMVC Project Layout

Paths, derived names and manifest editing shared by the generator commands.
All paths are relative to the working directory, which is expected to be
the root of a generated project.
"""

import importlib.util
import keyword
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import List, Optional

from ..core.naming import InvalidNameError, capitalize, pluralize, snake_case, validate_name
from ..core.routing import RouteBinding

logger = logging.getLogger(__name__)

CONTROLLERS_DIR = Path("app") / "controllers"
VIEWS_DIR = Path("app") / "views"
MIGRATIONS_DIR = Path("migrations")
MANIFEST_FILE = Path("app") / "routes.py"
SERVER_FILE = Path("server.py")

IMPORTS_MARKER = "# erwinmvc: controller imports"
REGISTRATIONS_MARKER = "# erwinmvc: controller registrations"
FORM_ROUTES_MARKER = "# erwinmvc: form routes"

# HTML form pages added ahead of the convention routes: (action, path suffix)
FORM_PAGES = (("create", "/create"), ("edit", "/{id}/edit"))


class GeneratorError(Exception):
    """Raised when a generator cannot do its work."""
    pass


@dataclass(frozen=True)
class ResourceNames:
    """Every name a generator derives from a model name."""
    model_name: str
    lower_model_name: str
    controller_name: str
    resource_path: str
    table_name: str
    singular_var: str
    plural_var: str

    @classmethod
    def from_name(cls, name: str) -> "ResourceNames":
        """
        Derive names from a model name such as ``person`` or ``BlogPost``.

        Raises:
            InvalidNameError: If the name is not a plain identifier, or its
                variable names in generated code would be Python keywords
        """
        validate_name(name)
        model_name = capitalize(name)
        lower_model_name = model_name.lower()
        singular_var = snake_case(model_name)
        for var in (singular_var, pluralize(singular_var)):
            if keyword.iskeyword(var):
                raise InvalidNameError(f"Invalid name '{name}': '{var}' is a reserved word in Python")
        return cls(
            model_name=model_name,
            lower_model_name=lower_model_name,
            controller_name=f"{model_name}Controller",
            resource_path=pluralize(lower_model_name),
            table_name=pluralize(singular_var),
            singular_var=singular_var,
            plural_var=pluralize(singular_var),
        )

    def template_context(self) -> dict:
        return {
            "model_name": self.model_name,
            "lower_model_name": self.lower_model_name,
            "controller_name": self.controller_name,
            "resource_path": self.resource_path,
            "table_name": self.table_name,
            "singular_var": self.singular_var,
            "plural_var": self.plural_var,
        }


def controller_path(names: ResourceNames) -> Path:
    return CONTROLLERS_DIR / f"{names.controller_name}.py"


def views_dir(names: ResourceNames) -> Path:
    return VIEWS_DIR / names.resource_path


def find_model_migration(table_name: str, migrations_dir: Path = MIGRATIONS_DIR) -> Optional[Path]:
    """Return the migration that creates ``table_name``, if there is one."""
    if not migrations_dir.is_dir():
        return None

    pattern = re.compile(
        rf"CREATE\s+TABLE\s+(IF\s+NOT\s+EXISTS\s+)?[\"`]?{re.escape(table_name)}[\"`]?\s*\(",
        re.IGNORECASE,
    )
    for sql_file in sorted(migrations_dir.glob("*.sql")):
        if pattern.search(sql_file.read_text(encoding="utf-8")):
            return sql_file
    return None


def form_route_bindings(names: ResourceNames) -> List[RouteBinding]:
    """Bindings for the GET form pages of an HTML resource."""
    return [
        RouteBinding(action=action, method="GET", path=f"/{names.resource_path}{suffix}", handler=None)
        for action, suffix in FORM_PAGES
    ]


def manifest_lines(names: ResourceNames, form_routes: bool = False) -> dict:
    """Lines to add to the manifest, keyed by the marker they go before."""
    controller = names.controller_name
    resource = names.resource_path
    lines = {
        IMPORTS_MARKER: [f"from app.controllers import {controller}"],
        REGISTRATIONS_MARKER: [f'registry.add("{controller}", {controller}, resource="{resource}")'],
        FORM_ROUTES_MARKER: [],
    }
    if form_routes:
        lines[FORM_ROUTES_MARKER] = [
            f'Route("{binding.path}", {controller}.{binding.action}, methods=["GET"], name="{resource}.{binding.action}"),'
            for binding in form_route_bindings(names)
        ]
    return lines


def register_in_manifest(names: ResourceNames, form_routes: bool = False, manifest: Path = MANIFEST_FILE) -> bool:
    """
    Add a controller to the project's route manifest.

    Lines are inserted before the marker comments, with the marker's own
    indentation. A controller that is already registered is left alone.

    Args:
        names: Names of the controller's resource
        form_routes: Also add the ``create``/``edit`` form page routes
        manifest: Manifest file to edit

    Returns:
        True if the manifest was changed
    """
    if not manifest.is_file():
        logger.warning(f"Route manifest not found: {manifest}")
        return False

    content = manifest.read_text(encoding="utf-8")
    registration = f'registry.add("{names.controller_name}",'
    if registration in content:
        logger.info(f"{names.controller_name} is already registered in {manifest}")
        return False

    lines = content.splitlines(keepends=True)
    for marker, additions in manifest_lines(names, form_routes).items():
        lines = _insert_before_marker(lines, marker, additions, manifest)

    manifest.write_text("".join(lines), encoding="utf-8")
    logger.debug(f"Registered {names.controller_name} in {manifest}")
    return True


def _insert_before_marker(lines: List[str], marker: str, additions: List[str], manifest: Path) -> List[str]:
    if not additions:
        return lines
    for index, line in enumerate(lines):
        if line.strip() == marker:
            indent = line[: len(line) - len(line.lstrip())]
            new_lines = [f"{indent}{addition}\n" for addition in additions]
            return lines[:index] + new_lines + lines[index:]
    raise GeneratorError(f"Marker '{marker}' not found in {manifest}")


def load_manifest(project_root: Path, manifest: Path = MANIFEST_FILE) -> ModuleType:
    """
    Import a project's route manifest.

    The project root is put on ``sys.path`` while the manifest and the
    controllers it imports are loaded.

    Raises:
        GeneratorError: If the manifest is missing or fails to import
    """
    manifest_file = project_root / manifest
    if not manifest_file.is_file():
        raise GeneratorError(f"{manifest} not found. Are you in a project directory?")

    spec = importlib.util.spec_from_file_location("erwinmvc_manifest", manifest_file)
    if spec is None or spec.loader is None:
        raise GeneratorError(f"Cannot load {manifest_file}")

    module = importlib.util.module_from_spec(spec)
    sys.path.insert(0, str(project_root))
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise GeneratorError(f"Failed to load {manifest}: {e}") from e
    finally:
        sys.path.remove(str(project_root))
    return module
