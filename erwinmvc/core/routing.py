"""
ErwinMVC Convention Routing

Binds controller handlers to CRUD routes by convention and discovers
controllers from a directory or an explicit registry.

Convention:
    GET    /<resource>        -> index
    GET    /<resource>/{id}   -> show
    POST   /<resource>        -> store
    PUT    /<resource>/{id}   -> update
    DELETE /<resource>/{id}   -> destroy
"""

import importlib.util
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from .naming import controller_name_to_resource

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]
HandlerSet = Dict[str, Handler]

# (action, HTTP method, path suffix) in registration order
ACTION_ROUTES: Tuple[Tuple[str, str, str], ...] = (
    ("index", "GET", ""),
    ("show", "GET", "/{id}"),
    ("store", "POST", ""),
    ("update", "PUT", "/{id}"),
    ("destroy", "DELETE", "/{id}"),
)

ACTION_KEYS: Tuple[str, ...] = tuple(action for action, _, _ in ACTION_ROUTES)

CONTROLLER_FILE_PATTERN = "*Controller.py"


class RouteTable(Protocol):
    """Anything that can register routes the way a Starlette app or router does."""

    def add_route(
        self,
        path: str,
        route: Handler,
        methods: Optional[List[str]] = None,
        name: Optional[str] = None,
        include_in_schema: bool = True,
    ) -> None:
        ...


@dataclass(frozen=True)
class RouteBinding:
    """A single (method, path, handler) triple produced for a controller action."""
    action: str
    method: str
    path: str
    handler: Handler


class DuplicateControllerError(ValueError):
    """Raised when a controller name is added to a registry twice."""
    pass


def handler_set(controller: Union[Mapping[str, Any], ModuleType, object]) -> HandlerSet:
    """
    Extract the action handlers from a controller.

    Only the five action keys are considered and only callables are kept.
    Anything else a controller exports is ignored.

    Args:
        controller: A mapping of action names to handlers, or a module or
            object exposing them as attributes

    Returns:
        Mapping of present action keys to handlers
    """
    handlers: HandlerSet = {}
    for action in ACTION_KEYS:
        if isinstance(controller, Mapping):
            handler = controller.get(action)
        else:
            handler = getattr(controller, action, None)

        if handler is None:
            continue
        if not callable(handler):
            logger.warning(f"Ignoring non-callable '{action}' handler on {controller!r}")
            continue
        handlers[action] = handler
    return handlers


def _normalize_base_path(base_path: str) -> str:
    base_path = base_path.rstrip("/")
    return base_path if base_path.startswith("/") else f"/{base_path}"


def build_route_bindings(resource: str, handlers: Mapping[str, Handler]) -> List[RouteBinding]:
    """
    Compute the route bindings for a resource without registering them.

    Bindings always come out in the fixed convention order, whatever order
    the handlers were given in.

    Args:
        resource: Resource path segment (e.g. "users") or base path ("/users")
        handlers: Mapping of action keys to handlers

    Returns:
        One binding per action key present in ``handlers``
    """
    base_path = _normalize_base_path(resource)
    return [
        RouteBinding(action=action, method=method, path=f"{base_path}{suffix}", handler=handlers[action])
        for action, method, suffix in ACTION_ROUTES
        if action in handlers
    ]


def register_convention_routes(
    app: RouteTable,
    resource: str,
    handlers: Mapping[str, Handler],
) -> List[RouteBinding]:
    """
    Register convention routes for a resource on an HTTP app.

    Errors raised by the app (for example a rejected duplicate route) are
    not caught here.

    Args:
        app: Starlette application, router, or any other RouteTable
        resource: Resource path segment (e.g. "users")
        handlers: Mapping of action keys to handlers

    Returns:
        The bindings that were registered, in registration order
    """
    name_prefix = resource.strip("/").replace("/", ".")
    bindings = build_route_bindings(resource, handlers)

    for binding in bindings:
        app.add_route(
            binding.path,
            binding.handler,
            methods=[binding.method],
            name=f"{name_prefix}.{binding.action}",
        )
        logger.debug(f"Registered route: {binding.method} {binding.path} -> {binding.action}")

    return bindings


def register_controller(app: RouteTable, base_path: str, controller: Any) -> List[RouteBinding]:
    """
    Register a single controller under a custom base path.

    Args:
        app: Starlette application or router
        base_path: Base path, with or without a leading slash
        controller: Mapping, module or object exposing action handlers

    Returns:
        The registered bindings
    """
    return register_convention_routes(app, _normalize_base_path(base_path), handler_set(controller))


@dataclass(frozen=True)
class ControllerEntry:
    """A controller known to a registry."""
    name: str
    resource: str
    handlers: HandlerSet


class ControllerRegistry:
    """
    Explicit mapping of controllers to resources.

    Generated applications populate a registry from a static manifest
    (``app/routes.py``). ``load_directory`` remains available for projects
    that prefer scanning a controllers directory at startup.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, ControllerEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ControllerEntry]:
        return iter(self._entries.values())

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def add(self, name: str, controller: Any, resource: Optional[str] = None) -> ControllerEntry:
        """
        Add a controller to the registry.

        Args:
            name: Controller name (e.g. "UserController")
            controller: Mapping, module or object exposing action handlers
            resource: Resource path segment; derived from ``name`` when omitted

        Returns:
            The new registry entry

        Raises:
            DuplicateControllerError: If ``name`` is already registered
        """
        if name in self._entries:
            raise DuplicateControllerError(f"Controller {name} is already registered")

        entry = ControllerEntry(
            name=name,
            resource=resource or controller_name_to_resource(name),
            handlers=handler_set(controller),
        )
        self._entries[name] = entry
        logger.debug(f"Added controller {name} -> /{entry.resource}")
        return entry

    def load_directory(self, controllers_dir: Union[str, Path]) -> List[str]:
        """
        Discover ``*Controller.py`` modules in a directory and add them.

        Files are processed in sorted order. A module that fails to load is
        logged and skipped; a missing directory is logged and ignored.

        Args:
            controllers_dir: Directory containing controller modules

        Returns:
            Names of the controllers that were added
        """
        controllers_dir = Path(controllers_dir)
        if not controllers_dir.is_dir():
            logger.warning(f"Controllers directory not found: {controllers_dir}")
            return []

        loaded = []
        for controller_file in sorted(controllers_dir.glob(CONTROLLER_FILE_PATTERN)):
            controller_name = controller_file.stem
            try:
                module = _load_controller_module(controller_file)
                self.add(controller_name, module)
                loaded.append(controller_name)
            except Exception as e:
                logger.error(f"Failed to load controller {controller_file.name}: {e}")

        logger.info(f"Loaded {len(loaded)} controllers from {controllers_dir}")
        return loaded

    def bindings(self) -> List[Tuple[ControllerEntry, List[RouteBinding]]]:
        """Compute bindings for every entry without registering anything."""
        return [(entry, build_route_bindings(entry.resource, entry.handlers)) for entry in self]

    def register_all(self, app: RouteTable) -> List[RouteBinding]:
        """
        Register every controller's convention routes on ``app``.

        Returns:
            All registered bindings, grouped by controller in insertion order
        """
        registered: List[RouteBinding] = []
        for entry in self:
            registered.extend(register_convention_routes(app, entry.resource, entry.handlers))
            logger.info(f"Registered controller: {entry.name} -> /{entry.resource}")
        return registered


def _load_controller_module(controller_file: Path) -> ModuleType:
    """Import a controller module straight from its file."""
    module_name = f"erwinmvc_controllers.{controller_file.stem}"
    spec = importlib.util.spec_from_file_location(module_name, controller_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot create import spec for {controller_file}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module


def register_controllers(app: RouteTable, controllers_dir: Union[str, Path]) -> List[RouteBinding]:
    """
    Discover controllers in a directory and register their routes.

    Args:
        app: Starlette application or router
        controllers_dir: Directory containing ``*Controller.py`` modules

    Returns:
        All registered bindings
    """
    registry = ControllerRegistry()
    registry.load_directory(controllers_dir)
    return registry.register_all(app)


def describe_bindings(bindings: Sequence[RouteBinding]) -> List[str]:
    """Format bindings as aligned ``METHOD /path -> action`` lines."""
    if not bindings:
        return []
    width = max(len(binding.path) for binding in bindings)
    return [f"{binding.method:<7}{binding.path:<{width}}  -> {binding.action}" for binding in bindings]
