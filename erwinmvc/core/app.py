"""
ErwinMVC Application Factory

Assembles a Starlette application with the MVC conventions: security
headers, CORS, request logging, sessions, static files, Jinja2 views, an
explicitly owned database and convention routes for every controller.
"""

import contextlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Mount
from starlette.staticfiles import StaticFiles
from starlette.templating import Jinja2Templates

from . import config
from .db import Database
from .middleware import RequestLoggingMiddleware, SecurityHeadersConfig, SecurityHeadersMiddleware
from .routing import ControllerRegistry, RouteBinding, register_controllers
from .sessions import configure_sessions

logger = logging.getLogger(__name__)


@dataclass
class MvcAppOptions:
    """Options for :func:`create_mvc_app`."""
    # Directory for Jinja2 views
    views_path: str = "app/views"
    # Directory for static files, served under /static
    public_path: str = "public"
    # Scanned for *Controller.py files when no registry is given
    controllers_path: str = "app/controllers"
    # Controllers to register; takes precedence over controllers_path
    registry: Optional[ControllerRegistry] = None
    # Redis sessions; defaults to on when REDIS_URL is set
    enable_redis: Optional[bool] = None
    cors_options: Dict[str, Any] = field(default_factory=lambda: {"allow_origins": ["*"]})
    security_headers: Optional[SecurityHeadersConfig] = None
    # Opened on startup and closed on shutdown when given
    database: Optional[Database] = None
    debug: bool = False


@dataclass
class MvcApp:
    """The assembled application and the resources it owns."""
    app: Starlette
    redis_client: Optional[Any] = None
    routes: List[RouteBinding] = field(default_factory=list)


def create_mvc_app(options: Optional[MvcAppOptions] = None) -> MvcApp:
    """
    Create and configure a Starlette MVC application.

    Args:
        options: Application options; defaults suit a scaffolded project

    Returns:
        MvcApp with the Starlette app, the Redis client (if any) and the
        registered convention routes

    Example:
        >>> mvc = create_mvc_app(MvcAppOptions(views_path="app/views"))
        >>> start_server(mvc.app)
    """
    options = options or MvcAppOptions()
    sessions = configure_sessions(options.enable_redis)
    database = options.database
    redis_client = sessions.redis_client

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        if database is not None:
            await database.connect()
        try:
            yield
        finally:
            if database is not None:
                await database.close()
            if redis_client is not None:
                await redis_client.aclose()

    middleware = [
        Middleware(SecurityHeadersMiddleware, config=options.security_headers),
        Middleware(CORSMiddleware, **options.cors_options),
        Middleware(RequestLoggingMiddleware),
        sessions.middleware,
    ]

    routes = []
    public_dir = Path(options.public_path)
    if public_dir.is_dir():
        routes.append(Mount("/static", StaticFiles(directory=public_dir), name="static"))
    else:
        logger.debug(f"Public directory not found, static files disabled: {public_dir}")

    app = Starlette(debug=options.debug, routes=routes, middleware=middleware, lifespan=lifespan)
    app.state.templates = Jinja2Templates(directory=str(Path(options.views_path)))
    app.state.db = database

    if options.registry is not None:
        bindings = options.registry.register_all(app.router)
    else:
        bindings = register_controllers(app.router, options.controllers_path)

    logger.info(f"Application ready with {len(bindings)} convention routes ({sessions.backend} sessions)")
    return MvcApp(app=app, redis_client=redis_client, routes=bindings)


def render(request: Request, template: str, context: Optional[Mapping[str, Any]] = None, status_code: int = 200) -> Response:
    """
    Render a view from the application's views directory.

    Args:
        request: Current request
        template: Template path relative to the views directory
        context: Template variables
        status_code: Response status
    """
    templates: Jinja2Templates = request.app.state.templates
    return templates.TemplateResponse(request, template, dict(context or {}), status_code=status_code)


def start_server(app: Starlette, port: Optional[int] = None, host: str = "0.0.0.0") -> None:
    """
    Serve the application with Uvicorn.

    Args:
        app: The Starlette application
        port: Port to bind; defaults to PORT or 3000
        host: Interface to bind
    """
    port = port or config.server_port()
    logger.info(f"Server listening on port {port}")
    uvicorn.run(app, host=host, port=port, log_level=config.log_level().lower())
