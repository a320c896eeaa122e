"""
ErwinMVC - convention-based MVC toolkit for Starlette

ErwinMVC provides:
- erwinmvc CLI for scaffolding apps, models, controllers and views
- create_mvc_app() with sessions, security headers, CORS and Jinja2 views
- Convention routing from controllers to CRUD routes
- bcrypt passwords, JWT tokens and an authenticate decorator
- An explicitly owned SQLite database with SQL migrations
"""

from .core.app import MvcApp, MvcAppOptions, create_mvc_app, render, start_server
from .core.auth import authenticate, hash_password, sign_token, verify_password, verify_token
from .core.db import Database
from .core.migrations import MigrationRunner
from .core.naming import controller_name_to_resource, pluralize
from .core.routing import (
    ControllerRegistry,
    RouteBinding,
    register_controller,
    register_controllers,
    register_convention_routes,
)

__version__ = "0.2.0"

__all__ = [
    "MvcApp",
    "MvcAppOptions",
    "create_mvc_app",
    "render",
    "start_server",
    "authenticate",
    "hash_password",
    "verify_password",
    "sign_token",
    "verify_token",
    "Database",
    "MigrationRunner",
    "pluralize",
    "controller_name_to_resource",
    "ControllerRegistry",
    "RouteBinding",
    "register_controller",
    "register_controllers",
    "register_convention_routes",
]
