"""
{{PROJECT_NAME}} - ErwinMVC application

Run with `erwinmvc dev` or `python server.py`.
"""

import logging
from pathlib import Path

from erwinmvc import Database, MvcAppOptions, create_mvc_app, start_server
from erwinmvc.core.config import database_url, log_level

from app.controllers import HomeController
from app.routes import form_routes, registry

logging.basicConfig(level=log_level())

ROOT = Path(__file__).parent

# Database support is enabled once a migrations/ directory exists
database = Database(database_url()) if (ROOT / "migrations").is_dir() else None

mvc = create_mvc_app(
    MvcAppOptions(
        views_path=str(ROOT / "app" / "views"),
        public_path=str(ROOT / "public"),
        registry=registry,
        database=database,
    )
)
app = mvc.app
app.router.routes[0:0] = form_routes

# Root route - displays the welcome page
app.router.add_route("/", HomeController.index, methods=["GET"], name="home")


if __name__ == "__main__":
    start_server(app)
