"""
ErwinMVC Dev Command

Run the project's ``server:app`` under Uvicorn with auto reload.
"""

import logging
from pathlib import Path
from typing import List, Optional

import uvicorn

from ...core import config
from ..project import SERVER_FILE, GeneratorError

logger = logging.getLogger(__name__)

APP_IMPORT = "server:app"
WATCHED_DIRS = ("app",)


class DevServer:
    """Development server for a generated project."""

    def __init__(
        self,
        host: str = "localhost",
        port: Optional[int] = None,
        reload: bool = True,
        verbose: bool = False,
        project_root: Optional[Path] = None,
    ):
        self.host = host
        self.port = port or config.server_port()
        self.reload = reload
        self.verbose = verbose
        self.project_root = project_root or Path.cwd()

        self._setup_logging()

    def _setup_logging(self) -> None:
        """Configure logging levels based on verbose mode."""
        if self.verbose:
            logging.getLogger("erwinmvc").setLevel(logging.DEBUG)
        else:
            logging.getLogger("watchfiles").setLevel(logging.WARNING)

    def reload_dirs(self) -> List[str]:
        dirs = [self.project_root / name for name in WATCHED_DIRS]
        return [str(path) for path in dirs if path.is_dir()] or [str(self.project_root)]

    def start(self) -> None:
        """
        Serve the application until interrupted.

        Raises:
            GeneratorError: If the project has no server.py
        """
        if not (self.project_root / SERVER_FILE).is_file():
            raise GeneratorError(f"{SERVER_FILE} not found. Are you in a project directory?")

        logger.info(f"Starting development server on http://{self.host}:{self.port}")
        uvicorn.run(
            APP_IMPORT,
            host=self.host,
            port=self.port,
            reload=self.reload,
            reload_dirs=self.reload_dirs() if self.reload else None,
            app_dir=str(self.project_root),
            log_level="debug" if self.verbose else config.log_level().lower(),
        )


def start_dev_server(host: str = "localhost", port: Optional[int] = None, reload: bool = True, verbose: bool = False) -> None:
    """
    Start the development server for the project in the working directory.

    Args:
        host: Host to bind to
        port: Port to bind to; defaults to PORT or 3000
        reload: Restart the server when files change
        verbose: Enable debug logging
    """
    DevServer(host=host, port=port, reload=reload, verbose=verbose).start()
