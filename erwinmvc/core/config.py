"""
ErwinMVC Configuration

Settings come from the process environment and an optional ``.env`` file in
the working directory. They are read on every call so a running process (or
a test) can change the environment.
"""

from pathlib import Path
from typing import Optional

from starlette.config import Config

DEFAULT_SESSION_SECRET = "default-secret-change-me"
DEFAULT_DATABASE_URL = "sqlite:///./dev.db"
DEFAULT_PORT = 3000


def get_config(env_file: Optional[Path] = None) -> Config:
    """
    Build a Starlette Config bound to the environment and ``.env`` file.

    Args:
        env_file: Explicit env file; defaults to ``./.env`` when it exists
    """
    if env_file is None:
        candidate = Path.cwd() / ".env"
        env_file = candidate if candidate.is_file() else None
    return Config(env_file)


def jwt_secret() -> Optional[str]:
    return get_config()("JWT_SECRET", default=None)


def session_secret() -> str:
    return get_config()("SESSION_SECRET", default=DEFAULT_SESSION_SECRET)


def redis_url() -> Optional[str]:
    return get_config()("REDIS_URL", default=None) or None


def database_url() -> str:
    return get_config()("DATABASE_URL", default=DEFAULT_DATABASE_URL)


def server_port() -> int:
    return get_config()("PORT", cast=int, default=DEFAULT_PORT)


def app_env() -> str:
    return get_config()("APP_ENV", default="development")


def is_production() -> bool:
    return app_env() == "production"


def log_level() -> str:
    return get_config()("LOG_LEVEL", default="INFO").upper()
