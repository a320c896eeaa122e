"""
Shared fixtures for CLI tests
"""

import sys

import pytest

from ..commands.init import init_app

PROJECT_MODULES = ("server", "app", "erwinmvc_manifest")


def forget_project_modules():
    """Drop modules imported from a generated project so the next one loads fresh."""
    for name in list(sys.modules):
        if name in PROJECT_MODULES or name.startswith("app."):
            del sys.modules[name]


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A freshly scaffolded project as the working directory."""
    for name in ("REDIS_URL", "APP_ENV", "JWT_SECRET", "SESSION_SECRET"):
        monkeypatch.delenv(name, raising=False)

    project_dir = tmp_path / "blog"
    init_app(project_dir, skip_install=True)
    monkeypatch.chdir(project_dir)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{project_dir / 'dev.db'}")

    forget_project_modules()
    yield project_dir
    forget_project_modules()
