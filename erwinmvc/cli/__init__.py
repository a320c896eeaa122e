"""
ErwinMVC CLI Package

A command-line interface for scaffolding ErwinMVC applications and
generating their models, controllers and views.
"""

from .main import app

__all__ = ["app"]
