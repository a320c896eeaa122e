"""
ErwinMVC Generator Templates

Locates the packaged templates and renders generator templates with Jinja2.

Generator templates use ``[[ ]]``, ``[% %]`` and ``[# #]`` delimiters so
the views they produce can contain ordinary ``{{ }}`` Jinja syntax.
"""

import importlib.resources as resources
import logging
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

logger = logging.getLogger(__name__)


def get_templates_dir() -> Path:
    """Path to the templates shipped with the package."""
    return Path(str(resources.files("erwinmvc") / "templates"))


class TemplateRenderer:
    """Renders generator templates from a templates directory."""

    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = Path(templates_dir) if templates_dir else get_templates_dir()
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            block_start_string="[%",
            block_end_string="%]",
            variable_start_string="[[",
            variable_end_string="]]",
            comment_start_string="[#",
            comment_end_string="#]",
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )

    def has_template(self, name: str) -> bool:
        return (self.templates_dir / name).is_file()

    def first_available(self, *names: str) -> Optional[str]:
        """Return the first of ``names`` that exists, or None."""
        for name in names:
            if self.has_template(name):
                return name
        return None

    def render(self, name: str, **context: Any) -> str:
        """
        Render a template by name.

        Raises:
            TemplateNotFound: If the template does not exist
        """
        logger.debug(f"Rendering template {name}")
        return self.env.get_template(name).render(**context)


__all__ = ["TemplateRenderer", "TemplateNotFound", "get_templates_dir"]
