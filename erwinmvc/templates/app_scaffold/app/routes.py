"""
Controller manifest for {{PROJECT_NAME}}.

The generators add imports, registrations and form routes before the
marker comments. Entries can also be edited by hand.
"""

from starlette.routing import Route

from erwinmvc import ControllerRegistry

from app.controllers import HomeController
# erwinmvc: controller imports

registry = ControllerRegistry()
registry.add("HomeController", HomeController, resource="homes")
# erwinmvc: controller registrations

# Registered ahead of the convention routes so /<resource>/create is not
# taken for a show route.
form_routes = [
    # erwinmvc: form routes
]
