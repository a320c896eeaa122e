"""
HomeController

GET /homes (also mounted at / in server.py)
"""

from starlette.requests import Request
from starlette.responses import Response

from erwinmvc import render


async def index(request: Request) -> Response:
    """Display the home page."""
    return render(request, "index.html", {"title": "Welcome"})
