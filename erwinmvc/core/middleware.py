"""
ErwinMVC Middleware

Request logging with response timing, and default security headers for
every response.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log each request and add an ``X-Response-Time`` header.
    """

    def __init__(self, app: ASGIApp, header_name: str = "X-Response-Time"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.perf_counter()
        logger.debug(f"Request started: {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Error processing request {request.method} {request.url.path}: {e}")
            raise

        elapsed = f"{(time.perf_counter() - start_time) * 1000:.2f}ms"
        response.headers[self.header_name] = elapsed
        logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed}")
        return response


@dataclass(frozen=True)
class SecurityHeadersConfig:
    """Header values applied to every response. ``None`` disables a header."""
    x_frame_options: Optional[str] = "DENY"
    x_content_type_options: Optional[str] = "nosniff"
    referrer_policy: Optional[str] = "strict-origin-when-cross-origin"
    content_security_policy: Optional[str] = (
        "default-src 'self'; base-uri 'self'; frame-ancestors 'none'; object-src 'none'"
    )
    cross_origin_opener_policy: Optional[str] = "same-origin"
    strict_transport_security: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        values = {
            "X-Frame-Options": self.x_frame_options,
            "X-Content-Type-Options": self.x_content_type_options,
            "Referrer-Policy": self.referrer_policy,
            "Content-Security-Policy": self.content_security_policy,
            "Cross-Origin-Opener-Policy": self.cross_origin_opener_policy,
            "Strict-Transport-Security": self.strict_transport_security,
        }
        return {name: value for name, value in values.items() if value}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to responses. Headers already set by the endpoint
    are left alone.
    """

    def __init__(self, app: ASGIApp, config: Optional[SecurityHeadersConfig] = None):
        super().__init__(app)
        self.security_headers = (config or SecurityHeadersConfig()).headers()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in self.security_headers.items():
            if name not in response.headers:
                response.headers[name] = value
        return response
