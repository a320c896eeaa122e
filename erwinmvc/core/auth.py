"""
ErwinMVC Authentication

Password hashing with bcrypt, JWT signing with PyJWT and a bearer-token
decorator for Starlette endpoints.
"""

import functools
import inspect
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Union

import bcrypt
import jwt
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from . import config

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10
JWT_ALGORITHM = "HS256"

_DURATION = re.compile(r"^\s*(\d+)\s*([smhd])\s*$")
_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}

ExpiresIn = Union[int, float, str, timedelta]


class AuthConfigurationError(RuntimeError):
    """Raised when authentication is used without JWT_SECRET configured."""
    pass


class TokenError(Exception):
    """Raised when a token is malformed, expired or badly signed."""
    pass


def hash_password(plain: str) -> str:
    """Hash a plain text password with bcrypt."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Check a plain text password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash
        return False


def _require_secret() -> str:
    secret = config.jwt_secret()
    if not secret:
        raise AuthConfigurationError("JWT_SECRET environment variable is not set")
    return secret


def _to_timedelta(expires_in: ExpiresIn) -> timedelta:
    if isinstance(expires_in, timedelta):
        return expires_in
    if isinstance(expires_in, (int, float)):
        return timedelta(seconds=expires_in)

    match = _DURATION.match(expires_in)
    if not match:
        raise ValueError(f"Invalid expiry '{expires_in}', expected e.g. '30s', '15m', '1h' or '7d'")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def sign_token(payload: Dict[str, Any], expires_in: ExpiresIn = "1h") -> str:
    """
    Sign a JWT for the given payload.

    Args:
        payload: Claims to include in the token
        expires_in: Lifetime in seconds, as a timedelta, or as "30s"/"15m"/"1h"/"7d"

    Returns:
        Encoded token

    Raises:
        AuthConfigurationError: If JWT_SECRET is not set
    """
    secret = _require_secret()
    now = datetime.now(timezone.utc)
    claims = {**payload, "iat": now, "exp": now + _to_timedelta(expires_in)}
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT.

    Raises:
        AuthConfigurationError: If JWT_SECRET is not set
        TokenError: If the token is invalid or expired
    """
    secret = _require_secret()
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError as e:
        raise TokenError(str(e)) from e


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    return header[7:].strip() if header.startswith("Bearer ") else ""


def authenticate(endpoint: Callable[[Request], Any]) -> Callable[[Request], Any]:
    """
    Require a valid bearer token on a Starlette endpoint.

    On success the decoded payload is stored on ``request.state.user``.

    Example:
        >>> @authenticate
        ... async def profile(request):
        ...     return JSONResponse(request.state.user)
    """

    @functools.wraps(endpoint)
    async def wrapper(request: Request) -> Response:
        token = _bearer_token(request)
        if not token:
            return JSONResponse({"error": "Unauthorized"}, status_code=401)

        try:
            request.state.user = verify_token(token)
        except TokenError as e:
            logger.debug(f"Rejected token for {request.url.path}: {e}")
            return JSONResponse({"error": "Invalid token"}, status_code=401)

        if inspect.iscoroutinefunction(endpoint):
            return await endpoint(request)
        return await run_in_threadpool(endpoint, request)

    return wrapper
