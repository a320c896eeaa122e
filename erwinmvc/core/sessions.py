"""
ErwinMVC Sessions

Chooses the session backend for an application: Redis when it is enabled
and reachable, Starlette's signed-cookie sessions otherwise.
"""

import json
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Optional

import itsdangerous
import redis
import redis.asyncio
from itsdangerous.exc import BadSignature
from starlette.datastructures import MutableHeaders
from starlette.middleware import Middleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from . import config

logger = logging.getLogger(__name__)

SESSION_PREFIX = "mvc:"
SESSION_MAX_AGE = 60 * 60 * 24  # 24 hours
SESSION_COOKIE = "session"


class RedisSessionMiddleware:
    """
    Server-side sessions stored in Redis.

    The cookie only carries a signed session id; the session dict lives
    under ``<prefix><id>`` with the cookie's max age as TTL. Empty sessions
    are never written.
    """

    def __init__(
        self,
        app: ASGIApp,
        client: "redis.asyncio.Redis",
        secret_key: str,
        session_cookie: str = SESSION_COOKIE,
        max_age: int = SESSION_MAX_AGE,
        prefix: str = SESSION_PREFIX,
        path: str = "/",
        same_site: str = "lax",
        https_only: bool = False,
    ):
        self.app = app
        self.client = client
        self.signer = itsdangerous.TimestampSigner(str(secret_key))
        self.session_cookie = session_cookie
        self.max_age = max_age
        self.prefix = prefix
        self.path = path
        self.security_flags = f"httponly; samesite={same_site}"
        if https_only:
            self.security_flags += "; secure"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        connection = HTTPConnection(scope)
        session_id = self._unsign(connection.cookies.get(self.session_cookie))
        scope["session"] = await self._load(session_id) if session_id else {}
        had_session = bool(scope["session"])

        async def send_wrapper(message: Message) -> None:
            nonlocal session_id
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                if scope["session"]:
                    session_id = session_id or secrets.token_urlsafe(32)
                    await self.client.set(
                        self.prefix + session_id, json.dumps(scope["session"]), ex=self.max_age
                    )
                    signed = self.signer.sign(session_id).decode("utf-8")
                    headers.append(
                        "Set-Cookie",
                        f"{self.session_cookie}={signed}; path={self.path}; "
                        f"Max-Age={self.max_age}; {self.security_flags}",
                    )
                elif had_session and session_id:
                    await self.client.delete(self.prefix + session_id)
                    headers.append(
                        "Set-Cookie",
                        f"{self.session_cookie}=null; path={self.path}; "
                        f"expires=Thu, 01 Jan 1970 00:00:00 GMT; {self.security_flags}",
                    )
            await send(message)

        await self.app(scope, receive, send_wrapper)

    def _unsign(self, cookie: Optional[str]) -> Optional[str]:
        if not cookie:
            return None
        try:
            return self.signer.unsign(cookie.encode("utf-8"), max_age=self.max_age).decode("utf-8")
        except BadSignature:
            return None

    async def _load(self, session_id: str) -> dict:
        raw = await self.client.get(self.prefix + session_id)
        if not raw:
            return {}
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unreadable session {session_id[:8]}...")
            return {}


@dataclass
class SessionSetup:
    """The chosen session middleware and, for Redis, the client it uses."""
    middleware: Middleware
    redis_client: Optional[Any] = None

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client is not None else "cookie"


def _redis_available(url: str) -> bool:
    ping_client = None
    try:
        ping_client = redis.Redis.from_url(url, socket_connect_timeout=2)
        ping_client.ping()
        return True
    except (redis.RedisError, ValueError) as e:
        logger.warning(f"Failed to connect to Redis, using cookie sessions: {e}")
        return False
    finally:
        if ping_client is not None:
            ping_client.close()


def configure_sessions(enable_redis: Optional[bool] = None) -> SessionSetup:
    """
    Pick the session middleware for a new application.

    Args:
        enable_redis: Force Redis on or off; by default Redis is used when
            REDIS_URL is set

    Returns:
        SessionSetup describing the middleware to install
    """
    url = config.redis_url()
    if enable_redis is None:
        enable_redis = url is not None

    secret_key = config.session_secret()
    if secret_key == config.DEFAULT_SESSION_SECRET and config.is_production():
        logger.warning("SESSION_SECRET is not set; using the default secret in production")
    https_only = config.is_production()

    if enable_redis and not url:
        logger.warning("Redis sessions requested but REDIS_URL is not set; using cookie sessions")

    if enable_redis and url and _redis_available(url):
        client = redis.asyncio.Redis.from_url(url)
        logger.info("Using Redis session store")
        return SessionSetup(
            middleware=Middleware(
                RedisSessionMiddleware,
                client=client,
                secret_key=secret_key,
                https_only=https_only,
            ),
            redis_client=client,
        )

    return SessionSetup(
        middleware=Middleware(
            SessionMiddleware,
            secret_key=secret_key,
            session_cookie=SESSION_COOKIE,
            max_age=SESSION_MAX_AGE,
            https_only=https_only,
        )
    )
