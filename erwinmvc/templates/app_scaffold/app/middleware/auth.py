"""
Auth helpers for routes.

Authentication needs JWT_SECRET in .env; see README.md.
"""

from erwinmvc import authenticate, hash_password, sign_token, verify_password

__all__ = ["authenticate", "hash_password", "sign_token", "verify_password"]
