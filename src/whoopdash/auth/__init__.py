"""OAuth2 token persistence and lifecycle for the Whoop API."""

from whoopdash.auth.lifecycle import TokenManager
from whoopdash.auth.store import TokenStore
from whoopdash.auth.tokens import TokenRecord

__all__ = [
    "TokenManager",
    "TokenRecord",
    "TokenStore",
]
