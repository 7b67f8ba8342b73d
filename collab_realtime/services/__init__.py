"""Service layer: identity verification and Redis pub/sub."""

from .auth_service import TokenData, create_access_token, decode_access_token
from .redis_service import RedisService, redis_service

__all__ = [
    "TokenData",
    "create_access_token",
    "decode_access_token",
    "RedisService",
    "redis_service",
]
