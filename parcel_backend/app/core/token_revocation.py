"""
Token Revocation System using Redis.

Implements token blacklisting to immediately invalidate JWT tokens on
logout. The redis client is opened in the app's `lifespan` and handed
to request handlers through `get_redis`.
"""

import logging
import redis.asyncio as redis
from fastapi import Request
from parcel_backend.app.core.config import Settings, settings

logger = logging.getLogger(__name__)

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


def connect_revocation_store(config: Settings) -> redis.Redis:
    """Build the revocation store client; it connects lazily on first command."""
    return redis.from_url(config.redis_url, decode_responses=config.redis_decode_responses)


async def get_redis(request: Request):
    """FastAPI dependency returning the app's revocation store."""
    return request.app.state.redis


async def revocation_store_reachable(redis_client) -> bool:
    try:
        return bool(await redis_client.ping())
    except Exception as e:
        logger.warning("Revocation store unreachable: %s", e)
        return False


async def revoke_token(redis_client, token: str, email: str) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.
    
    Args:
        redis_client: Async redis client
        token: The JWT token string to revoke
        email: Owner of the token, stored for audit purposes
        
    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        # Tokens auto-expire anyway, so the entry only needs to outlive them
        ttl_seconds = settings.access_token_expire_minutes * 60
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        await redis_client.set(key, email, ex=ttl_seconds)
        return True
    except Exception as e:
        logger.error("Error revoking token for %s: %s", email, e)
        return False


async def is_token_revoked(redis_client, token: str) -> bool:
    """
    Check if a token has been revoked.
    
    Fails open: when redis is unreachable the token is treated as valid.
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        exists = await redis_client.exists(key)
        return exists > 0
    except Exception as e:
        logger.warning("Error checking token revocation: %s", e)
        return False
