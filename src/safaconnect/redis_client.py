"""Redis connection pool for short-lived state (OAuth ``state`` values)."""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 20) -> None:
    """Create the shared client. Responses are decoded to ``str``."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool is not None:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client (FastAPI dependency)."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


async def redis_ping(client: redis.Redis) -> bool:
    """True if the server answers PING."""
    return bool(await client.ping())
