"""
cache.py — session scope store for funnel_ledger.

The session scope is an ephemeral key-value slot that lives exactly as long as one
browsing context. It only ever holds the session id string.

Namespace conventions:
  scope:{context_id}:{key}   → session id string      TTL settings.session_ttl

Design:
  - MemorySessionScope: the process IS the context — gone when the process exits
  - RedisSessionScope: uses redis-py's sync client; SETEX so an abandoned context expires
  - Redis failures never escape: the scope falls back to its in-process copy
  - Logs only keys, never values
"""
import logging
import uuid
from typing import Optional, Protocol

import redis
from redis.exceptions import RedisError

from funnel_ledger.config import settings

logger = logging.getLogger(__name__)

SCOPE_PREFIX = "scope"


class SessionScope(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


# ---------------------------------------------------------------------------
# Key builder
# ---------------------------------------------------------------------------

def make_scope_key(context_id: str, key: str) -> str:
    """Build Redis key for a context-scoped slot: scope:{context_id}:{key}"""
    return f"{SCOPE_PREFIX}:{context_id}:{key}"


# ---------------------------------------------------------------------------
# In-process scope
# ---------------------------------------------------------------------------

class MemorySessionScope:
    """Dict-backed scope. One instance per browsing context."""

    def __init__(self) -> None:
        self._slots: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._slots.get(key)

    def set(self, key: str, value: str) -> None:
        self._slots[key] = value


# ---------------------------------------------------------------------------
# Redis scope
# ---------------------------------------------------------------------------

class RedisSessionScope:
    """
    Context-scoped slots in Redis.

    Every write resets the TTL and every hit refreshes it, so a live context keeps
    its session while an abandoned one expires on its own. A copy is also kept
    in-process: if Redis becomes unreachable mid-context, the session id stays
    stable instead of a new one being minted.
    """

    def __init__(
        self,
        client: redis.Redis,
        context_id: Optional[str] = None,
        ttl: int = settings.session_ttl,
    ) -> None:
        self.client = client
        self.context_id = context_id or uuid.uuid4().hex
        self.ttl = ttl
        self._local = MemorySessionScope()

    def get(self, key: str) -> Optional[str]:
        redis_key = make_scope_key(self.context_id, key)
        try:
            raw = self.client.get(redis_key)
            if raw is not None:
                self.client.expire(redis_key, self.ttl)
        except RedisError as exc:
            logger.warning("Session scope read failed key=%s: %s", redis_key, exc)
            return self._local.get(key)
        if raw is None:
            return self._local.get(key)
        value = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        self._local.set(key, value)
        return value

    def set(self, key: str, value: str) -> None:
        redis_key = make_scope_key(self.context_id, key)
        self._local.set(key, value)
        try:
            self.client.setex(redis_key, self.ttl, value)
        except RedisError as exc:
            logger.warning("Session scope write failed key=%s: %s", redis_key, exc)
            return
        logger.debug("Session scope updated key=%s ttl=%ds", redis_key, self.ttl)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_session_scope(redis_url: Optional[str] = None) -> SessionScope:
    """
    Redis scope when a URL is configured, otherwise the in-process scope.
    The Redis client connects lazily — nothing is contacted here.
    """
    url = settings.redis_url if redis_url is None else redis_url
    if not url:
        return MemorySessionScope()
    client = redis.Redis.from_url(url, decode_responses=True)
    logger.info("Session scope backed by Redis at %s", url)
    return RedisSessionScope(client, context_id=settings.browser_context_id or None)
