"""
Query Cache Service — read-through cache for list/detail reads.

Keys are built from the query parameters that produced the result, grouped
under a *family* prefix:

    q:item:<item_id>
    q:blockers:<item_id>
    q:board:<team_id>:<filters...>
    q:director:<filters...>

Cached values are never edited in place. After a successful mutation the
service layer discards every family the write could affect (see
``MUTATION_INVALIDATIONS``) and the next read re-fills from the database.

Uses Redis when REDIS_URL points at a Redis server, otherwise a simple
in-memory dict for development/testing.
"""

import json
import logging
import os
import time

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

# ── In-memory fallback ───────────────────────────────────────────────────

_memory_store: dict = {}  # key → (value_json, expire_ts)


class _MemoryBackend:
    """Simple dict cache for dev/testing."""

    def get(self, key):
        entry = _memory_store.get(key)
        if entry is None:
            return None
        val, expires = entry
        if expires and time.time() > expires:
            _memory_store.pop(key, None)
            return None
        return val

    def setex(self, key, ttl_seconds, value):
        _memory_store[key] = (value, time.time() + ttl_seconds)

    def delete(self, *keys):
        for k in keys:
            _memory_store.pop(k, None)

    def keys(self, pattern):
        """Simple glob matching for 'prefix*' patterns."""
        if pattern.endswith("*"):
            prefix = pattern[:-1]
            return [k for k in _memory_store if k.startswith(prefix)]
        return [k for k in _memory_store if k == pattern]

    def flushdb(self):
        _memory_store.clear()

    def ping(self):
        return True


# ── Singleton cache backend ──────────────────────────────────────────────

_backend = None


def _get_backend():
    """Lazy-initialise Redis or fall back to in-memory."""
    global _backend
    if _backend is not None:
        return _backend

    redis_url = os.getenv("REDIS_URL")
    if has_app_context():
        redis_url = current_app.config.get("REDIS_URL", redis_url)
    if redis_url and not redis_url.startswith("memory://"):
        try:
            import redis as _redis
            _backend = _redis.from_url(redis_url, decode_responses=True)
            _backend.ping()
            logger.info("Query cache: using Redis at %s", redis_url.split("@")[-1])
        except Exception as exc:
            logger.warning("Redis unavailable (%s) — falling back to memory cache", exc)
            _backend = _MemoryBackend()
    else:
        _backend = _MemoryBackend()
    return _backend


DEFAULT_TTL = 300

# Families discarded after each kind of write. Blocker and help request
# counts are denormalised onto item rows on boards and dashboards, so those
# writes reach past their own family.
MUTATION_INVALIDATIONS = {
    "team": ("teams", "board", "home", "director"),
    "profile": ("teams", "home"),
    "team_member": ("teams", "members", "home"),
    "period": ("periods",),
    "objective": ("objectives", "item", "board", "director"),
    "item": ("item", "board", "home", "director"),
    "item_update": ("item", "item_updates", "activity", "board", "home", "director"),
    "blocker": ("blockers", "item", "board", "home", "director"),
    "help_request": ("help_requests", "item", "board", "home", "director"),
    "comment": ("comments", "activity"),
}


# ── Key builders ─────────────────────────────────────────────────────────

def query_key(family: str, *parts) -> str:
    """Build a cache key from a family and the query parameters."""
    tail = ":".join("" if p is None else str(p) for p in parts)
    return f"q:{family}:{tail}" if parts else f"q:{family}:"


# ── Public API ───────────────────────────────────────────────────────────


def _default_ttl():
    if has_app_context():
        return current_app.config.get("QUERY_CACHE_TTL", DEFAULT_TTL)
    return DEFAULT_TTL


def get_cached(key, ttl=None, loader=None):
    """Cache-aside read. If *loader* is provided it's called on a miss and
    the result is cached for *ttl* seconds (QUERY_CACHE_TTL by default)."""
    be = _get_backend()
    raw = be.get(key)
    if raw is not None:
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            pass
    if loader is None:
        return None
    value = loader()
    if value is not None:
        be.setex(key, ttl or _default_ttl(), json.dumps(value))
    return value


def invalidate_family(family: str) -> int:
    """Discard every cached query in *family*. Returns the number of keys removed."""
    be = _get_backend()
    keys = be.keys(f"q:{family}:*")
    if keys:
        be.delete(*keys)
    return len(keys)


def invalidate_for(entity: str) -> None:
    """Discard every family a write to *entity* can affect."""
    families = MUTATION_INVALIDATIONS.get(entity, ())
    removed = sum(invalidate_family(f) for f in families)
    logger.debug("Cache invalidated after %s write: %s (%d keys)", entity, families, removed)


def clear_all():
    """Flush entire cache (use sparingly — mainly for testing)."""
    _get_backend().flushdb()


def health_check():
    """Return cache backend status."""
    try:
        be = _get_backend()
        be.ping()
        backend_type = "redis" if not isinstance(be, _MemoryBackend) else "memory"
        return {"status": "ok", "backend": backend_type}
    except Exception as exc:
        return {"status": "error", "detail": str(exc)}
