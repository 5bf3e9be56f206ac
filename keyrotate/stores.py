"""
Public key stores for keyrotate.

A KeyRotator only needs one capability from its store: an async
``store_public_key(jwk)``. The check is structural, so any object exposing
that coroutine works. The stores in this module also let verifiers look
published keys up again until each key's ``exp`` passes.
"""

import asyncio
import inspect
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class PublicKeyStore(Protocol):
    """The capability a KeyRotator publishes through."""

    async def store_public_key(self, jwk: Dict[str, Any]) -> None:
        ...


def is_public_key_store(obj: Any) -> bool:
    """
    Check that ``obj`` exposes a coroutine ``store_public_key(jwk)``.

    The method must accept exactly one required positional argument
    besides ``self``. Extra parameters are fine if they have defaults;
    a required keyword-only parameter fails the check.
    """
    method = getattr(obj, "store_public_key", None)
    if method is None or not inspect.iscoroutinefunction(method):
        return False

    try:
        params = inspect.signature(method).parameters.values()
    except (TypeError, ValueError):
        return False

    if any(p.kind == p.KEYWORD_ONLY and p.default is p.empty for p in params):
        return False

    positional = [
        p for p in params if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]
    required = [p for p in positional if p.default is p.empty]
    has_varargs = any(p.kind == p.VAR_POSITIONAL for p in params)
    return len(required) == 1 or (not required and (positional or has_varargs))


class PublicKeyStoreInterface(ABC):
    """Abstract base for stores that also serve published keys back to verifiers."""

    @abstractmethod
    async def store_public_key(self, jwk: Dict[str, Any]) -> None:
        """Publish one public JWK. Must not replace keys with other kids."""
        pass

    @abstractmethod
    async def lookup_public_keys(self) -> List[Dict[str, Any]]:
        """Return every published key whose ``exp`` is still in the future."""
        pass

    async def lookup_public_key(self, kid: str) -> Optional[Dict[str, Any]]:
        """Return the non-expired key with ``kid``, or None."""
        for key in await self.lookup_public_keys():
            if key.get("kid") == kid:
                return key
        return None

    async def jwks(self) -> Dict[str, List[Dict[str, Any]]]:
        """Return the live keys as a JWK Set document."""
        return {"keys": await self.lookup_public_keys()}


def _is_live(jwk: Dict[str, Any], now: float) -> bool:
    exp = jwk.get("exp")
    return exp is None or now < exp


class MemoryPublicKeyStore(PublicKeyStoreInterface):
    """
    In-memory public key store for tests and single-instance deployments.

    Example:
        >>> store = MemoryPublicKeyStore()
        >>> await store.store_public_key({"kty": "EC", "kid": "k1", "exp": 2000000000})
        >>> await store.lookup_public_key("k1")
        {'kty': 'EC', 'kid': 'k1', 'exp': 2000000000}
    """

    def __init__(self):
        self._keys: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def store_public_key(self, jwk: Dict[str, Any]) -> None:
        """Store a copy of ``jwk`` under its kid, pruning expired keys."""
        kid = jwk.get("kid")
        if not kid:
            raise ValueError("Public JWK must carry a 'kid'")

        async with self._lock:
            now = time.time()
            for stale in [k for k, v in self._keys.items() if not _is_live(v, now)]:
                del self._keys[stale]
            self._keys[kid] = dict(jwk)
            logger.info(f"Stored public key {kid} (exp={jwk.get('exp')})")

    async def lookup_public_keys(self) -> List[Dict[str, Any]]:
        async with self._lock:
            now = time.time()
            return [dict(v) for v in self._keys.values() if _is_live(v, now)]

    def __len__(self) -> int:
        return len(self._keys)


class RedisPublicKeyStore(PublicKeyStoreInterface):
    """
    Redis-backed public key store for distributed deployments.

    Each key is written as JSON with a TTL matching its ``exp``, so Redis
    drops it once verifiers no longer need it.

    Example:
        >>> import redis.asyncio as redis
        >>> client = redis.Redis(host='localhost', port=6379)
        >>> store = RedisPublicKeyStore(client)
    """

    def __init__(self, redis_client, key_prefix: str = "keyrotate:jwk:"):
        """
        Initialize the Redis store.

        Args:
            redis_client: An async Redis client (redis.asyncio.Redis).
            key_prefix: Prefix for all stored keys.
        """
        self._redis = redis_client
        self._prefix = key_prefix
        self._index_key = f"{key_prefix}index"

    def _key(self, kid: str) -> str:
        return f"{self._prefix}{kid}"

    async def store_public_key(self, jwk: Dict[str, Any]) -> None:
        """Write ``jwk`` with a TTL up to its expiry."""
        kid = jwk.get("kid")
        if not kid:
            raise ValueError("Public JWK must carry a 'kid'")

        ttl = None
        if jwk.get("exp") is not None:
            ttl = max(1, int(jwk["exp"] - time.time()))

        try:
            await self._redis.set(self._key(kid), json.dumps(jwk), ex=ttl)
            await self._redis.sadd(self._index_key, kid)
            logger.info(f"Published public key {kid} to Redis (ttl={ttl})")
        except Exception as e:
            logger.error(f"Redis publish error for {kid}: {e}")
            raise

    async def lookup_public_keys(self) -> List[Dict[str, Any]]:
        """Return live keys, dropping index entries whose value has expired."""
        try:
            kids = await self._redis.smembers(self._index_key)
            now = time.time()
            keys = []
            for kid in kids:
                kid_str = kid.decode() if isinstance(kid, bytes) else kid
                data = await self._redis.get(self._key(kid_str))
                if not data:
                    await self._redis.srem(self._index_key, kid_str)
                    continue
                jwk = json.loads(data)
                if _is_live(jwk, now):
                    keys.append(jwk)
            return keys
        except Exception as e:
            logger.warning(f"Redis lookup error: {e}")
            return []
