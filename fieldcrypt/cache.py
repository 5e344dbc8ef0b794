"""
Thread-safe key material cache with TTL.

Resolving an identity's key means reading and parsing a certificate or
unlocking a keystore from disk on every exchange. This cache keeps the parsed
key objects around for a bounded time so concurrent exchanges for the same
peer share one lookup.
"""

import hmac
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class CachedKey:
    """A cached public or private key with metadata."""
    key: Any
    identity: str
    kind: str  # "public" or "private"
    created_at: float
    expires_at: float
    secret_digest: Optional[bytes] = None

    def is_expired(self) -> bool:
        """Check if the entry has expired."""
        return time.time() >= self.expires_at


class KeyCache:
    """
    Thread-safe LRU cache for resolved key material.

    Private keys are stored together with a digest of the secret that unlocked
    them; a lookup with a different secret is treated as a miss so that the
    keystore is opened (and the secret checked) again.
    """

    def __init__(
        self,
        max_size: int = 32,
        default_ttl: float = 300.0,
        cleanup_interval: float = 60.0,
    ):
        """
        Initialize the key cache.

        Args:
            max_size: Maximum number of keys to cache
            default_ttl: Default time-to-live in seconds
            cleanup_interval: How often to clean expired entries
        """
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.cleanup_interval = cleanup_interval

        self._cache: OrderedDict[str, CachedKey] = OrderedDict()
        self._lock = threading.RLock()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._evictions = 0

        self._last_cleanup = time.time()

    def _make_key(self, identity: str, kind: str) -> str:
        return f"{identity}:{kind}"

    def get(
        self,
        identity: str,
        kind: str = "public",
        secret_digest: Optional[bytes] = None,
    ) -> Optional[CachedKey]:
        """
        Get a cached key if available and not expired.

        Args:
            identity: Peer identity the key belongs to
            kind: "public" or "private"
            secret_digest: Digest of the keystore secret (private keys only)

        Returns:
            CachedKey if found and valid, None otherwise
        """
        cache_key = self._make_key(identity, kind)

        with self._lock:
            self._maybe_cleanup()

            cached = self._cache.get(cache_key)
            if cached is None:
                self._misses += 1
                return None

            if cached.is_expired():
                del self._cache[cache_key]
                self._misses += 1
                return None

            if cached.secret_digest is not None and (
                secret_digest is None
                or not hmac.compare_digest(cached.secret_digest, secret_digest)
            ):
                self._misses += 1
                return None

            self._cache.move_to_end(cache_key)
            self._hits += 1
            return cached

    def put(
        self,
        identity: str,
        key: Any,
        kind: str = "public",
        ttl: Optional[float] = None,
        secret_digest: Optional[bytes] = None,
    ) -> None:
        """
        Store a key in the cache.

        Args:
            identity: Peer identity the key belongs to
            key: The parsed key object
            kind: "public" or "private"
            ttl: Time-to-live in seconds (uses default if None)
            secret_digest: Digest of the keystore secret (private keys only)
        """
        cache_key = self._make_key(identity, kind)
        ttl = ttl if ttl is not None else self.default_ttl
        now = time.time()

        cached = CachedKey(
            key=key,
            identity=identity,
            kind=kind,
            created_at=now,
            expires_at=now + ttl,
            secret_digest=secret_digest,
        )

        with self._lock:
            if cache_key in self._cache:
                self._cache[cache_key] = cached
                self._cache.move_to_end(cache_key)
            else:
                # Evict oldest if at capacity
                while len(self._cache) >= self.max_size:
                    oldest_key = next(iter(self._cache))
                    del self._cache[oldest_key]
                    self._evictions += 1

                self._cache[cache_key] = cached

    def _maybe_cleanup(self) -> None:
        """Clean up expired entries if enough time has passed."""
        now = time.time()
        if now - self._last_cleanup < self.cleanup_interval:
            return

        self._last_cleanup = now

        expired = [k for k, v in self._cache.items() if v.is_expired()]
        for k in expired:
            del self._cache[k]

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = self._hits / total_requests if total_requests > 0 else 0.0

            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": hit_rate,
                "evictions": self._evictions,
                "identities": sorted(set(k.rsplit(":", 1)[0] for k in self._cache)),
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
