"""Single-endpoint key-space managers.

The whole key space lives behind one connection pool, so walks run the SCAN
protocol exactly once and return its result directly.
"""

from __future__ import annotations

import logging
from functools import cached_property
from typing import TYPE_CHECKING, Any, cast, override
from urllib.parse import urlparse

from django_keyspace.exceptions import ConnectionInterruptedError, _main_exceptions
from django_keyspace.manager.base import KeySpaceManager
from django_keyspace.pool import get_connection_factory
from django_keyspace.scan import borrow_client, count_keys, iter_scan_batches, scan_keys

if TYPE_CHECKING:
    from django_keyspace.types import KeyT, PatternT

logger = logging.getLogger(__name__)


class KeyValueManager(KeySpaceManager):
    """Key-space manager for one Redis-compatible endpoint.

    The pool is created lazily from the first server URL unless one is
    passed in as ``pool``.
    """

    # Subclasses must set these
    _lib: Any = None  # Library module, supplies the default parser
    _pool_class: type | None = None

    def __init__(self, servers: list[str] | str, *, pool: Any = None, **options: Any) -> None:
        super().__init__(servers, **options)
        self._pool = pool
        self._owns_pool = pool is None

    @cached_property
    @override
    def connection_factory(self) -> Any:
        return get_connection_factory(self._options, pool_class=self._pool_class, lib=self._lib)

    @property
    def endpoint(self) -> str:
        """``host:port`` of the endpoint, without credentials."""
        if not self._servers:
            return "unknown"
        parsed = urlparse(self._servers[0])
        return f"{parsed.hostname}:{parsed.port}" if parsed.port else str(parsed.hostname)

    def get_connection_pool(self) -> Any:
        """Get the endpoint's connection pool."""
        if self._pool is None:
            self._pool = self.connection_factory.get_pool(self._servers[0])
        return self._pool

    @override
    def get_client(self, key: KeyT | None = None) -> Any:
        """Get a client bound to the endpoint's pool."""
        return self.client_class(connection_pool=self.get_connection_pool())

    @override
    def keys(self, pattern: PatternT = None) -> set[bytes]:
        pool = self.get_connection_pool()

        try:
            return scan_keys(
                pool,
                self.client_class,
                match=pattern,
                count=self._scan_count,
                max_iterations=self._max_scan_iterations,
                endpoint=self.endpoint,
            )
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=pool) from e

    @override
    def db_size(self, pattern: PatternT = None) -> int:
        pool = self.get_connection_pool()

        try:
            return count_keys(
                pool,
                self.client_class,
                match=pattern,
                count=self._scan_count,
                max_iterations=self._max_scan_iterations,
                endpoint=self.endpoint,
            )
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=pool) from e

    @override
    def delete_pattern(self, pattern: PatternT = None) -> int:
        pool = self.get_connection_pool()
        deleted = 0

        try:
            with borrow_client(pool, self.client_class) as client:
                for batch in iter_scan_batches(
                    client,
                    match=pattern,
                    count=self._scan_count,
                    max_iterations=self._max_scan_iterations,
                    endpoint=self.endpoint,
                ):
                    if batch:
                        deleted += cast("int", client.delete(*batch))
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=pool) from e
        logger.debug("Deleted %d keys matching %r on %s", deleted, pattern, self.endpoint)
        return deleted

    @override
    def clear(self) -> bool:
        client = self.get_client()

        try:
            return bool(client.flushdb())
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=client) from e

    @override
    def close(self) -> None:
        """Disconnect the pool this manager created. A pool passed in by the caller is left alone."""
        if self._pool is None or not self._owns_pool:
            return
        self.connection_factory.disconnect(self._servers[0])
        self._pool = None


# =============================================================================
# Concrete Implementations
# =============================================================================

# Try to import redis-py
try:
    import redis

    class RedisManager(KeyValueManager):
        """Single-endpoint manager using redis-py."""

        _lib = redis
        _client_class = redis.Redis
        _pool_class = redis.ConnectionPool

except ImportError:

    class RedisManager(KeyValueManager):  # type: ignore[no-redef]
        """Single-endpoint manager (requires redis-py to be installed)."""

        def __init__(self, *args: Any, **kwargs: Any) -> None:
            raise ImportError(
                "RedisManager requires redis-py to be installed. Install it with: pip install redis",
            )


# Try to import valkey-py
try:
    import valkey

    class ValkeyManager(KeyValueManager):
        """Single-endpoint manager using valkey-py."""

        _lib = valkey
        _client_class = valkey.Valkey
        _pool_class = valkey.ConnectionPool

except ImportError:

    class ValkeyManager(KeyValueManager):  # type: ignore[no-redef]
        """Single-endpoint manager (requires valkey-py to be installed)."""

        def __init__(self, *args: Any, **kwargs: Any) -> None:
            raise ImportError(
                "ValkeyManager requires valkey-py to be installed. Install it with: pip install valkey",
            )


__all__ = [
    "KeyValueManager",
    "RedisManager",
    "ValkeyManager",
]
