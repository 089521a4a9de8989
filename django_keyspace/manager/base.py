"""Key-space manager base class.

Architecture:
- KeySpaceManager: point operations shared by both topologies
- KeyValueManager: one endpoint, one connection pool
- KeyValueClusterManager: a sharded cluster, one pool per primary node

Point operations (get/set/delete and friends) are identical in both modes:
they go through ``get_client(key)``, which returns either a client bound to
the single pool or the slot-routing cluster client. Key-space walks
(``keys``/``db_size``/``delete_pattern``) depend on the topology and are
implemented by the subclasses.

Class attributes select the client library:
- _client_class: Client class bound to one pool (e.g. redis.Redis)
- _lib, _pool_class: Library module and pool class (single endpoint)
- _cluster_class, _key_slot_func: Cluster client and slot hashing (cluster)
"""

from __future__ import annotations

import logging
import math
import re
from functools import cached_property
from typing import TYPE_CHECKING, Any

from django_keyspace.exceptions import ConnectionInterruptedError, _main_exceptions
from django_keyspace.scan import DEFAULT_SCAN_COUNT

if TYPE_CHECKING:
    from django_keyspace.types import KeyT, PatternT

logger = logging.getLogger(__name__)


def expiry_seconds(expire_seconds: float | None) -> int | None:
    """Map a requested expiry onto the ``EX`` argument.

    Only a strictly positive expiry is applied. Zero, negative values and
    None all leave the key persistent. Fractions round up to whole seconds.
    """
    if expire_seconds is None or expire_seconds <= 0:
        return None
    return math.ceil(expire_seconds)


class KeySpaceManager:
    """Base key-space manager with configurable library.

    Subclasses must set ``_client_class`` (e.g., redis.Redis) and implement ``get_client``, ``keys``, ``db_size``, ``delete_pattern``,
    ``clear`` and ``close``.
    """

    # Class attributes - subclasses override these
    _client_class: type | None = None

    def __init__(self, servers: list[str] | str, **options: Any) -> None:
        """Initialize the manager.

        Args:
            servers: Endpoint URL(s); a string is split on ``,`` and ``;``
            **options: Opaque settings; anything the manager does not consume
                is passed through to the connection pool / cluster client
        """
        if isinstance(servers, str):
            servers = re.split("[;,]", servers)
        self._servers = [server.strip() for server in servers if server.strip()]
        self._options = options

        self._scan_count = int(options.get("scan_count", DEFAULT_SCAN_COUNT))
        max_scan_iterations = options.get("max_scan_iterations")
        self._max_scan_iterations = int(max_scan_iterations) if max_scan_iterations is not None else None

    @property
    def client_class(self) -> type:
        """Get the client class, asserting it's configured."""
        assert self._client_class is not None, "Subclasses must set _client_class"  # noqa: S101
        return self._client_class

    @cached_property
    def connection_factory(self) -> Any:
        """Factory building the pool (or cluster client) on first use."""
        raise NotImplementedError

    def get_client(self, key: KeyT | None = None) -> Any:
        """Get a client able to serve ``key``."""
        raise NotImplementedError

    # =========================================================================
    # Point Operations
    # =========================================================================

    def get(self, key: KeyT | None) -> bytes | None:
        """Fetch a value. An empty or missing key reads as absent."""
        if not key:
            return None
        client = self.get_client(key)

        try:
            return client.get(key)
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=client) from e

    def set(self, key: KeyT | None, value: bytes, expire_seconds: float | None = -1) -> bytes | None:
        """Write a value, overwriting any previous one.

        The expiry is applied only when ``expire_seconds`` is positive.
        Returns the value written, or None when ``key`` is None.
        """
        if key is None:
            return None
        client = self.get_client(key)

        try:
            client.set(key, value, ex=expiry_seconds(expire_seconds))
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=client) from e
        return value

    def add(self, key: KeyT | None, value: bytes, expire_seconds: float | None = -1) -> bool:
        """Write a value only if the key doesn't exist."""
        if key is None:
            return False
        client = self.get_client(key)

        try:
            return bool(client.set(key, value, nx=True, ex=expiry_seconds(expire_seconds)))
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=client) from e

    def delete(self, key: KeyT | None) -> bool:
        """Remove a key. Deleting a missing key is not an error."""
        if key is None:
            return False
        client = self.get_client(key)

        try:
            return bool(client.delete(key))
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=client) from e

    def touch(self, key: KeyT | None, expire_seconds: float | None) -> bool:
        """Reset the expiry of a key; a non-positive expiry makes it persistent."""
        if key is None:
            return False
        client = self.get_client(key)
        seconds = expiry_seconds(expire_seconds)

        try:
            if seconds is None:
                return bool(client.persist(key))
            return bool(client.expire(key, seconds))
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=client) from e

    def has_key(self, key: KeyT | None) -> bool:
        """Check if a key exists."""
        if not key:
            return False
        client = self.get_client(key)

        try:
            return bool(client.exists(key))
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=client) from e

    def ttl(self, key: KeyT) -> int | None:
        """Get TTL in seconds. Returns None if no expiry, -2 if key doesn't exist."""
        client = self.get_client(key)

        try:
            result = client.ttl(key)
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=client) from e
        else:
            if result == -1:
                return None
            return result

    # =========================================================================
    # Key-Space Walks (topology specific)
    # =========================================================================

    def keys(self, pattern: PatternT = None) -> set[bytes]:
        """Every key matching ``pattern``, deduplicated."""
        raise NotImplementedError

    def db_size(self, pattern: PatternT = None) -> int:
        """Number of scanned entries matching ``pattern``."""
        raise NotImplementedError

    def delete_pattern(self, pattern: PatternT = None) -> int:
        """Delete every key matching ``pattern``; returns the number deleted."""
        raise NotImplementedError

    def clear(self) -> bool:
        """Flush the whole key space."""
        raise NotImplementedError

    def close(self) -> None:
        """Release pooled connections."""
        raise NotImplementedError
