"""Cluster cache backends for Redis-compatible backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from django_keyspace.cache.default import KeySpaceCache
from django_keyspace.manager.cluster import KeyValueClusterManager, RedisClusterManager, ValkeyClusterManager
from django_keyspace.omit_exception import omit_exception

if TYPE_CHECKING:
    from django_keyspace.types import ClusterScanResult


class KeySpaceClusterCache(KeySpaceCache):
    """Cluster cache backend base class.

    ``LOCATION`` lists the startup nodes, either as URLs or as
    ``host:port`` pairs separated by commas.
    Subclasses set `_class` class attribute to their specific cluster manager.
    """

    _class: type[KeyValueClusterManager] = KeyValueClusterManager

    @omit_exception
    def scan_nodes(self, pattern: str = "*", version: int | None = None) -> ClusterScanResult:
        """Scan every primary node once, reporting scanned and skipped nodes.

        Keys in the result are raw (prefixed) keys as stored on the server.
        """
        pattern = self.make_pattern(pattern, version=version)
        return self._manager.scan_nodes(pattern)  # type: ignore[attr-defined]


class RedisClusterCache(KeySpaceClusterCache):
    """Django cache backend for Redis Cluster mode.

    Keys are sharded across the cluster's nodes by hash slot.
    """

    _class = RedisClusterManager


class ValkeyClusterCache(KeySpaceClusterCache):
    """Django cache backend for Valkey Cluster mode.

    Keys are sharded across the cluster's nodes by hash slot.
    """

    _class = ValkeyClusterManager


__all__ = [
    "KeySpaceClusterCache",
    "RedisClusterCache",
    "ValkeyClusterCache",
]
