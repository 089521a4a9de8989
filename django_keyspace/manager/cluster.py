"""Cluster key-space managers for Redis-compatible backends.

Point operations go through the cluster client, which hashes the key to its
slot and dispatches to the owning node. Key-space walks cannot be served by
one node: every primary is scanned directly through its own connection pool
(no redirection) and the per-node results are merged. Shards are disjoint,
so the union of node key sets is the cluster key set and the sum of node
counts is the cluster count.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import cached_property
from typing import TYPE_CHECKING, Any, cast, override

from django.core.exceptions import ImproperlyConfigured

from django_keyspace.exceptions import ConnectionInterruptedError, _connection_exceptions, _main_exceptions
from django_keyspace.manager.base import KeySpaceManager
from django_keyspace.pool import DEFAULT_CLUSTER_HOSTS, get_connection_factory
from django_keyspace.scan import borrow_client, count_keys, iter_scan_batches, scan_and_count, scan_keys
from django_keyspace.types import ClusterScanResult

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from django_keyspace.types import KeyT, PatternT

logger = logging.getLogger(__name__)


class KeyValueClusterManager(KeySpaceManager):
    """Cluster key-space manager base class.

    The cluster client is either passed in as ``cluster`` or built on first
    use from the startup nodes in ``servers``. Cluster mode has no
    selectable database.

    Options:
        parallel_scan: Scan nodes concurrently (default True)
        scan_workers: Upper bound on concurrent node scans (default: node count)
        skip_unreachable_nodes: Log and skip nodes that fail with a connection
            or timeout error instead of failing the whole call (default False)
        max_attempts: Redirection retries handed to the cluster client
    """

    # Subclasses must set these
    _cluster_class: type[Any] | None = None
    _cluster_node_class: type[Any] | None = None
    _key_slot_func: Any = None  # Function to calculate key slot
    _node_connection_getter: str = "get_redis_connection"

    @override
    def __init__(self, servers: list[str] | str | None = None, *, cluster: Any = None, **options: Any) -> None:
        super().__init__(servers or DEFAULT_CLUSTER_HOSTS, **options)
        if not self._servers:
            self._servers = DEFAULT_CLUSTER_HOSTS.split(",")

        db = options.get("db")
        if db not in (None, 0, "0"):
            raise ImproperlyConfigured("Redis Cluster has no selectable database; remove the 'db' option")

        # Per-instance cluster (cluster manages its own per-node connection pools)
        self._cluster_instance: Any | None = cluster
        self._cluster_lock = threading.Lock()

        self._parallel_scan = bool(options.get("parallel_scan", True))
        scan_workers = options.get("scan_workers")
        self._scan_workers = int(scan_workers) if scan_workers is not None else None
        self._skip_unreachable_nodes = bool(options.get("skip_unreachable_nodes", False))

    @cached_property
    @override
    def connection_factory(self) -> Any:
        return get_connection_factory(
            self._options,
            default="django_keyspace.pool.ClusterConnectionFactory",
            setting="KEYSPACE_CLUSTER_CONNECTION_FACTORY",
            cluster_class=self._cluster_class,
            node_class=self._cluster_node_class,
        )

    def get_cluster(self) -> Any:
        """Get the cluster client, building it exactly once."""
        if self._cluster_instance is None:
            with self._cluster_lock:
                if self._cluster_instance is None:
                    self._cluster_instance = self.connection_factory.connect(self._servers)
        return self._cluster_instance

    @override
    def get_client(self, key: KeyT | None = None) -> Any:
        """Get the cluster client (it routes every key to its owning node)."""
        return self.get_cluster()

    def get_primary_nodes(self) -> list[Any]:
        """Primary nodes of the current topology. Replicas are never scanned."""
        return list(self.get_cluster().get_primaries())

    def _get_node_pool(self, node: Any) -> Any:
        """Connection pool of one node."""
        connection = getattr(self.get_cluster(), self._node_connection_getter)(node)
        return connection.connection_pool

    def _group_keys_by_slot(self, keys: Iterable[KeyT]) -> dict[int, list[KeyT]]:
        """Group keys by their cluster slot."""
        slots: dict[int, list[KeyT]] = defaultdict(list)
        for key in keys:
            key_bytes = key.encode() if isinstance(key, str) else key
            slot = self._key_slot_func(key_bytes)
            slots[slot].append(key)
        return dict(slots)

    # =========================================================================
    # Per-node fan-out
    # =========================================================================

    def _map_nodes[T](
        self,
        func: Callable[[Any, PatternT], T],
        pattern: PatternT,
    ) -> tuple[list[tuple[str, T]], list[str]]:
        """Run ``func(node, pattern)`` once per primary node.

        Returns the per-node results and the names of skipped nodes. Node
        order is not significant; results are merged by union or sum.
        """
        try:
            nodes = self.get_primary_nodes()
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=self._cluster_instance) from e
        results: list[tuple[str, T]] = []
        skipped: list[str] = []

        def handle_failure(node: Any, exc: Exception) -> None:
            # Only an unreachable node is skipped; command and topology errors always fail the call
            if not self._skip_unreachable_nodes or not isinstance(exc, _connection_exceptions):
                raise ConnectionInterruptedError(connection=node) from exc
            logger.warning("Skipping cluster node %s: %s", node.name, exc)
            skipped.append(node.name)

        if self._parallel_scan and len(nodes) > 1:
            max_workers = min(self._scan_workers or len(nodes), len(nodes))
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="keyspace-scan") as executor:
                futures = {executor.submit(func, node, pattern): node for node in nodes}
                try:
                    for future in as_completed(futures):
                        node = futures[future]
                        try:
                            results.append((node.name, future.result()))
                        except _main_exceptions as e:
                            handle_failure(node, e)
                except BaseException:
                    for future in futures:
                        future.cancel()
                    raise
        else:
            for node in nodes:
                try:
                    results.append((node.name, func(node, pattern)))
                except _main_exceptions as e:
                    handle_failure(node, e)

        logger.debug("Scanned %d cluster nodes, skipped %d", len(results), len(skipped))
        return results, skipped

    def _keys_from_node(self, node: Any, pattern: PatternT) -> set[bytes]:
        return scan_keys(
            self._get_node_pool(node),
            self.client_class,
            match=pattern,
            count=self._scan_count,
            max_iterations=self._max_scan_iterations,
            endpoint=node.name,
        )

    def _db_size_from_node(self, node: Any, pattern: PatternT) -> int:
        return count_keys(
            self._get_node_pool(node),
            self.client_class,
            match=pattern,
            count=self._scan_count,
            max_iterations=self._max_scan_iterations,
            endpoint=node.name,
        )

    def _scan_node(self, node: Any, pattern: PatternT) -> tuple[set[bytes], int]:
        return scan_and_count(
            self._get_node_pool(node),
            self.client_class,
            match=pattern,
            count=self._scan_count,
            max_iterations=self._max_scan_iterations,
            endpoint=node.name,
        )

    def _delete_pattern_from_node(self, node: Any, pattern: PatternT) -> int:
        # DEL through the cluster client: a node rejects multi-key commands across slots
        cluster = self.get_cluster()
        deleted = 0
        with borrow_client(self._get_node_pool(node), self.client_class) as client:
            for batch in iter_scan_batches(
                client,
                match=pattern,
                count=self._scan_count,
                max_iterations=self._max_scan_iterations,
                endpoint=node.name,
            ):
                for slot_keys in self._group_keys_by_slot(batch).values():
                    deleted += cast("int", cluster.delete(*slot_keys))
        return deleted

    # =========================================================================
    # Key-Space Walks
    # =========================================================================

    @override
    def keys(self, pattern: PatternT = None) -> set[bytes]:
        """Union of every primary node's matching keys."""
        keys: set[bytes] = set()
        results, _ = self._map_nodes(self._keys_from_node, pattern)
        for _name, node_keys in results:
            if not node_keys:
                continue
            keys.update(node_keys)
        return keys

    @override
    def db_size(self, pattern: PatternT = None) -> int:
        """Sum of every primary node's scanned-entry count."""
        db_size = 0
        results, _ = self._map_nodes(self._db_size_from_node, pattern)
        for _name, node_db_size in results:
            if node_db_size == 0:
                continue
            db_size += node_db_size
        return db_size

    def scan_nodes(self, pattern: PatternT = None) -> ClusterScanResult:
        """Keys and count in one walk per node, reporting which nodes were scanned or skipped."""
        scan_result = ClusterScanResult()
        results, scan_result.skipped_nodes = self._map_nodes(self._scan_node, pattern)
        for name, (node_keys, node_count) in results:
            scan_result.scanned_nodes.append(name)
            scan_result.keys.update(node_keys)
            scan_result.count += node_count
        return scan_result

    @override
    def delete_pattern(self, pattern: PatternT = None) -> int:
        results, _ = self._map_nodes(self._delete_pattern_from_node, pattern)
        return sum(deleted for _name, deleted in results)

    @override
    def clear(self) -> bool:
        """Flush all primary nodes in the cluster."""
        cluster = self.get_cluster()

        try:
            cluster.flushdb(target_nodes=cluster.PRIMARIES)
        except _main_exceptions as e:
            raise ConnectionInterruptedError(connection=cluster) from e
        return True

    @override
    def close(self) -> None:
        """No-op. The cluster client is shared by every manager on the same startup nodes and lives for the process."""


# =============================================================================
# Concrete Implementations
# =============================================================================

# Try to import Redis Cluster
try:
    import redis
    from redis.cluster import ClusterNode as RedisClusterNode
    from redis.cluster import RedisCluster
    from redis.cluster import key_slot as redis_key_slot

    class RedisClusterManager(KeyValueClusterManager):
        """Redis Cluster manager using redis-py."""

        _client_class = redis.Redis  # Per-node scans
        _cluster_class = RedisCluster
        _cluster_node_class = RedisClusterNode
        _key_slot_func = staticmethod(redis_key_slot)

except ImportError:

    class RedisClusterManager(KeyValueClusterManager):  # type: ignore[no-redef]
        """Redis Cluster manager (requires redis-py to be installed)."""

        def __init__(self, *args: Any, **kwargs: Any) -> None:
            raise ImportError(
                "RedisClusterManager requires redis-py to be installed. Install it with: pip install redis",
            )


# Try to import Valkey Cluster
try:
    import valkey
    from valkey.cluster import ClusterNode as ValkeyClusterNode
    from valkey.cluster import ValkeyCluster
    from valkey.cluster import key_slot as valkey_key_slot

    class ValkeyClusterManager(KeyValueClusterManager):
        """Valkey Cluster manager using valkey-py."""

        _client_class = valkey.Valkey  # Per-node scans
        _cluster_class = ValkeyCluster
        _cluster_node_class = ValkeyClusterNode
        _key_slot_func = staticmethod(valkey_key_slot)
        _node_connection_getter = "get_valkey_connection"

except ImportError:

    class ValkeyClusterManager(KeyValueClusterManager):  # type: ignore[no-redef]
        """Valkey Cluster manager (requires valkey-py with cluster support)."""

        def __init__(self, *args: Any, **kwargs: Any) -> None:
            raise ImportError(
                "ValkeyClusterManager requires valkey-py with cluster support. Install it with: pip install valkey",
            )


__all__ = [
    "KeyValueClusterManager",
    "RedisClusterManager",
    "ValkeyClusterManager",
]
