"""Connection pool factories for the key-space managers.

Pools and cluster clients are cached process-globally because Django creates
a new cache backend instance per thread; every instance pointing at the same
location must share one pool.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, ClassVar
from urllib.parse import urlparse

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

if TYPE_CHECKING:
    from collections.abc import Iterable

    from redis.cluster import RedisCluster
    from redis.connection import ConnectionPool

# Try to import redis-py
_REDIS_AVAILABLE = False
try:
    from redis.cluster import ClusterNode as RedisClusterNode
    from redis.cluster import RedisCluster as RedisClusterClient
    from redis.connection import ConnectionPool as RedisConnectionPool

    _REDIS_AVAILABLE = True
except ImportError:
    pass

# Try to import valkey-py
try:
    from valkey.cluster import ClusterNode as ValkeyClusterNode
    from valkey.cluster import ValkeyCluster as ValkeyClusterClient
    from valkey.connection import ConnectionPool as ValkeyConnectionPool

    # If redis-py not available, use valkey classes as fallback
    if not _REDIS_AVAILABLE:
        RedisClusterNode = ValkeyClusterNode  # type: ignore[misc]
        RedisClusterClient = ValkeyClusterClient  # type: ignore[misc]
        RedisConnectionPool = ValkeyConnectionPool  # type: ignore[misc]
except ImportError:
    pass

logger = logging.getLogger(__name__)

DEFAULT_PORT = 6379
DEFAULT_CLUSTER_HOSTS = "127.0.0.1:7000,127.0.0.1:7001,127.0.0.1:7002"
DEFAULT_MAX_ATTEMPTS = 3

# Options consumed by the manager or the cache backend (not passed to pools)
_KNOWN_OPTIONS = frozenset(
    {
        "serializer",
        "connection_factory",
        "ignore_exceptions",
        "log_ignored_exceptions",
        "close_connection",
        "scan_count",
        "max_scan_iterations",
        "parallel_scan",
        "scan_workers",
        "skip_unreachable_nodes",
        "max_attempts",
        "pool_class",
        "parser_class",
        "cluster_class",
    },
)


def parse_startup_nodes(servers: Iterable[str]) -> list[tuple[str, int]]:
    """Parse cluster startup nodes from URLs or ``host:port`` strings.

    Raises:
        ImproperlyConfigured: If an entry has no host or a non-numeric port,
            or if no entry is given at all.
    """
    nodes: list[tuple[str, int]] = []
    for server in servers:
        server = server.strip()
        if not server:
            continue
        if "://" in server:
            parsed = urlparse(server)
            if not parsed.hostname:
                raise ImproperlyConfigured(f"Cluster node URL {server!r} has no host")
            nodes.append((parsed.hostname, parsed.port or DEFAULT_PORT))
            continue
        host, sep, port = server.rpartition(":")
        if not sep or not host:
            raise ImproperlyConfigured(f"Cluster node {server!r} must be given as host:port")
        try:
            nodes.append((host, int(port)))
        except ValueError as e:
            raise ImproperlyConfigured(f"Cluster node {server!r} has an invalid port") from e
    if not nodes:
        raise ImproperlyConfigured("At least one cluster startup node is required")
    return nodes


class ConnectionFactory:
    """Connection factory for a single Redis endpoint.

    Creates and caches one connection pool per (pool class, URL).
    """

    _pools: ClassVar[dict[tuple[type, str], ConnectionPool]] = {}
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, options: dict, pool_class: type | None = None, lib: Any = None):
        self.options = options

        # Pool class - accept class or string path
        pool_class = options.get("pool_class", pool_class or RedisConnectionPool)
        if isinstance(pool_class, str):
            pool_class = import_string(pool_class)
        self.pool_class = pool_class

        # Parser class - accept class or string path, else the library's default parser
        parser_class = options.get("parser_class")
        if isinstance(parser_class, str):
            parser_class = import_string(parser_class)
        if parser_class is None and lib is not None:
            parser_class = lib.connection.DefaultParser
        self.parser_class = parser_class

    def _get_pool_options(self) -> dict:
        """Get options to pass directly to ConnectionPool.from_url().

        Unknown options are passed through to the pool, matching Django's behavior.
        """
        pool_options: dict[str, Any] = {}
        if self.parser_class is not None:
            pool_options["parser_class"] = self.parser_class

        for key, value in self.options.items():
            if key not in _KNOWN_OPTIONS and key != "db":
                pool_options[key] = value

        return pool_options

    def make_url(self, url: str) -> str:
        """Append the ``db`` option to the URL unless the URL selects one."""
        db = self.options.get("db")
        if db is not None:
            parsed = urlparse(url)
            if not parsed.path or parsed.path == "/":
                url = f"{url.rstrip('/')}/{db}"
        return url

    def get_pool(self, url: str) -> ConnectionPool:
        """Get the cached pool for ``url``, creating it on first use."""
        url = self.make_url(url)
        cache_key = (self.pool_class, url)
        pool = self._pools.get(cache_key)
        if pool is None:
            with self._lock:
                pool = self._pools.get(cache_key)
                if pool is None:
                    pool = self._create_pool(url)
                    self._pools[cache_key] = pool
        return pool

    def disconnect(self, url: str) -> None:
        """Disconnect and forget the pool for ``url``."""
        url = self.make_url(url)
        with self._lock:
            pool = self._pools.pop((self.pool_class, url), None)
        if pool is not None:
            pool.disconnect()

    def _create_pool(self, url: str) -> ConnectionPool:
        """Create a new connection pool."""
        logger.debug("Creating connection pool for %s", urlparse(url).hostname)
        return self.pool_class.from_url(url, **self._get_pool_options())


class ClusterConnectionFactory:
    """Connection factory for Redis Cluster.

    The cluster client discovers the node topology from the startup nodes and
    keeps one connection pool per node. Clients are cached per startup-node
    list; the first caller builds the client while holding the class lock and
    every concurrent caller gets that same instance.
    """

    _clusters: ClassVar[dict[tuple[type, tuple[str, ...]], RedisCluster]] = {}
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, options: dict, cluster_class: type | None = None, node_class: type | None = None):
        self.options = options

        cluster_class = options.get("cluster_class", cluster_class or RedisClusterClient)
        if isinstance(cluster_class, str):
            cluster_class = import_string(cluster_class)
        self.cluster_class = cluster_class
        self.node_class = node_class or RedisClusterNode

    def _get_cluster_options(self, servers: list[str]) -> dict:
        """Get options to pass to the cluster client."""
        cluster_options: dict[str, Any] = {
            "cluster_error_retry_attempts": int(self.options.get("max_attempts", DEFAULT_MAX_ATTEMPTS)),
        }

        # Credentials embedded in the first URL apply to every node
        parsed = urlparse(servers[0]) if "://" in servers[0] else None
        if parsed is not None:
            if parsed.username:
                cluster_options["username"] = parsed.username
            if parsed.password:
                cluster_options["password"] = parsed.password

        for key, value in self.options.items():
            if key not in _KNOWN_OPTIONS and key != "db":
                cluster_options[key] = value

        return cluster_options

    def connect(self, servers: list[str]) -> RedisCluster:
        """Get the cluster client for ``servers``, building it at most once."""
        cache_key = (self.cluster_class, tuple(servers))
        cluster = self._clusters.get(cache_key)
        if cluster is None:
            with self._lock:
                cluster = self._clusters.get(cache_key)
                if cluster is None:
                    startup_nodes = [self.node_class(host, port) for host, port in parse_startup_nodes(servers)]
                    logger.debug("Creating cluster client from %d startup nodes", len(startup_nodes))
                    cluster = self.cluster_class(
                        startup_nodes=startup_nodes,
                        **self._get_cluster_options(servers),
                    )
                    self._clusters[cache_key] = cluster
        return cluster


def get_connection_factory(
    options: dict,
    *,
    default: str = "django_keyspace.pool.ConnectionFactory",
    setting: str = "KEYSPACE_CONNECTION_FACTORY",
    **kwargs: Any,
) -> Any:
    """Get the connection factory for the given options.

    Looks at the ``connection_factory`` option, then the named Django setting,
    then ``default``. ``kwargs`` are forwarded to the factory constructor.
    """
    # Check for explicit connection_factory option
    factory_path = options.get("connection_factory")

    # Fall back to global setting
    if not factory_path and settings.configured:
        factory_path = getattr(settings, setting, None)

    if not factory_path:
        factory_path = default

    if isinstance(factory_path, str):
        factory_class = import_string(factory_path)
    else:
        factory_class = factory_path

    return factory_class(options, **kwargs)
