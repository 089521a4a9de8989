"""Manager/cache fixtures backed by the in-memory fakes, and config builders."""

from collections.abc import Iterator

import pytest
from django.core.cache import caches
from django.test import override_settings
from redis.cluster import key_slot

from django_keyspace.cache.cluster import KeySpaceClusterCache
from django_keyspace.cache.default import KeySpaceCache
from django_keyspace.manager.cluster import KeyValueClusterManager
from django_keyspace.manager.default import KeyValueManager
from tests.fakes import FakeCluster, FakeConnectionPool, FakeRedis, FakeServer

# Available serializers (None means default pickle)
SERIALIZERS = {
    None: None,
    "json": "django_keyspace.serializers.json.JSONSerializer",
    "msgpack": "django_keyspace.serializers.msgpack.MessagePackSerializer",
}

# Available cache backends - keyed by (backend_type, client_library)
BACKENDS = {
    ("default", "valkey"): "django_keyspace.cache.ValkeyCache",
    ("cluster", "valkey"): "django_keyspace.cache.ValkeyClusterCache",
    ("default", "redis"): "django_keyspace.cache.RedisCache",
    ("cluster", "redis"): "django_keyspace.cache.RedisClusterCache",
}


class FakeRedisManager(KeyValueManager):
    """Single-endpoint manager whose clients talk to a FakeConnectionPool."""

    _client_class = FakeRedis


class FakeClusterManager(KeyValueClusterManager):
    """Cluster manager scanning FakeCluster nodes with FakeRedis clients."""

    _client_class = FakeRedis
    _key_slot_func = staticmethod(key_slot)


class FakeRedisCache(KeySpaceCache):
    _class = FakeRedisManager


class FakeClusterCache(KeySpaceClusterCache):
    _class = FakeClusterManager


def make_cluster(*shards: dict, replicas: dict | None = None) -> FakeCluster:
    """Build a FakeCluster with one primary per ``shards`` entry."""
    return FakeCluster(
        {f"node-{i}:{7000 + i}": FakeServer(data) for i, data in enumerate(shards)},
        replicas=replicas,
    )


@pytest.fixture(params=[None, "json", "msgpack"])  # None is default pickle
def serializers(request) -> str | None:
    """Parametrized serializer fixture. Request this to test all serializers."""
    return request.param


@pytest.fixture(params=["default", "cluster"])
def topology(request) -> str:
    """Parametrized topology fixture."""
    return request.param


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def fake_pool(fake_server: FakeServer) -> FakeConnectionPool:
    return FakeConnectionPool(fake_server)


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return make_cluster({}, {}, {})


@pytest.fixture
def manager(topology: str, fake_pool: FakeConnectionPool, fake_cluster: FakeCluster):
    """A manager of each topology, sharing the point-operation contract."""
    if topology == "cluster":
        return FakeClusterManager(cluster=fake_cluster, parallel_scan=False)
    return FakeRedisManager("redis://fake:6379", pool=fake_pool)


def build_fake_cache_config(
    *,
    backend: str = "default",
    serializer: str | None = None,
    pool: FakeConnectionPool | None = None,
    cluster: FakeCluster | None = None,
    **options,
) -> dict:
    """Build a CACHES configuration on the in-memory fakes.

    Args:
        backend: "default" or "cluster"
        serializer: Serializer name (None, "json", "msgpack")
        pool: Pool injected into the single-endpoint manager
        cluster: Cluster client injected into the cluster manager
        **options: Extra OPTIONS entries

    """
    if serializer and serializer in SERIALIZERS:
        options["serializer"] = SERIALIZERS[serializer]

    if backend == "cluster":
        backend_class = "tests.fixtures.cache.FakeClusterCache"
        location = "127.0.0.1:7000,127.0.0.1:7001,127.0.0.1:7002"
        options["cluster"] = cluster if cluster is not None else make_cluster({}, {}, {})
        options.setdefault("parallel_scan", False)
    else:
        backend_class = "tests.fixtures.cache.FakeRedisCache"
        location = "redis://fake:6379/1"
        options["pool"] = pool if pool is not None else FakeConnectionPool(FakeServer())

    return {
        "default": {
            "BACKEND": backend_class,
            "LOCATION": location,
            "OPTIONS": options.copy(),
        },
        "with_prefix": {
            "BACKEND": backend_class,
            "LOCATION": location,
            "OPTIONS": options.copy(),
            "KEY_PREFIX": "test-prefix",
        },
    }


def build_cache_config(
    redis_host: str,
    redis_port: int,
    *,
    backend: str = "default",
    serializer: str | None = None,
    client_library: str = "redis",
    db: int = 1,
) -> dict:
    """Build a CACHES configuration against a real server."""
    options = {}
    if serializer and serializer in SERIALIZERS:
        options["serializer"] = SERIALIZERS[serializer]

    if backend == "cluster":
        location = f"{redis_host}:{redis_port}"
    else:
        location = f"redis://{redis_host}:{redis_port}/{db}"
    backend_class = BACKENDS[(backend, client_library)]

    return {
        "default": {
            "BACKEND": backend_class,
            "LOCATION": location,
            "OPTIONS": options,
        },
    }


@pytest.fixture
def cache(topology: str, serializers: str | None) -> Iterator[KeySpaceCache]:
    """Cache backend on the in-memory fakes, one per topology and serializer."""
    caches_setting = build_fake_cache_config(backend=topology, serializer=serializers)
    with override_settings(CACHES=caches_setting):
        cache = caches["default"]
        yield cache
        cache.clear()
