"""Test fixtures for django-keyspace."""

from tests.fixtures.cache import (
    cache,
    fake_cluster,
    fake_pool,
    fake_server,
    manager,
    serializers,
    topology,
)
from tests.fixtures.containers import (
    RedisContainerInfo,
    cluster_container,
    cluster_container_factory,
    redis_container,
    redis_container_factory,
    redis_images,
)

__all__ = [
    "RedisContainerInfo",
    "cache",
    "cluster_container",
    "cluster_container_factory",
    "fake_cluster",
    "fake_pool",
    "fake_server",
    "manager",
    "redis_container",
    "redis_container_factory",
    "redis_images",
    "serializers",
    "topology",
]
