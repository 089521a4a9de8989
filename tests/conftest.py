"""Pytest configuration for django-keyspace tests."""

import pytest

from django_keyspace.pool import ClusterConnectionFactory, ConnectionFactory
from tests.fakes import FakeClusterConnectionFactory, FakeConnectionFactory
from tests.fixtures import (
    cache,
    cluster_container,
    cluster_container_factory,
    fake_cluster,
    fake_pool,
    fake_server,
    manager,
    redis_container,
    redis_container_factory,
    redis_images,
    serializers,
    topology,
)

# Re-export fixtures so pytest can discover them
__all__ = [
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
    "reset_factory_caches",
    "serializers",
    "topology",
]


@pytest.fixture(autouse=True)
def reset_factory_caches():
    """Forget process-global pools and cluster clients between tests."""
    yield
    ConnectionFactory._pools.clear()
    ClusterConnectionFactory._clusters.clear()
    FakeConnectionFactory.pools.clear()
    FakeClusterConnectionFactory.clusters.clear()
