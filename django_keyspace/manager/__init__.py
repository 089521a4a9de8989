# Base class shared by both topologies
from django_keyspace.manager.base import KeySpaceManager

# Cluster implementations
from django_keyspace.manager.cluster import (
    KeyValueClusterManager,
    RedisClusterManager,
    ValkeyClusterManager,
)

# Single-endpoint implementations
from django_keyspace.manager.default import (
    KeyValueManager,
    RedisManager,
    ValkeyManager,
)

__all__ = [
    "KeySpaceManager",
    # Single-endpoint managers
    "KeyValueManager",
    "RedisManager",
    "ValkeyManager",
    # Cluster managers
    "KeyValueClusterManager",
    "RedisClusterManager",
    "ValkeyClusterManager",
]
