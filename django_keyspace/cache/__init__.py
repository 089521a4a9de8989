"""Cache module - provides cache backend classes.

These are the classes to use as BACKEND in Django's CACHES setting.
"""

from django_keyspace.cache.cluster import (
    KeySpaceClusterCache,
    RedisClusterCache,
    ValkeyClusterCache,
)
from django_keyspace.cache.default import (
    KeySpaceCache,
    RedisCache,
    ValkeyCache,
)

__all__ = [
    "KeySpaceCache",
    "KeySpaceClusterCache",
    "RedisCache",
    "RedisClusterCache",
    "ValkeyCache",
    "ValkeyClusterCache",
]
