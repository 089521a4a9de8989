"""Type aliases and the key-space manager protocol for django-keyspace.

Compatible with redis-py and valkey-py type systems, defined locally
to avoid a runtime dependency on either library for type annotations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

# Key types - matches redis.typing.KeyT
type KeyT = bytes | str

# Glob-style MATCH pattern; None matches every key
type PatternT = bytes | str | None

# Scan cursor as returned by redis-py (int) or a raw reply (bytes/str)
type CursorT = int | bytes | str


@runtime_checkable
class KeySpaceManagerProtocol(Protocol):
    """The contract shared by the single-endpoint and cluster managers.

    ``get``/``set``/``delete`` are point operations; ``keys``/``db_size``
    walk the whole key space with SCAN. Keys and values are binary.
    """

    def get(self, key: KeyT | None) -> bytes | None: ...

    def set(self, key: KeyT | None, value: bytes, expire_seconds: float | None = -1) -> bytes | None: ...

    def delete(self, key: KeyT | None) -> bool: ...

    def keys(self, pattern: PatternT = None) -> set[bytes]: ...

    def db_size(self, pattern: PatternT = None) -> int: ...


@dataclass
class ClusterScanResult:
    """Outcome of scanning every primary node of a cluster.

    ``count`` is the raw number of scanned entries and may exceed
    ``len(keys)`` when SCAN delivered a key more than once.
    """

    keys: set[bytes] = field(default_factory=set)
    count: int = 0
    scanned_nodes: list[str] = field(default_factory=list)
    skipped_nodes: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.skipped_nodes
