"""Django cache backend delegating to a key-space manager.

Extends Django's BaseCache so the managers can back ``django.core.cache``
and, through it, the cache session engine
(``django.contrib.sessions.backends.cache``).

Usage:
    CACHES = {
        "default": {
            "BACKEND": "django_keyspace.cache.RedisCache",
            "LOCATION": "redis://127.0.0.1:6379/1",
        }
    }
"""

from __future__ import annotations

import logging
import re
from functools import cached_property
from typing import TYPE_CHECKING, Any, override

from django.core.cache.backends.base import DEFAULT_TIMEOUT, BaseCache

from django_keyspace.compat import create_serializers
from django_keyspace.exceptions import SerializerError
from django_keyspace.manager.default import KeyValueManager, RedisManager, ValkeyManager
from django_keyspace.omit_exception import omit_exception

if TYPE_CHECKING:
    import builtins

    from django_keyspace.manager.base import KeySpaceManager
    from django_keyspace.types import KeyT

# Sentinel value for methods with dynamic return values (e.g., get() returns default arg)
CONNECTION_INTERRUPTED = object()

# Options only the backend consumes
_BACKEND_ONLY_OPTIONS = frozenset({"serializer", "ignore_exceptions", "log_ignored_exceptions", "close_connection"})

# Regex for escaping glob special characters
_special_re = re.compile("([*?[])")


def _glob_escape(s: str) -> str:
    """Escape glob special characters in a string."""
    return _special_re.sub(r"[\1]", s)


# =============================================================================
# KeySpaceCache - base class extending Django's BaseCache
# =============================================================================


class KeySpaceCache(BaseCache):
    """Django cache backend on top of a key-space manager.

    Subclasses pick the topology and client library by setting ``_class``
    to a manager class.
    """

    # Class attribute - subclasses override this
    _class: builtins.type[KeySpaceManager] = KeyValueManager

    def __init__(self, server: str | list[str], params: dict[str, Any]) -> None:
        super().__init__(params)
        # Parse server(s) - matches Django's RedisCache behavior
        if isinstance(server, str):
            self._servers = re.split("[;,]", server)
        else:
            self._servers = server

        self._options = params.get("OPTIONS", {})
        self._serializers = create_serializers(self._options.get("serializer"))

        # Exception handling config (from OPTIONS)
        self._ignore_exceptions = self._options.get("ignore_exceptions", False)
        self._log_ignored_exceptions = self._options.get("log_ignored_exceptions", False)
        self._logger = logging.getLogger(__name__) if self._log_ignored_exceptions else None

    @cached_property
    def _manager(self) -> KeySpaceManager:
        """Get the manager instance (matches Django's ``_cache`` pattern)."""
        options = {key: value for key, value in self._options.items() if key not in _BACKEND_ONLY_OPTIONS}
        return self._class(self._servers, **options)

    def get_manager(self) -> KeySpaceManager:
        """The key-space manager behind this cache."""
        return self._manager

    def get_backend_timeout(self, timeout: float | None = DEFAULT_TIMEOUT) -> int | None:
        """Convert timeout to backend format (matches Django's RedisCache).

        Negative values are clamped to 0, causing immediate key deletion.
        This matches Django's behavior where negative timeouts expire keys.
        """
        if timeout == DEFAULT_TIMEOUT:
            timeout = self.default_timeout
        # The key will be made persistent if None used as a timeout.
        # Non-positive values will cause the key to be deleted.
        return None if timeout is None else max(0, int(timeout))

    # =========================================================================
    # Encoding/Decoding
    # =========================================================================

    def encode(self, value: Any) -> bytes:
        """Serialize a value with the first configured serializer."""
        return self._serializers[0].dumps(value)

    def decode(self, value: bytes) -> Any:
        """Deserialize with fallback support for multiple serializers."""
        last_error: SerializerError | None = None
        for serializer in self._serializers:
            try:
                return serializer.loads(value)
            except SerializerError as e:
                last_error = e
                continue

        if last_error is not None:
            raise last_error
        raise SerializerError("No serializers configured")

    # =========================================================================
    # Pattern helpers
    # =========================================================================

    def make_pattern(self, pattern: str, version: int | None = None) -> str:
        """Build a pattern for key matching with proper escaping."""
        escaped_prefix = _glob_escape(self.key_prefix)
        ver = version if version is not None else self.version
        return self.key_func(pattern, escaped_prefix, ver)

    def reverse_key(self, key: str) -> str:
        """Reverse a made key back to original (strip prefix:version:)."""
        parts = key.split(":", 2)
        if len(parts) == 3:
            return parts[2]
        return key

    # =========================================================================
    # Core Cache Operations (Django's BaseCache interface)
    # =========================================================================

    @omit_exception(return_value=False)
    @override
    def add(
        self,
        key: KeyT,
        value: Any,
        timeout: float | None = DEFAULT_TIMEOUT,
        version: int | None = None,
    ) -> bool:
        """Set a value only if the key doesn't exist."""
        key = self.make_and_validate_key(key, version=version)
        backend_timeout = self.get_backend_timeout(timeout)
        if backend_timeout == 0:
            if ret := self._manager.add(key, self.encode(value)):
                self._manager.delete(key)
            return ret
        return self._manager.add(key, self.encode(value), backend_timeout)

    @omit_exception(return_value=CONNECTION_INTERRUPTED)
    def _get(self, key: KeyT, version: int | None = None) -> Any:
        """Internal get with exception handling."""
        key = self.make_and_validate_key(key, version=version)
        return self._manager.get(key)

    @override
    def get(self, key: KeyT, default: Any = None, version: int | None = None) -> Any:
        """Fetch a value from the cache."""
        value = self._get(key, version=version)
        if value is CONNECTION_INTERRUPTED or value is None:
            return default
        return self.decode(value)

    @omit_exception
    @override
    def set(
        self,
        key: KeyT,
        value: Any,
        timeout: float | None = DEFAULT_TIMEOUT,
        version: int | None = None,
    ) -> None:
        """Set a value in the cache."""
        key = self.make_and_validate_key(key, version=version)
        backend_timeout = self.get_backend_timeout(timeout)
        if backend_timeout == 0:
            self._manager.delete(key)
            return
        self._manager.set(key, self.encode(value), backend_timeout)

    @omit_exception(return_value=False)
    @override
    def touch(self, key: KeyT, timeout: float | None = DEFAULT_TIMEOUT, version: int | None = None) -> bool:
        """Update the timeout on a key."""
        key = self.make_and_validate_key(key, version=version)
        backend_timeout = self.get_backend_timeout(timeout)
        if backend_timeout == 0:
            return self._manager.delete(key)
        if backend_timeout is None:
            return self._manager.touch(key, None) or self._manager.has_key(key)
        return self._manager.touch(key, backend_timeout)

    @omit_exception(return_value=False)
    @override
    def delete(self, key: KeyT, version: int | None = None) -> bool:
        """Remove a key from the cache."""
        key = self.make_and_validate_key(key, version=version)
        return self._manager.delete(key)

    @omit_exception(return_value=False)
    @override
    def has_key(self, key: KeyT, version: int | None = None) -> bool:
        """Check if a key exists."""
        key = self.make_and_validate_key(key, version=version)
        return self._manager.has_key(key)

    @omit_exception(return_value=False)
    @override
    def clear(self) -> bool:
        """Flush the whole key space."""
        return self._manager.clear()

    @override
    def close(self, **kwargs: Any) -> None:
        """Close connections if configured (Django calls this after every request)."""
        if self._options.get("close_connection", False):
            self._manager.close()

    # =========================================================================
    # Key-Space Operations
    # =========================================================================

    def _decode_key(self, key: bytes | str) -> str:
        return self.reverse_key(key.decode() if isinstance(key, bytes) else key)

    @omit_exception(return_value=[])
    def keys(self, pattern: str = "*", version: int | None = None) -> list[str]:
        """Original keys matching ``pattern`` (prefix and version stripped)."""
        full_pattern = self.make_pattern(pattern, version=version)
        return sorted(self._decode_key(key) for key in self._manager.keys(full_pattern))

    @omit_exception(return_value=0)
    def db_size(self, pattern: str = "*", version: int | None = None) -> int:
        """Number of scanned entries matching ``pattern``."""
        return self._manager.db_size(self.make_pattern(pattern, version=version))

    @omit_exception(return_value=0)
    def delete_pattern(self, pattern: str, version: int | None = None) -> int:
        """Delete every key matching ``pattern``; returns the number deleted."""
        return self._manager.delete_pattern(self.make_pattern(pattern, version=version))

    @omit_exception(return_value=None)
    def ttl(self, key: KeyT, version: int | None = None) -> int | None:
        """Get TTL in seconds. Returns None if no expiry, -2 if key doesn't exist."""
        key = self.make_and_validate_key(key, version=version)
        return self._manager.ttl(key)


# =============================================================================
# Concrete Implementations
# =============================================================================


class RedisCache(KeySpaceCache):
    """Django cache backend for a single Redis endpoint (redis-py)."""

    _class = RedisManager


class ValkeyCache(KeySpaceCache):
    """Django cache backend for a single Valkey endpoint (valkey-py)."""

    _class = ValkeyManager


__all__ = [
    "KeySpaceCache",
    "RedisCache",
    "ValkeyCache",
]
