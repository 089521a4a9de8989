# Derived from django-redis (https://github.com/jazzband/django-redis)
# Copyright (c) 2011-2016 Andrey Antukh <niwi@niwi.nz>
# Copyright (c) 2011 Sean Bleier
# Licensed under BSD-3-Clause
#
# django-redis was used as inspiration for this project.

"""Exceptions for django-keyspace.

This module defines exceptions that may be raised by the key-space managers
and the cache backend. Users can catch these to handle specific error
conditions.
"""

import socket

# Build exception tuples from available libraries (redis-py / valkey-py).
# These are used by omit_exception and the manager layer.
# _connection_exceptions is the subset meaning the endpoint could not be reached.
_exception_list: list[type[Exception]] = [socket.timeout]
_connection_list: list[type[Exception]] = [socket.timeout]

try:
    from redis.exceptions import ConnectionError as RedisConnectionError
    from redis.exceptions import RedisClusterException
    from redis.exceptions import ResponseError as RedisResponseError
    from redis.exceptions import TimeoutError as RedisTimeoutError

    _exception_list.extend([RedisConnectionError, RedisTimeoutError, RedisResponseError, RedisClusterException])
    _connection_list.extend([RedisConnectionError, RedisTimeoutError])
except ImportError:
    pass

try:
    from valkey.exceptions import ConnectionError as ValkeyConnectionError
    from valkey.exceptions import ResponseError as ValkeyResponseError
    from valkey.exceptions import TimeoutError as ValkeyTimeoutError

    _exception_list.extend([ValkeyConnectionError, ValkeyTimeoutError, ValkeyResponseError])
    _connection_list.extend([ValkeyConnectionError, ValkeyTimeoutError])
except ImportError:
    pass

_main_exceptions = tuple(_exception_list)
_connection_exceptions = tuple(_connection_list)


class ConnectionInterruptedError(Exception):
    """Raised when a server round trip fails.

    Wraps connection, timeout and protocol errors from the underlying client
    library. The original exception is available as ``__cause__``.

    Attributes:
        connection: The client (or pool) the failing call was issued through.
    """

    def __init__(self, connection: object = None) -> None:
        self.connection = connection
        super().__init__()

    def __str__(self) -> str:
        cause = self.__cause__
        if cause is None:
            return "Connection interrupted"
        return f"{type(cause).__name__}: {cause}"


class ScanIterationLimitError(Exception):
    """Raised when a SCAN walk exceeds the configured ``max_scan_iterations``.

    The walk is unbounded unless a ceiling is configured. When one is, hitting
    it is an error rather than a silent truncation of the key set.

    Attributes:
        limit: The configured ceiling.
        endpoint: Name of the endpoint being scanned, if known.
    """

    def __init__(self, limit: int, endpoint: str | None = None) -> None:
        self.limit = limit
        self.endpoint = endpoint
        super().__init__(limit, endpoint)

    def __str__(self) -> str:
        msg = f"SCAN did not complete within {self.limit} round trips"
        if self.endpoint:
            msg += f" on {self.endpoint}"
        return msg


class SerializerError(Exception):
    """Raised when serialization or deserialization fails.

    This can occur when:
    - The data format doesn't match the expected serializer format
    - The data is corrupted
    - The serializer encounters an incompatible type

    When using serializer fallback, this error triggers fallback to the
    next serializer in the list, enabling safe migrations between formats.
    """
