"""SCAN cursor protocol against a single endpoint.

A walk borrows one connection from the endpoint's pool, issues
``SCAN cursor MATCH pattern COUNT hint`` until the server hands back the
start cursor, and releases the connection on every exit path.

There is no built-in ceiling on the number of round trips: a server that
never returns the start cursor keeps the walk going. Callers that need a
bound pass ``max_iterations``, which raises ``ScanIterationLimitError``
instead of returning a truncated result.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from django_keyspace.exceptions import ScanIterationLimitError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from django_keyspace.types import CursorT, PatternT

logger = logging.getLogger(__name__)

# Begins a walk and, when the server returns it again, ends it
START_CURSOR = 0

# COUNT hint sent with every SCAN
DEFAULT_SCAN_COUNT = 100


def is_start_cursor(cursor: CursorT) -> bool:
    """Check whether a cursor reply is the start token. Cursors are opaque, so any other value is not."""
    return cursor in (START_CURSOR, b"0", "0")


@contextmanager
def borrow_client(pool: Any, client_class: type) -> Iterator[Any]:
    """Borrow a single connection from ``pool`` for the duration of the block.

    The client takes one connection when it is built and hands it back to the
    pool on ``close()``, which runs even if the block raises.
    """
    client = client_class(connection_pool=pool, single_connection_client=True)
    try:
        yield client
    finally:
        client.close()


def iter_scan_batches(
    client: Any,
    match: PatternT = None,
    count: int = DEFAULT_SCAN_COUNT,
    max_iterations: int | None = None,
    endpoint: str | None = None,
) -> Iterator[list[bytes]]:
    """Yield one batch of keys per SCAN round trip until the cursor wraps.

    Batches may repeat keys already seen; SCAN guarantees at-least-once
    delivery only.

    Args:
        client: A client bound to one endpoint
        match: Glob pattern forwarded verbatim, None for all keys
        count: COUNT hint per round trip
        max_iterations: Optional ceiling on round trips
        endpoint: Endpoint name used in logs and errors

    Raises:
        ScanIterationLimitError: ``max_iterations`` round trips were made
            without the cursor returning to the start.
    """
    cursor: CursorT = START_CURSOR
    round_trips = 0
    while True:
        if max_iterations is not None and round_trips >= max_iterations:
            raise ScanIterationLimitError(max_iterations, endpoint)
        cursor, batch = client.scan(cursor=cursor, match=match, count=count)
        round_trips += 1
        yield batch
        if is_start_cursor(cursor):
            break
    logger.debug("SCAN on %s finished after %d round trips", endpoint or "endpoint", round_trips)


def scan_keys(
    pool: Any,
    client_class: type,
    match: PatternT = None,
    count: int = DEFAULT_SCAN_COUNT,
    max_iterations: int | None = None,
    endpoint: str | None = None,
) -> set[bytes]:
    """Collect every key of one endpoint matching ``match``."""
    keys: set[bytes] = set()
    with borrow_client(pool, client_class) as client:
        for batch in iter_scan_batches(client, match, count, max_iterations, endpoint):
            keys.update(batch)
    return keys


def count_keys(
    pool: Any,
    client_class: type,
    match: PatternT = None,
    count: int = DEFAULT_SCAN_COUNT,
    max_iterations: int | None = None,
    endpoint: str | None = None,
) -> int:
    """Count scanned entries of one endpoint matching ``match``.

    Duplicates delivered by SCAN are counted, so the result can exceed the
    number of distinct keys.
    """
    total = 0
    with borrow_client(pool, client_class) as client:
        for batch in iter_scan_batches(client, match, count, max_iterations, endpoint):
            total += len(batch)
    return total


def scan_and_count(
    pool: Any,
    client_class: type,
    match: PatternT = None,
    count: int = DEFAULT_SCAN_COUNT,
    max_iterations: int | None = None,
    endpoint: str | None = None,
) -> tuple[set[bytes], int]:
    """Collect keys and the raw entry count in a single walk."""
    keys: set[bytes] = set()
    total = 0
    with borrow_client(pool, client_class) as client:
        for batch in iter_scan_batches(client, match, count, max_iterations, endpoint):
            keys.update(batch)
            total += len(batch)
    return keys, total
