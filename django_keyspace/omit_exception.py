from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

from django_keyspace.exceptions import ConnectionInterruptedError


def omit_exception(
    method: Callable | None = None,
    return_value: Any | None = None,
) -> Callable:
    """Decorator that intercepts connection errors and ignores them if configured.

    When applied to a cache backend method, this decorator catches
    ``ConnectionInterruptedError`` raised by the key-space manager and either
    ignores it (returning return_value) or re-raises, depending on the
    cache's _ignore_exceptions setting.

    Args:
        method: The method to wrap (when used without parentheses)
        return_value: Value to return when exception is ignored (default: None)

    Usage:
        @omit_exception
        def set(self, key, value): ...

        @omit_exception(return_value=False)
        def add(self, key, value): ...
    """
    if method is None:
        return functools.partial(omit_exception, return_value=return_value)

    @functools.wraps(method)
    def _decorator(self: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return method(self, *args, **kwargs)
        except ConnectionInterruptedError:
            if not self._ignore_exceptions:
                raise
            if self._log_ignored_exceptions:
                self._logger.exception("Exception ignored")
            return return_value

    return _decorator
