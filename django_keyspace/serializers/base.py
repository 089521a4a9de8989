from typing import Any


class BaseSerializer:
    """Base class for cache value serializers.

    The key-space managers store binary values only; serializers turn the
    Python objects handed to the Django cache backend into those bytes and
    back. Any object with ``dumps`` and ``loads`` methods works as a
    serializer, this class just documents the interface.

    Serializers accept ``**kwargs`` for configuration (e.g., ``protocol`` for
    pickle version). ``create_serializer()`` in ``django_keyspace.compat``
    forwards them.
    """

    def __init__(self, **kwargs: Any) -> None:
        pass

    def dumps(self, obj: Any) -> bytes:
        raise NotImplementedError

    def loads(self, data: bytes) -> Any:
        raise NotImplementedError
