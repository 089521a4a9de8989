import pickle
from typing import Any

from django_keyspace.exceptions import SerializerError
from django_keyspace.serializers.base import BaseSerializer


class PickleSerializer(BaseSerializer):
    """Pickle-based serializer, the default.

    Handles any picklable Python object, which is what Django's session store
    needs. Only read values written by trusted code: unpickling untrusted
    data can execute arbitrary code.

    Args:
        protocol: Pickle protocol, defaults to ``pickle.HIGHEST_PROTOCOL``
    """

    def __init__(self, protocol: int | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.protocol = pickle.HIGHEST_PROTOCOL if protocol is None else protocol

    def dumps(self, obj: Any) -> bytes:
        return pickle.dumps(obj, self.protocol)

    def loads(self, data: bytes) -> Any:
        try:
            return pickle.loads(data)  # noqa: S301
        except (pickle.UnpicklingError, EOFError, TypeError, ValueError, AttributeError, ImportError) as e:
            raise SerializerError from e
