from typing import Any

import msgpack

from django_keyspace.exceptions import SerializerError
from django_keyspace.serializers.base import BaseSerializer


class MessagePackSerializer(BaseSerializer):
    """MessagePack-based serializer for compact binary values.

    Requires the ``msgpack`` package to be installed::

        pip install msgpack

    Note:
        Supports None, bool, int, float, str, bytes, list and dict only.
    """

    def dumps(self, obj: Any) -> bytes:
        return msgpack.dumps(obj)

    def loads(self, data: bytes) -> Any:
        try:
            return msgpack.loads(data, raw=False)
        except Exception as e:
            raise SerializerError from e
