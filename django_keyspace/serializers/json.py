import json
from typing import Any

from django.core.serializers.json import DjangoJSONEncoder

from django_keyspace.exceptions import SerializerError
from django_keyspace.serializers.base import BaseSerializer


class JSONSerializer(BaseSerializer):
    """JSON-based serializer using Django's DjangoJSONEncoder.

    Human-readable and interoperable, but limited to JSON-compatible types
    (strings, numbers, lists, dicts, bools, None) plus what DjangoJSONEncoder
    adds (datetimes, Decimal, UUID, lazy strings).

    Example:
        Configure in Django settings::

            CACHES = {
                "default": {
                    "BACKEND": "django_keyspace.cache.RedisCache",
                    "LOCATION": "redis://localhost:6379/1",
                    "OPTIONS": {
                        "serializer": "django_keyspace.serializers.json.JSONSerializer",
                    }
                }
            }
    """

    encoder_class = DjangoJSONEncoder

    def dumps(self, obj: Any) -> bytes:
        return json.dumps(obj, cls=self.encoder_class).encode()

    def loads(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SerializerError from e
