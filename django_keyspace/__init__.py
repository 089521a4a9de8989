VERSION = (1, 0, 0)
__version__ = ".".join(map(str, VERSION))


def get_key_space_manager(alias="default"):
    """Helper used for obtaining the key-space manager behind a cache alias."""
    from django.core.cache import caches

    cache = caches[alias]

    error_message = "This backend does not support this feature"
    if not hasattr(cache, "get_manager"):
        raise NotImplementedError(error_message)

    return cache.get_manager()
