"""Base Django settings for tests."""

SECRET_KEY = "django_tests_secret_key"

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    },
}

USE_TZ = False

# The cache session engine stores sessions through the default cache
SESSION_ENGINE = "django.contrib.sessions.backends.cache"

# Base CACHES configuration - in-memory fakes, overridden per test where needed.
# The 'doesnotexist' cache points to an invalid port for testing exception handling.
CACHES = {
    "default": {
        "BACKEND": "tests.fixtures.cache.FakeRedisCache",
        "LOCATION": "redis://127.0.0.1:6379/1",
        "OPTIONS": {"connection_factory": "tests.fakes.FakeConnectionFactory"},
    },
    "doesnotexist": {
        "BACKEND": "django_keyspace.cache.RedisCache",
        "LOCATION": "redis://127.0.0.1:56379/1",
        "OPTIONS": {"socket_connect_timeout": 0.1},
    },
    "with_prefix": {
        "BACKEND": "tests.fixtures.cache.FakeRedisCache",
        "LOCATION": "redis://127.0.0.1:6379/1",
        "OPTIONS": {"connection_factory": "tests.fakes.FakeConnectionFactory"},
        "KEY_PREFIX": "test-prefix",
    },
}
