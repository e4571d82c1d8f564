from typing import Any

from django.conf import settings
from django.core.cache import caches

from configuration.models import Configuration

CONFIGURATION_KEY_PREFIX = "config"


def configuration_value(key: str) -> Any:
    """
    Retrieve a configuration value by key with caching and type casting.

    The value is read from the ``configuration_cache`` cache alias; on a miss
    it is loaded from the database, cast by ``Configuration.get_value()`` and
    cached for ``settings.CONFIGURATION_CACHE_TIMEOUT`` seconds.

    Raises:
        Configuration.DoesNotExist: If the key is not present in the database
            when attempting to populate the cache.
    """
    config_cache = caches["configuration_cache"]
    cache_key = f"{CONFIGURATION_KEY_PREFIX}_{key}"
    value = config_cache.get(cache_key)

    if value is None:
        value = cache_configuration_value(key)

    return value


def configuration_value_or_default(key: str, default: Any) -> Any:
    """
    Like ``configuration_value`` but returns ``default`` when no row exists
    for ``key``. Missing keys are not cached, so adding the row later takes
    effect on the next read.
    """
    try:
        return configuration_value(key)
    except Configuration.DoesNotExist:
        return default


def cache_configuration_value(key: str, value: Any | None = None) -> Any:
    """
    Populate or refresh the cached value for a configuration key.

    If ``value`` is None the row is loaded and cast via ``get_value()``,
    otherwise ``value`` is cached as given.

    Raises:
        Configuration.DoesNotExist: If ``value`` is ``None`` and there is no
            ``Configuration`` row with the given key.
    """
    config_cache = caches["configuration_cache"]
    cache_key = f"{CONFIGURATION_KEY_PREFIX}_{key}"

    if value is None:
        config = Configuration.objects.get(key=key)
        value = config.get_value()

    config_cache.set(cache_key, value, timeout=settings.CONFIGURATION_CACHE_TIMEOUT)
    return value
