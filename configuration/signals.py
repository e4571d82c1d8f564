from django.core.exceptions import ValidationError
from django.db.models.signals import post_save
from django.dispatch import receiver

from configuration.models import Configuration
from configuration.utils import cache_configuration_value


@receiver(post_save, sender=Configuration)
def update_cached_configuration_value(
    sender: type[Configuration], *, instance: Configuration, **kwargs
) -> None:
    """
    Refresh the cached value whenever a Configuration row is saved, so
    running workers pick up new thresholds and rates without a restart.

    A value which cannot be parsed for its data type is left out of the cache;
    readers then fall back to the database and see the parse error there.
    """
    try:
        value = instance.get_value()
    except (ValueError, ValidationError):
        return
    cache_configuration_value(instance.key, value)
