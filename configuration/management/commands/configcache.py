from django.core.cache import caches
from django.core.management.base import BaseCommand

from configuration.models import Configuration
from configuration.utils import CONFIGURATION_KEY_PREFIX, cache_configuration_value


class Command(BaseCommand):
    help = "Show or refresh cached configuration values."  # NOQA: A003

    def add_arguments(self, parser):
        parser.add_argument(
            "key", nargs="?", type=str, help="The configuration key to show"
        )
        parser.add_argument(
            "--refresh",
            action="store_true",
            help="Reload every configuration value from the database",
        )

    def handle(self, *args, **options):
        if options["refresh"]:
            for key in Configuration.objects.values_list("key", flat=True):
                cache_configuration_value(key)
                self.stdout.write(f"Refreshed '{key}'")
            return

        key = options["key"]
        if not key:
            self.stderr.write(self.style.ERROR("Provide a key or --refresh"))
            return

        value = caches["configuration_cache"].get(f"{CONFIGURATION_KEY_PREFIX}_{key}")
        if value is None:
            self.stdout.write(self.style.WARNING(f"Key '{key}' not found in cache."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Key '{key}' found:"))
            self.stdout.write(str(value))
