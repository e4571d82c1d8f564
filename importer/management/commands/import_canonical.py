"""
Management command to import curated lists and award ceremonies.

Usage:
    python manage.py import_canonical list 1001-movies
    python manage.py import_canonical festival oscars 2023 2024
"""

from django.core.management.base import BaseCommand, CommandError

from importer import progress
from importer.exceptions import ImportAlreadyRunning
from importer.models import CanonicalSource


class Command(BaseCommand):
    help = "Import the films referenced by a curated list or festival."  # NOQA: A003

    def add_arguments(self, parser):
        parser.add_argument("kind", choices=("list", "festival"))
        parser.add_argument("source_key", help="The CanonicalSource to import")
        parser.add_argument(
            "years", nargs="*", type=int, help="Ceremony years, for festivals"
        )

    def handle(self, *, kind, source_key, years, **options):
        if kind == "festival" and not years:
            raise CommandError("Give at least one ceremony year")

        try:
            if kind == "list":
                import_job = progress.start_canonical_import(source_key)
            else:
                import_job = progress.start_festival_import(source_key, years)
        except CanonicalSource.DoesNotExist as exc:
            raise CommandError(f"No active {kind} source {source_key}") from exc
        except ImportAlreadyRunning as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(self.style.SUCCESS(f"Queued {import_job}"))
