"""
Management command to control catalog imports.

Usage:
    python manage.py import_movies start [--max-pages 10] [--scope tmdb_full]
    python manage.py import_movies daily
    python manage.py import_movies stop [--scope tmdb_full]
    python manage.py import_movies resume [--scope tmdb_full]
    python manage.py import_movies status [--scope tmdb_full]
"""

import json

from django.core.management.base import BaseCommand, CommandError

from importer import progress
from importer.exceptions import ImportAlreadyRunning
from importer.models import ImportProgress
from importer.queue import job_counts


class Command(BaseCommand):
    help = "Start, stop, resume or inspect a catalog import."  # NOQA: A003

    def add_arguments(self, parser):
        parser.add_argument(
            "action", choices=("start", "daily", "stop", "resume", "status")
        )
        parser.add_argument("--scope", default=progress.FULL_IMPORT_SCOPE)
        parser.add_argument(
            "--max-pages",
            type=int,
            default=None,
            help="Stop the import after this many discovery pages",
        )

    def handle(self, *, action, scope, max_pages, **options):
        try:
            if action == "start":
                import_job = progress.start_full_import(scope, max_pages=max_pages)
                self.stdout.write(self.style.SUCCESS(f"Queued {import_job}"))
            elif action == "daily":
                import_job = progress.start_daily_update()
                self.stdout.write(self.style.SUCCESS(f"Queued {import_job}"))
            elif action == "stop":
                cancelled = progress.stop_import(scope)
                self.stdout.write(
                    self.style.SUCCESS(f"Stopped {scope}; cancelled {cancelled} jobs")
                )
            elif action == "resume":
                import_job = progress.resume_import(scope)
                if import_job is None:
                    self.stdout.write(f"{scope} has nothing left to import")
                else:
                    self.stdout.write(self.style.SUCCESS(f"Queued {import_job}"))
            else:
                snapshot = progress.progress_snapshot(scope)
                if snapshot is None:
                    raise CommandError(f"No import {scope}")
                snapshot["jobs"] = job_counts(scope)
                self.stdout.write(json.dumps(snapshot, indent=2, default=str))
        except ImportAlreadyRunning as exc:
            raise CommandError(str(exc)) from exc
        except ImportProgress.DoesNotExist as exc:
            raise CommandError(f"No import {scope}") from exc
