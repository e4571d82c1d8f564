import json
from io import StringIO
from unittest import mock

from django.core.management import CommandError, call_command
from django.test import TestCase

from importer.models import CanonicalSource, ImportJob, ImportProgress

from .utils import QueueRecorder, create_canonical_source, create_progress


class CommandTestCase(TestCase):
    def setUp(self):
        queue_patch = mock.patch("importer.queue.dispatch", QueueRecorder())
        self.queue = queue_patch.start()
        self.addCleanup(queue_patch.stop)

    def call(self, *args, **kwargs):
        out = StringIO()
        call_command(*args, stdout=out, **kwargs)
        return out.getvalue()


class ImportMoviesCommandTests(CommandTestCase):
    def test_start(self):
        output = self.call("import_movies", "start", "--max-pages", "3")

        self.assertIn("Queued", output)
        self.assertEqual(ImportProgress.objects.get(scope="tmdb_full").max_pages, 3)
        self.assertEqual(self.queue.kinds(), [ImportJob.Kind.DISCOVERY])

    def test_start_while_running(self):
        create_progress("tmdb_full")
        with self.assertRaisesMessage(CommandError, "already running"):
            self.call("import_movies", "start")

    def test_daily(self):
        self.call("import_movies", "daily")
        self.assertTrue(
            ImportProgress.objects.filter(
                import_type=ImportProgress.ImportType.DAILY
            ).exists()
        )

    def test_stop_and_resume(self):
        create_progress("tmdb_full", last_page_processed=2)

        self.assertIn("cancelled 0 jobs", self.call("import_movies", "stop"))
        self.assertIn("Queued", self.call("import_movies", "resume"))

        import_job = ImportJob.objects.get()
        self.assertEqual(import_job.payload, {"scope": "tmdb_full", "page": 3})

    def test_resume_with_nothing_left(self):
        create_progress(
            "tmdb_full",
            status=ImportProgress.Status.STOPPED,
            last_page_processed=5,
            total_pages=5,
        )
        output = self.call("import_movies", "resume")
        self.assertIn("nothing left to import", output)

    def test_status(self):
        create_progress("tmdb_full", last_page_processed=4, total_pages=10)

        snapshot = json.loads(self.call("import_movies", "status"))

        self.assertEqual(snapshot["last_page_processed"], 4)
        self.assertEqual(snapshot["jobs"]["discovery"]["available"], 0)

    def test_unknown_scope(self):
        for action in ("stop", "resume", "status"):
            with self.assertRaisesMessage(CommandError, "No import nope"):
                self.call("import_movies", action, "--scope", "nope")


class ImportCanonicalCommandTests(CommandTestCase):
    def test_list(self):
        create_canonical_source("1001-movies")

        self.call("import_canonical", "list", "1001-movies")

        self.assertEqual(self.queue.kinds(), [ImportJob.Kind.CANONICAL_PAGE])

    def test_festival(self):
        create_canonical_source("oscars", kind=CanonicalSource.SourceKind.FESTIVAL)

        self.call("import_canonical", "festival", "oscars", "2023", "2024")

        run = ImportProgress.objects.get(scope="festival:oscars")
        self.assertEqual(run.filters, {"years": [2023, 2024]})

    def test_festival_needs_years(self):
        create_canonical_source("oscars", kind=CanonicalSource.SourceKind.FESTIVAL)
        with self.assertRaisesMessage(CommandError, "at least one ceremony year"):
            self.call("import_canonical", "festival", "oscars")

    def test_unknown_source(self):
        with self.assertRaisesMessage(CommandError, "No active list source nope"):
            self.call("import_canonical", "list", "nope")
