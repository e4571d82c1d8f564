from datetime import timedelta
from unittest import mock

from django.test import TestCase, override_settings
from django.utils import timezone

from importer import queue
from importer.models import ImportJob

from .utils import QueueRecorder, create_import_job


class DispatchTests(TestCase):
    def setUp(self):
        self.task = mock.Mock()
        self.task.apply_async.return_value = mock.Mock(
            id="0b6c2d8e-7d3f-4a57-9a56-1f5f3c2a9d10"
        )
        task_patch = mock.patch(
            "importer.queue.get_registered_task", return_value=self.task
        )
        self.get_registered_task = task_patch.start()
        self.addCleanup(task_patch.stop)

    def test_dispatch_sends_only_the_primary_key(self):
        job = create_import_job(kind=ImportJob.Kind.ENRICHMENT)

        queue.dispatch(job)

        self.get_registered_task.assert_called_once_with(
            "importer.tasks.enrichment.enrich_movie_task"
        )
        self.task.apply_async.assert_called_once_with((job.pk,))
        job.refresh_from_db()
        self.assertEqual(str(job.task_id), "0b6c2d8e-7d3f-4a57-9a56-1f5f3c2a9d10")

    def test_dispatch_honours_delays(self):
        job = create_import_job()
        queue.dispatch(job, countdown=5)
        self.task.apply_async.assert_called_with((job.pk,), countdown=5)

        later = timezone.now() + timedelta(hours=1)
        scheduled = create_import_job(scheduled_at=later)
        queue.dispatch(scheduled)
        self.task.apply_async.assert_called_with((scheduled.pk,), eta=later)

    def test_dispatch_keeps_a_task_id_set_by_the_worker(self):
        job = create_import_job(task_id="11111111-1111-1111-1111-111111111111")
        queue.dispatch(job)
        job.refresh_from_db()
        self.assertEqual(str(job.task_id), "11111111-1111-1111-1111-111111111111")


@override_settings(IMPORTER_MAX_ATTEMPTS={"details": 5})
class EnqueueTests(TestCase):
    def setUp(self):
        queue_patch = mock.patch("importer.queue.dispatch", QueueRecorder())
        self.recorder = queue_patch.start()
        self.addCleanup(queue_patch.stop)

    def test_enqueue_creates_an_available_job(self):
        job = queue.enqueue(
            ImportJob.Kind.DETAILS, {"tmdb_id": 10, "scope": "tmdb_full"}
        )

        self.assertEqual(job.state, ImportJob.State.AVAILABLE)
        self.assertEqual(job.scope, "tmdb_full")
        self.assertEqual(job.max_attempts, 5)
        self.assertEqual(job.payload, {"tmdb_id": 10, "scope": "tmdb_full"})
        self.assertEqual(self.recorder.dispatched, [job.pk])

    def test_enqueue_defaults(self):
        job = queue.enqueue("enrichment", {"movie_id": 1}, max_attempts=7)
        self.assertEqual(job.kind, ImportJob.Kind.ENRICHMENT)
        self.assertEqual(job.scope, "")
        self.assertEqual(job.max_attempts, 7)
        self.assertEqual(queue.default_max_attempts("enrichment"), 3)

    def test_enqueue_with_countdown_schedules_the_job(self):
        before = timezone.now()
        job = queue.enqueue(ImportJob.Kind.DISCOVERY, {"page": 2}, countdown=60)
        self.assertGreaterEqual(job.scheduled_at, before + timedelta(seconds=60))

    def test_unknown_kind_is_rejected(self):
        with self.assertRaises(ValueError):
            queue.enqueue("thumbnails", {})
        self.assertFalse(ImportJob.objects.exists())


class JobCountsTests(TestCase):
    def test_counts_every_kind_and_state(self):
        create_import_job(state=ImportJob.State.COMPLETED)
        create_import_job(state=ImportJob.State.COMPLETED)
        create_import_job(
            kind=ImportJob.Kind.DISCOVERY,
            payload={"scope": "other"},
            state=ImportJob.State.DISCARDED,
        )

        counts = queue.job_counts()

        self.assertEqual(set(counts), set(ImportJob.Kind.values))
        self.assertEqual(counts["details"]["completed"], 2)
        self.assertEqual(counts["details"]["available"], 0)
        self.assertEqual(counts["discovery"]["discarded"], 1)

        scoped = queue.job_counts("other")
        self.assertEqual(scoped["details"]["completed"], 0)
        self.assertEqual(scoped["discovery"]["discarded"], 1)


class ReplayAndCancelTests(TestCase):
    def setUp(self):
        queue_patch = mock.patch("importer.queue.dispatch", QueueRecorder())
        self.recorder = queue_patch.start()
        self.addCleanup(queue_patch.stop)

    def test_replay_discarded_job(self):
        job = create_import_job(
            state=ImportJob.State.DISCARDED,
            attempt=5,
            task_id="11111111-1111-1111-1111-111111111111",
        )

        self.assertIsNotNone(queue.replay_job(job))

        job.refresh_from_db()
        self.assertEqual(job.state, ImportJob.State.AVAILABLE)
        self.assertEqual(job.attempt, 0)
        self.assertIsNone(job.task_id)
        self.assertEqual(self.recorder.dispatched, [job.pk])

    def test_replay_refuses_other_states(self):
        job = create_import_job(state=ImportJob.State.EXECUTING)
        self.assertIsNone(queue.replay_job(job))
        self.assertEqual(self.recorder.dispatched, [])

    def test_cancel_only_touches_unstarted_jobs(self):
        waiting = create_import_job(
            kind=ImportJob.Kind.DISCOVERY, payload={"scope": "tmdb_full", "page": 3}
        )
        running = create_import_job(
            kind=ImportJob.Kind.DISCOVERY,
            payload={"scope": "tmdb_full", "page": 2},
            state=ImportJob.State.EXECUTING,
        )
        details = create_import_job(payload={"scope": "tmdb_full", "tmdb_id": 1})
        elsewhere = create_import_job(
            kind=ImportJob.Kind.DISCOVERY, payload={"scope": "tmdb_daily:2026-10-19"}
        )

        self.assertEqual(queue.cancel_jobs(ImportJob.Kind.DISCOVERY, "tmdb_full"), 1)

        states = dict(
            ImportJob.objects.filter(
                pk__in=[waiting.pk, running.pk, details.pk, elsewhere.pk]
            ).values_list("pk", "state")
        )
        self.assertEqual(states[waiting.pk], ImportJob.State.CANCELLED)
        self.assertEqual(states[running.pk], ImportJob.State.EXECUTING)
        self.assertEqual(states[details.pk], ImportJob.State.AVAILABLE)
        self.assertEqual(states[elsewhere.pk], ImportJob.State.AVAILABLE)

        self.assertEqual(queue.cancel_jobs(), 2)
