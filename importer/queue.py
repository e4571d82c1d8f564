"""
Durable job queue on top of Celery.

Every unit of import work is an ImportJob row created here before its Celery
message is sent. The message only carries the row's primary key, so the row
is where a job's payload, state, attempts and errors live; Celery is just the
transport. Workers update the row through
``importer.tasks.decorators.track_import_job``.
"""

from datetime import timedelta
from logging import getLogger

from django.conf import settings
from django.db.models import Count
from django.utils import timezone

from filmgraph.logging import FilmgraphLogger
from filmgraph.utils.celery import get_registered_task
from importer.models import ImportJob
from prometheus_metrics.models import import_jobs_total

logger = getLogger(__name__)
structured_logger = FilmgraphLogger.get_logger(__name__)

KIND_TO_TASK = {
    ImportJob.Kind.DISCOVERY: "importer.tasks.discovery.discover_page_task",
    ImportJob.Kind.DETAILS: "importer.tasks.details.fetch_movie_details_task",
    ImportJob.Kind.ENRICHMENT: "importer.tasks.enrichment.enrich_movie_task",
    ImportJob.Kind.CANONICAL_PAGE: (
        "importer.tasks.canonical.import_canonical_page_task"
    ),
    ImportJob.Kind.FESTIVAL_CEREMONY: (
        "importer.tasks.festivals.import_festival_ceremony_task"
    ),
}


def default_max_attempts(kind):
    return settings.IMPORTER_MAX_ATTEMPTS.get(kind, 3)


def dispatch(import_job, countdown=None):
    """Send the Celery message for an existing job row"""
    task = get_registered_task(KIND_TO_TASK[import_job.kind])

    options = {}
    if countdown:
        options["countdown"] = countdown
    elif import_job.scheduled_at and import_job.scheduled_at > timezone.now():
        options["eta"] = import_job.scheduled_at

    result = task.apply_async((import_job.pk,), **options)
    # A filtered update so an eagerly executed task's state is not overwritten
    ImportJob.objects.filter(pk=import_job.pk, task_id__isnull=True).update(
        task_id=result.id
    )
    return result


def enqueue(kind, payload, scheduled_at=None, countdown=None, max_attempts=None):
    """
    Create an ImportJob of ``kind`` and queue it.

    ``countdown`` (seconds) and ``scheduled_at`` delay the first run. The job
    belongs to the import run named by the payload's ``scope``, if any.
    """
    kind = ImportJob.Kind(kind)
    if countdown and scheduled_at is None:
        scheduled_at = timezone.now() + timedelta(seconds=countdown)

    import_job = ImportJob.objects.create(
        kind=kind,
        payload=payload,
        scope=payload.get("scope") or "",
        max_attempts=max_attempts or default_max_attempts(kind),
        scheduled_at=scheduled_at,
    )
    import_jobs_total.labels(kind.value, ImportJob.State.AVAILABLE.value).inc()

    dispatch(import_job, countdown=countdown)

    structured_logger.debug(
        "Queued import job.",
        event_code="import_job_queued",
        import_job=import_job,
        scope=import_job.scope or None,
    )
    return import_job


def job_counts(scope=None):
    """
    The number of jobs in each state, per kind:
    ``{"details": {"available": 3, "completed": 10, ...}, ...}``
    """
    queryset = ImportJob.objects.all()
    if scope:
        queryset = queryset.filter(scope=scope)

    counts = {
        kind: {state: 0 for state in ImportJob.State.values}
        for kind in ImportJob.Kind.values
    }
    for row in (
        queryset.order_by().values("kind", "state").annotate(total=Count("pk"))
    ):
        counts[row["kind"]][row["state"]] = row["total"]
    return counts


def replay_job(import_job):
    """
    Reset a discarded job and queue it again. Returns the Celery result, or
    None when the job could not be reset.
    """
    if not import_job.reset_for_retry():
        return None
    ImportJob.objects.filter(pk=import_job.pk).update(task_id=None)
    import_job.task_id = None
    import_jobs_total.labels(import_job.kind, ImportJob.State.AVAILABLE.value).inc()
    logger.info("Replaying %s", import_job)
    return dispatch(import_job)


def cancel_jobs(kind=None, scope=None):
    """
    Cancel jobs which have not started yet. Returns how many were cancelled.

    Cancelled jobs stay in the broker but do nothing when delivered.
    """
    queryset = ImportJob.objects.filter(state=ImportJob.State.AVAILABLE)
    if kind:
        queryset = queryset.filter(kind=kind)
    if scope:
        queryset = queryset.filter(scope=scope)

    cancelled = queryset.update(
        state=ImportJob.State.CANCELLED,
        status="Cancelled by operator",
        modified=timezone.now(),
    )
    if cancelled:
        import_jobs_total.labels(
            kind or "all", ImportJob.State.CANCELLED.value
        ).inc(cancelled)
        logger.info("Cancelled %s %s jobs for %s", cancelled, kind or "", scope or "")
    return cancelled
