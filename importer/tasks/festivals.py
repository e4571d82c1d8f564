from logging import getLogger

from django.conf import settings

from filmgraph.celery import app
from filmgraph.decorators import locked_task
from filmgraph.logging import FilmgraphLogger
from importer import progress
from importer.models import CanonicalSource, ImportJob, ImportProgress
from importer.providers.imdb import IMDbClient
from importer.queue import enqueue

from .canonical import reference_movie
from .decorators import track_import_job

logger = getLogger(__name__)
structured_logger = FilmgraphLogger.get_logger(__name__)

# Tasks


@app.task(bind=True, acks_late=True)
@locked_task
def import_festival_ceremony_task(self, import_job_pk):
    import_job = ImportJob.objects.get(pk=import_job_pk)
    return import_festival_ceremony(self, import_job)


# End tasks


def record_failed_ceremony(import_job, exc):
    progress.mark_failed(
        import_job.scope,
        int(import_job.payload["page"]),
        error="{} ceremony: {}".format(import_job.payload.get("year"), exc),
    )


def nominations_by_film(records):
    """Group a ceremony's records into one provenance list per film"""
    films = {}
    for record in records:
        films.setdefault(record.imdb_id, []).append(
            {"source": record.source_key, "metadata": record.metadata}
        )
    return films


@track_import_job(on_discard=record_failed_ceremony)
def import_festival_ceremony(self, import_job):
    """
    Reference every film nominated at one ceremony, then move the cursor and
    schedule the next ceremony year. Returns the number of films nominated.
    """
    scope = import_job.payload["scope"]
    page = int(import_job.payload["page"])
    year = int(import_job.payload["year"])
    source = CanonicalSource.objects.get(source_key=import_job.payload["source_key"])

    run = ImportProgress.objects.get(scope=scope)
    if not run.is_running:
        logger.info("Import %s is %s; not importing %s", scope, run.status, year)
        return 0

    records = IMDbClient().ceremony(source.external_id, year, source.source_key)
    films = nominations_by_film(records)

    queued = 0
    for imdb_id, provenance in films.items():
        queued += reference_movie(imdb_id, provenance, scope=scope)

    advanced = progress.advance_cursor(scope, page, discovered=len(films))
    if not advanced and not progress.needs_follow_up(scope, page, import_job.kind):
        return len(films)

    structured_logger.info(
        "Festival ceremony processed.",
        event_code="festival_ceremony_processed",
        import_job=import_job,
        source=source,
        year=year,
        nominations=len(records),
        films=len(films),
        queued=queued,
    )

    if page < len(run.filters.get("years", [])):
        enqueue(
            ImportJob.Kind.FESTIVAL_CEREMONY,
            progress.orchestrator_payload(run, page + 1),
            countdown=settings.IMPORTER_SECONDARY_PAGE_DELAY,
        )
    else:
        progress.mark_completed(scope)

    return len(films)
