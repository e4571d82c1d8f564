from logging import getLogger

from django.conf import settings

from filmgraph.celery import app
from filmgraph.decorators import locked_task
from filmgraph.logging import FilmgraphLogger
from importer import progress
from importer.models import CanonicalSource, ImportJob, ImportProgress
from importer.providers.imdb import IMDbClient
from importer.queue import enqueue
from importer.reconciler import stamp_source

from .decorators import track_import_job

logger = getLogger(__name__)
structured_logger = FilmgraphLogger.get_logger(__name__)

# Tasks


@app.task(bind=True, acks_late=True)
@locked_task
def import_canonical_page_task(self, import_job_pk):
    import_job = ImportJob.objects.get(pk=import_job_pk)
    return import_canonical_page(self, import_job)


# End tasks


def reference_movie(imdb_id, provenance, scope="", tmdb_id=None):
    """
    Record that the sources in ``provenance`` (a list of ``{"source": ...,
    "metadata": ...}``) reference a film.

    A film which is already stored only gets the provenance; otherwise a
    details job carrying the provenance is queued. Returns True when a job
    was queued.
    """
    lookup = {"tmdb_id": tmdb_id} if tmdb_id else {"imdb_id": imdb_id}

    first, *others = provenance
    if stamp_source(lookup, first["source"], first["metadata"]) is not None:
        for entry in others:
            stamp_source(lookup, entry["source"], entry["metadata"])
        return False

    payload = {"imdb_id": imdb_id, "scope": scope, "provenance": provenance}
    if tmdb_id:
        payload["tmdb_id"] = tmdb_id
    enqueue(ImportJob.Kind.DETAILS, payload)
    return True


def record_failed_page(import_job, exc):
    progress.mark_failed(
        import_job.scope, int(import_job.payload["page"]), error=str(exc)
    )


@track_import_job(on_discard=record_failed_page)
def import_canonical_page(self, import_job):
    """
    Reference every film on one page of a curated list, then move the cursor
    and schedule the next page. Returns the number of films on the page.
    """
    scope = import_job.payload["scope"]
    page = int(import_job.payload["page"])
    source = CanonicalSource.objects.get(source_key=import_job.payload["source_key"])

    run = ImportProgress.objects.get(scope=scope)
    if not run.is_running:
        logger.info("Import %s is %s; not importing page %s", scope, run.status, page)
        return 0

    scraped = IMDbClient().list_page(
        source.external_id, page, expected_pages=run.total_pages
    )

    queued = 0
    for record in scraped.records:
        metadata = {**source.metadata, "position": record.position}
        queued += reference_movie(
            record.imdb_id,
            [{"source": source.source_key, "metadata": metadata}],
            scope=scope,
            tmdb_id=record.tmdb_id,
        )

    advanced = progress.advance_cursor(
        scope,
        page,
        total_pages=scraped.total_pages,
        total_known=scraped.total_items,
        discovered=len(scraped.records),
    )
    if not advanced and not progress.needs_follow_up(scope, page, import_job.kind):
        return len(scraped.records)

    structured_logger.info(
        "Curated list page processed.",
        event_code="canonical_page_processed",
        import_job=import_job,
        source=source,
        page=page,
        films=len(scraped.records),
        queued=queued,
    )

    if scraped.records and scraped.has_next_page:
        enqueue(
            ImportJob.Kind.CANONICAL_PAGE,
            {"scope": scope, "source_key": source.source_key, "page": page + 1},
            countdown=settings.IMPORTER_SECONDARY_PAGE_DELAY,
        )
    else:
        progress.mark_completed(scope)

    return len(scraped.records)
