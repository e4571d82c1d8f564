from logging import getLogger

from django.conf import settings

from filmgraph.celery import app
from filmgraph.decorators import locked_task
from filmgraph.logging import FilmgraphLogger
from importer import progress
from importer.exceptions import ImportAlreadyRunning
from importer.models import ImportJob, ImportProgress, ImportState
from importer.providers.tmdb import TMDbClient
from importer.queue import enqueue

from .decorators import track_import_job

logger = getLogger(__name__)
structured_logger = FilmgraphLogger.get_logger(__name__)

# Tasks


@app.task(bind=True, acks_late=True)
@locked_task
def discover_page_task(self, import_job_pk):
    import_job = ImportJob.objects.get(pk=import_job_pk)
    return discover_page(self, import_job)


@app.task(bind=True, acks_late=True)
def start_daily_update_task(self):
    try:
        import_job = progress.start_daily_update()
    except ImportAlreadyRunning as exc:
        logger.info("Not starting the daily update: %s", exc)
        return None
    return import_job.pk


# End tasks


def record_failed_page(import_job, exc):
    progress.mark_failed(
        import_job.scope, int(import_job.payload["page"]), error=str(exc)
    )


@track_import_job(on_discard=record_failed_page)
def discover_page(self, import_job):
    """
    Queue a details job for every movie on one discovery page, then move the
    cursor and schedule the next page. Returns the number of movies found.
    """
    scope = import_job.payload["scope"]
    page = int(import_job.payload["page"])

    run = ImportProgress.objects.get(scope=scope)
    if not run.is_running:
        logger.info("Import %s is %s; not discovering page %s", scope, run.status, page)
        return 0

    discovery_page = TMDbClient().discover_movies(page, run.filters)

    for movie in discovery_page.movies:
        enqueue(ImportJob.Kind.DETAILS, {"tmdb_id": movie.tmdb_id, "scope": scope})

    advanced = progress.advance_cursor(
        scope,
        page,
        total_pages=discovery_page.total_pages or None,
        total_known=discovery_page.total_results or None,
        discovered=len(discovery_page.movies),
    )
    if not advanced and not progress.needs_follow_up(scope, page, import_job.kind):
        return len(discovery_page.movies)

    if page == 1 and run.import_type == ImportProgress.ImportType.FULL:
        ImportState.set(ImportState.TMDB_TOTAL_MOVIES, discovery_page.total_results)

    structured_logger.info(
        "Discovery page processed.",
        event_code="discovery_page_processed",
        import_job=import_job,
        scope=scope,
        page=page,
        total_pages=discovery_page.total_pages,
        movies=len(discovery_page.movies),
    )

    limits = [limit for limit in (discovery_page.total_pages, run.max_pages) if limit]
    if not discovery_page.movies or (limits and page >= min(limits)):
        progress.mark_completed(scope)
    else:
        enqueue(
            ImportJob.Kind.DISCOVERY,
            {"scope": scope, "page": page + 1},
            countdown=settings.IMPORTER_DISCOVERY_PAGE_DELAY,
        )

    return len(discovery_page.movies)
