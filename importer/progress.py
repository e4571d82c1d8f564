"""
Import runs and their page cursors.

An import run is identified by its scope (``tmdb_full``,
``tmdb_daily:2026-10-19``, ``canonical:<source>``, ``festival:<source>``)
and tracked by one ImportProgress row. Orchestrator jobs process one page at
a time; once every job for page N has been queued, ``advance_cursor`` moves
``last_page_processed`` from N - 1 to N in a single conditional UPDATE. A job
which crashes before that point is simply repeated. A repeated job which
finds the cursor already at N only schedules page N + 1 (or completes the
run) when nothing is queued for it yet.
"""

from datetime import timedelta
from logging import getLogger

from django.db.models import F
from django.utils import timezone

from filmgraph.logging import FilmgraphLogger
from importer.exceptions import CursorAdvanceConflict, ImportAlreadyRunning
from importer.models import (
    CanonicalSource,
    FailedPageRange,
    ImportJob,
    ImportProgress,
    ImportState,
)
from importer.queue import cancel_jobs, enqueue

logger = getLogger(__name__)
structured_logger = FilmgraphLogger.get_logger(__name__)

FULL_IMPORT_SCOPE = "tmdb_full"
DAILY_UPDATE_DAYS = 7

ORCHESTRATOR_KINDS = {
    ImportProgress.ImportType.FULL: ImportJob.Kind.DISCOVERY,
    ImportProgress.ImportType.DAILY: ImportJob.Kind.DISCOVERY,
    ImportProgress.ImportType.CANONICAL_LIST: ImportJob.Kind.CANONICAL_PAGE,
    ImportProgress.ImportType.FESTIVAL: ImportJob.Kind.FESTIVAL_CEREMONY,
}


def advance_cursor(scope, page, *, total_pages=None, total_known=None, discovered=0):
    """
    Record ``page`` as processed for ``scope``.

    Returns True when the cursor moved from ``page - 1`` to ``page`` and False
    when it was already at or past ``page``, which happens when a job is
    delivered twice.

    Raises:
        CursorAdvanceConflict: If the cursor is behind ``page - 1``; advancing
            would skip pages.
        ImportProgress.DoesNotExist: If there is no run for ``scope``.
    """
    values = {
        "last_page_processed": page,
        "version": F("version") + 1,
        "total_discovered": F("total_discovered") + discovered,
        "modified": timezone.now(),
    }
    if total_pages is not None:
        values["total_pages"] = total_pages
    if total_known is not None:
        values["total_known"] = total_known

    if ImportProgress.objects.filter(
        scope=scope, last_page_processed=page - 1
    ).update(**values):
        return True

    stored_page = (
        ImportProgress.objects.filter(scope=scope)
        .values_list("last_page_processed", flat=True)
        .first()
    )
    if stored_page is None:
        raise ImportProgress.DoesNotExist(f"No import progress for {scope}")
    if stored_page >= page:
        logger.info(
            "Cursor for %s is already at page %s; not advancing to %s",
            scope,
            stored_page,
            page,
        )
        return False
    raise CursorAdvanceConflict(scope, page, stored_page)


def next_page(progress):
    return progress.last_page_processed + 1


def needs_follow_up(scope, page, kind):
    """
    True when ``page`` was the last page processed for a running ``scope``
    but nothing is queued for the page after it.

    A job redelivered after it moved the cursor, but before it scheduled the
    next page or completed the run, uses this to finish that work.
    """
    run = ImportProgress.objects.filter(scope=scope).first()
    if run is None or not run.is_running or run.last_page_processed != page:
        return False
    pending = (
        ImportJob.objects.filter(kind=kind, scope=scope, payload__page=page + 1)
        .exclude(state__in=ImportJob.FINAL_STATES)
        .exists()
    )
    if not pending:
        logger.info("Nothing is queued for %s after page %s", scope, page)
    return not pending


def _start_run(scope, import_type, *, filters=None, max_pages=None, total_pages=None):
    progress = ImportProgress.objects.filter(scope=scope).first()
    if progress is not None and progress.is_running:
        raise ImportAlreadyRunning(scope)

    progress, _ = ImportProgress.objects.update_or_create(
        scope=scope,
        defaults={
            "import_type": import_type,
            "status": ImportProgress.Status.RUNNING,
            "last_page_processed": 0,
            "total_pages": total_pages,
            "max_pages": max_pages,
            "version": 0,
            "total_known": 0,
            "total_discovered": 0,
            "total_imported": 0,
            "total_failed": 0,
            "filters": filters or {},
            "started": timezone.now(),
            "completed": None,
        },
    )
    structured_logger.info(
        "Import run started.",
        event_code="import_run_started",
        scope=scope,
        import_type=import_type,
        max_pages=max_pages,
    )
    return progress


def start_full_import(scope=FULL_IMPORT_SCOPE, filters=None, max_pages=None):
    """
    Start discovering the whole catalog, one page per job, and return the
    first job
    """
    progress = _start_run(
        scope, ImportProgress.ImportType.FULL, filters=filters, max_pages=max_pages
    )
    return enqueue(ImportJob.Kind.DISCOVERY, {"scope": progress.scope, "page": 1})


def start_daily_update(today=None):
    """
    Start discovering the films released in the last week, newest first, in
    a run of its own
    """
    today = today or timezone.localdate()
    since = today - timedelta(days=DAILY_UPDATE_DAYS)
    filters = {
        "primary_release_date.gte": since.isoformat(),
        "primary_release_date.lte": today.isoformat(),
        "sort_by": "primary_release_date.desc",
    }
    progress = _start_run(
        f"tmdb_daily:{today.isoformat()}",
        ImportProgress.ImportType.DAILY,
        filters=filters,
    )
    return enqueue(ImportJob.Kind.DISCOVERY, {"scope": progress.scope, "page": 1})


def start_canonical_import(source_key):
    source = CanonicalSource.objects.get(
        source_key=source_key, kind=CanonicalSource.SourceKind.LIST, active=True
    )
    progress = _start_run(
        source.progress_scope, ImportProgress.ImportType.CANONICAL_LIST
    )
    return enqueue(
        ImportJob.Kind.CANONICAL_PAGE,
        {"scope": progress.scope, "source_key": source.source_key, "page": 1},
    )


def start_festival_import(source_key, years):
    """
    Import the ceremonies of a festival for ``years``, one ceremony per job
    and oldest first. The cursor's page is the ceremony's position in that
    order.
    """
    years = sorted({int(year) for year in years})
    if not years:
        raise ValueError("At least one ceremony year is needed")

    source = CanonicalSource.objects.get(
        source_key=source_key, kind=CanonicalSource.SourceKind.FESTIVAL, active=True
    )
    progress = _start_run(
        source.progress_scope,
        ImportProgress.ImportType.FESTIVAL,
        filters={"years": years},
        total_pages=len(years),
    )
    return enqueue(
        ImportJob.Kind.FESTIVAL_CEREMONY,
        {
            "scope": progress.scope,
            "source_key": source.source_key,
            "page": 1,
            "year": years[0],
        },
    )


def orchestrator_payload(progress, page):
    """The payload of the orchestrator job which processes ``page``"""
    payload = {"scope": progress.scope, "page": page}
    if progress.import_type in (
        ImportProgress.ImportType.CANONICAL_LIST,
        ImportProgress.ImportType.FESTIVAL,
    ):
        payload["source_key"] = progress.scope.split(":", 1)[1]
    if progress.import_type == ImportProgress.ImportType.FESTIVAL:
        payload["year"] = progress.filters["years"][page - 1]
    return payload


def resume_import(scope):
    """
    Restart a stopped or failed run from the page after its cursor. Returns
    the new job, or None when the run has nothing left to do.
    """
    progress = ImportProgress.objects.get(scope=scope)
    if progress.is_running:
        raise ImportAlreadyRunning(scope)

    page = next_page(progress)
    if progress.page_limit and page > progress.page_limit:
        logger.info("Import %s has no pages left to resume", scope)
        mark_completed(scope)
        return None

    ImportProgress.objects.filter(pk=progress.pk).update(
        status=ImportProgress.Status.RUNNING, completed=None, modified=timezone.now()
    )
    FailedPageRange.objects.filter(
        scope=scope, first_page__lte=page, last_page__gte=page
    ).update(resolved=True)

    structured_logger.info(
        "Import run resumed.", event_code="import_run_resumed", scope=scope, page=page
    )
    return enqueue(
        ORCHESTRATOR_KINDS[progress.import_type], orchestrator_payload(progress, page)
    )


def stop_import(scope):
    """
    Stop a run: no further pages are scheduled and page jobs which have not
    started are cancelled. Detail jobs already queued still run.
    """
    progress = ImportProgress.objects.get(scope=scope)
    ImportProgress.objects.filter(pk=progress.pk).update(
        status=ImportProgress.Status.STOPPED, modified=timezone.now()
    )
    cancelled = cancel_jobs(ORCHESTRATOR_KINDS[progress.import_type], scope)
    structured_logger.info(
        "Import run stopped.",
        event_code="import_run_stopped",
        scope=scope,
        cancelled_jobs=cancelled,
    )
    return cancelled


def mark_completed(scope):
    completed = timezone.now()
    progress = ImportProgress.objects.get(scope=scope)
    ImportProgress.objects.filter(pk=progress.pk).update(
        status=ImportProgress.Status.COMPLETED, completed=completed, modified=completed
    )

    if progress.import_type == ImportProgress.ImportType.FULL:
        ImportState.set(ImportState.LAST_FULL_SYNC, completed)
    elif progress.import_type == ImportProgress.ImportType.DAILY:
        ImportState.set(ImportState.LAST_DAILY_UPDATE, completed)
    else:
        CanonicalSource.objects.filter(
            source_key=scope.split(":", 1)[1]
        ).update(last_imported=completed)

    structured_logger.info(
        "Import run completed.",
        event_code="import_run_completed",
        scope=scope,
        last_page_processed=progress.last_page_processed,
    )


def mark_failed(scope, first_page, last_page=None, error=""):
    """Stop a run because pages could not be processed, keeping a record of them"""
    failed_range = FailedPageRange.objects.create(
        scope=scope,
        first_page=first_page,
        last_page=last_page or first_page,
        error=error,
    )
    ImportProgress.objects.filter(scope=scope).update(
        status=ImportProgress.Status.FAILED,
        total_failed=F("total_failed") + 1,
        modified=timezone.now(),
    )
    structured_logger.warning(
        "Import run failed.",
        event_code="import_run_failed",
        reason=error or "Page could not be processed",
        reason_code="page_failed",
        scope=scope,
        first_page=failed_range.first_page,
        last_page=failed_range.last_page,
    )
    return failed_range


def record_imported(scope, count=1):
    if scope:
        ImportProgress.objects.filter(scope=scope).update(
            total_imported=F("total_imported") + count
        )


def record_failed(scope, count=1):
    if scope:
        ImportProgress.objects.filter(scope=scope).update(
            total_failed=F("total_failed") + count
        )


def progress_snapshot(scope):
    """
    A summary of the run for operators, or None when there is no such run
    """
    progress = ImportProgress.objects.filter(scope=scope).first()
    if progress is None:
        return None
    return {
        "scope": progress.scope,
        "import_type": progress.import_type,
        "status": progress.status,
        "last_page_processed": progress.last_page_processed,
        "total_pages": progress.total_pages,
        "total_known": progress.total_known,
        "total_discovered": progress.total_discovered,
        "total_imported": progress.total_imported,
        "total_failed": progress.total_failed,
        "completion_percentage": progress.completion_percentage,
        "started": progress.started,
        "completed": progress.completed,
    }
