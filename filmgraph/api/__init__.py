from datetime import datetime
from typing import Any, Optional

from django.core.exceptions import ObjectDoesNotExist
from django.http import HttpRequest
from ninja import NinjaAPI, Router
from ninja.errors import HttpError
from ninja.security import SessionAuth

from filmgraph.logging import FilmgraphLogger
from importer import progress
from importer.exceptions import ImportAlreadyRunning
from importer.queue import job_counts

from .schemas import CamelSchema

structured_logger = FilmgraphLogger.get_logger(__name__)


class StaffSessionAuth(SessionAuth):
    """Session authentication which only admits staff users"""

    def authenticate(self, request, key):
        user = super().authenticate(request, key)
        if user is not None and user.is_staff:
            return user
        return None


api = NinjaAPI(version=None, urls_namespace="api", auth=StaffSessionAuth())


class ProgressOut(CamelSchema):
    scope: str
    import_type: str
    status: str
    last_page_processed: int
    total_pages: Optional[int]
    total_known: int
    total_discovered: int
    total_imported: int
    total_failed: int
    completion_percentage: float
    started: datetime
    completed: Optional[datetime]


class JobOut(CamelSchema):
    id: int  # noqa: A003
    kind: str
    state: str
    scope: str
    payload: dict[str, Any]


class FullImportIn(CamelSchema):
    max_pages: Optional[int] = None
    filters: dict[str, Any] = {}


class FestivalImportIn(CamelSchema):
    years: list[int]


class StopOut(CamelSchema):
    scope: str
    cancelled_jobs: int


def serialize_job(import_job):
    if import_job is None:
        return None
    return JobOut(
        id=import_job.pk,
        kind=import_job.kind,
        state=import_job.state,
        scope=import_job.scope,
        payload=import_job.payload,
    )


def start_or_conflict(request, start, *args, **kwargs):
    try:
        import_job = start(*args, **kwargs)
    except ImportAlreadyRunning as err:
        raise HttpError(409, str(err)) from err
    except ObjectDoesNotExist as err:
        raise HttpError(404, "No such import source") from err

    structured_logger.info(
        "Import started from the API.",
        event_code="api_import_started",
        import_job=import_job,
        user_id=request.user.pk,
    )
    return serialize_job(import_job)


imports = Router(tags=["imports"])


@imports.get("/jobs", response=dict[str, dict[str, int]])
def import_job_counts(request: HttpRequest, scope: Optional[str] = None):
    """Number of import jobs in each state, per job kind"""
    return job_counts(scope)


@imports.post("/full", response=JobOut, by_alias=True)
def start_full_import(request: HttpRequest, payload: FullImportIn):
    return start_or_conflict(
        request,
        progress.start_full_import,
        filters=payload.filters,
        max_pages=payload.max_pages,
    )


@imports.post("/daily", response=JobOut, by_alias=True)
def start_daily_update(request: HttpRequest):
    return start_or_conflict(request, progress.start_daily_update)


@imports.post("/canonical/{source_key}", response=JobOut, by_alias=True)
def start_canonical_import(request: HttpRequest, source_key: str):
    return start_or_conflict(request, progress.start_canonical_import, source_key)


@imports.post("/festivals/{source_key}", response=JobOut, by_alias=True)
def start_festival_import(
    request: HttpRequest, source_key: str, payload: FestivalImportIn
):
    if not payload.years:
        raise HttpError(400, "At least one ceremony year is needed")
    return start_or_conflict(
        request, progress.start_festival_import, source_key, payload.years
    )


@imports.get("/{scope}", response=ProgressOut, by_alias=True)
def import_progress(request: HttpRequest, scope: str):
    snapshot = progress.progress_snapshot(scope)
    if snapshot is None:
        raise HttpError(404, f"No import {scope}")
    return snapshot


@imports.post("/{scope}/stop", response=StopOut, by_alias=True)
def stop_import(request: HttpRequest, scope: str):
    try:
        cancelled = progress.stop_import(scope)
    except ObjectDoesNotExist as err:
        raise HttpError(404, f"No import {scope}") from err
    structured_logger.info(
        "Import stopped from the API.",
        event_code="api_import_stopped",
        scope=scope,
        user_id=request.user.pk,
    )
    return StopOut(scope=scope, cancelled_jobs=cancelled)


@imports.post("/{scope}/resume", response=Optional[JobOut], by_alias=True)
def resume_import(request: HttpRequest, scope: str):
    try:
        import_job = progress.resume_import(scope)
    except ImportAlreadyRunning as err:
        raise HttpError(409, str(err)) from err
    except ObjectDoesNotExist as err:
        raise HttpError(404, f"No import {scope}") from err
    return serialize_job(import_job)


api.add_router("/imports", imports)
