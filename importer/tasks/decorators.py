from functools import wraps
from logging import getLogger

from django.utils.timezone import now

from filmgraph.logging import FilmgraphLogger
from importer.backoff import exponential_backoff, retry_delay
from importer.exceptions import (
    CursorAdvanceConflict,
    ExhaustedRetries,
    PermanentProviderError,
    TransientProviderError,
)
from importer.models import ImportJob
from prometheus_metrics.models import import_jobs_total

logger = getLogger(__name__)
structured_logger = FilmgraphLogger.get_logger(__name__)


def _set_state(import_job, state):
    import_job.state = state
    import_jobs_total.labels(import_job.kind, state.value).inc()


def _record_failure(import_job, exc, reason, state):
    new_status = "{}\n\nUnhandled exception: {}".format(import_job.status, exc).strip()
    import_job.update_status(new_status, do_save=False)
    import_job.failed = now()
    import_job.failure_reason = reason
    _set_state(import_job, state)
    import_job.update_failure_history(do_save=False)
    import_job.save()


def track_import_job(f=None, *, on_discard=None, backoff=exponential_backoff):
    """
    Decorator which runs a function passed an ImportJob through the job state
    machine: the job is marked executing on entry, then completed, retryable
    or discarded depending on how the function exits.

    Assumes that all wrapped functions get the Celery task self value as the
    first parameter and the ImportJob as the second.

    * TransientProviderError: retried through Celery after ``backoff`` (or
      the provider's Retry-After hint) until ``max_attempts`` is used up, when
      the job is discarded and ExhaustedRetries is raised
    * PermanentProviderError and any other exception: discarded at once and
      re-raised
    * CursorAdvanceConflict: discarded and not raised, since repeating the
      job can never succeed

    ``on_discard(import_job, exc)`` is called whenever the job is discarded.
    Jobs already completed, discarded or cancelled are not run again.
    """

    def decorator(f):
        @wraps(f)
        def inner(self, import_job, *args, **kwargs):
            # We'll do a sanity check to make sure that another process hasn't
            # finished or cancelled the job in the meantime:
            guard_qs = ImportJob.objects.filter(
                pk=import_job.pk, state__in=ImportJob.FINAL_STATES
            )
            if guard_qs.exists():
                logger.warning(
                    "Job %s is already final and will not be repeated",
                    import_job,
                    extra={"data": {"object": import_job, "args": args}},
                )
                return

            import_job.attempt += 1
            import_job.last_started = now()
            import_job.task_id = self.request.id
            _set_state(import_job, ImportJob.State.EXECUTING)
            import_job.save()

            def discard(exc, reason):
                _record_failure(import_job, exc, reason, ImportJob.State.DISCARDED)
                if on_discard is not None:
                    on_discard(import_job, exc)

            try:
                result = f(self, import_job, *args, **kwargs)
            except TransientProviderError as exc:
                if import_job.attempt < import_job.max_attempts:
                    _record_failure(
                        import_job,
                        exc,
                        ImportJob.FailureReason.TRANSIENT,
                        ImportJob.State.RETRYABLE,
                    )
                    countdown = retry_delay(
                        import_job.attempt, exc.retry_after, backoff
                    )
                    logger.info(
                        "Retrying %s in %.1fs after attempt %s of %s: %s",
                        import_job,
                        countdown,
                        import_job.attempt,
                        import_job.max_attempts,
                        exc,
                    )
                    raise self.retry(
                        exc=exc,
                        countdown=countdown,
                        max_retries=import_job.max_attempts,
                    ) from exc

                discard(exc, ImportJob.FailureReason.RETRIES)
                structured_logger.error(
                    "Import job discarded after its last attempt.",
                    event_code="import_job_discarded",
                    reason=str(exc),
                    reason_code="retries_exhausted",
                    import_job=import_job,
                )
                raise ExhaustedRetries(import_job, import_job.attempt) from exc
            except PermanentProviderError as exc:
                discard(exc, ImportJob.FailureReason.PERMANENT)
                structured_logger.warning(
                    "Import job discarded after a permanent provider error.",
                    event_code="import_job_discarded",
                    reason=str(exc),
                    reason_code="permanent_provider_error",
                    import_job=import_job,
                    status_code=exc.status_code,
                )
                raise
            except CursorAdvanceConflict as exc:
                discard(exc, ImportJob.FailureReason.CONFLICT)
                structured_logger.error(
                    "Page cursor could not advance.",
                    event_code="cursor_advance_conflict",
                    reason=str(exc),
                    reason_code="cursor_gap",
                    import_job=import_job,
                    scope=exc.scope,
                    page=exc.page,
                    stored_page=exc.stored_page,
                )
                return
            except Exception as exc:
                discard(exc, ImportJob.FailureReason.ERROR)
                raise

            import_job.completed = now()
            import_job.failed = None
            import_job.failure_reason = ""
            _set_state(import_job, ImportJob.State.COMPLETED)
            import_job.update_status("Completed")
            return result

        return inner

    return decorator(f) if f else decorator
