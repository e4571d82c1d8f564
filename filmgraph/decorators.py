import hashlib
import logging
from functools import wraps

from celery import Task

from filmgraph.contextmanagers import cache_lock

logger = logging.getLogger(__name__)


def locked_task(function=None, lock_by_args: bool = True, lock_duration: int = 600):
    """
    Keep a bound Celery task from running concurrently with itself.

    With ``lock_by_args`` (the default) the lock key includes the task
    arguments, so a redelivered job is skipped while its first delivery is
    still running but different jobs run in parallel:

    >>> @app.task(bind=True)
    ... @locked_task
    ... def discover_page_task(self, import_job_pk):
    ...     ...

    With ``lock_by_args=False`` only one call of the task runs at a time,
    whatever its arguments.

    Passing ``force=True`` as a keyword argument runs the task even when the
    lock is held, which is useful if a lock is stuck.
    """

    def decorator(f):
        @wraps(f)
        def wrapped(self: Task, *args, **kwargs):
            force = kwargs.pop("force", False)

            if lock_by_args:
                raw_key = f"{repr(args)}:{repr(sorted(kwargs.items()))}"
                key = f"{self.name}:{hashlib.sha256(raw_key.encode()).hexdigest()}"
            else:
                key = self.name

            with cache_lock(
                key, self.request.hostname or "unknown", lock_duration
            ) as acquired:
                if acquired or force:
                    if not acquired:
                        logger.warning(
                            "Force-running task %s with key %s; lock not acquired",
                            self.name,
                            key,
                        )
                    return f(self, *args, **kwargs)
                logger.info(
                    "Task %s with key %s is already running; skipping", self.name, key
                )

        return wrapped

    return decorator(function) if function else decorator
