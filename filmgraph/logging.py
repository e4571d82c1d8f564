import logging
import warnings
from types import MappingProxyType
from typing import Any, Callable, Optional

import structlog
from celery import current_task

# Default global registry for semantic context extractors
_DEFAULT_EXTRACTORS: dict[str, Callable[[Any], dict[str, Any]]] = {}


def _register_default_extractor(
    context_key: str, extractor_function: Callable[[Any], dict[str, Any]]
):
    _DEFAULT_EXTRACTORS[context_key] = extractor_function


_register_default_extractor(
    "movie",
    lambda movie: {
        "movie_id": getattr(movie, "pk", None),
        "tmdb_id": getattr(movie, "tmdb_id", None),
        "imdb_id": getattr(movie, "imdb_id", None),
    },
)

_register_default_extractor(
    "person",
    lambda person: {
        "person_id": getattr(person, "pk", None),
        "person_tmdb_id": getattr(person, "tmdb_id", None),
    },
)

_register_default_extractor(
    "import_job",
    lambda import_job: {
        "import_job_id": getattr(import_job, "pk", None),
        "job_kind": getattr(import_job, "kind", None),
        "job_attempt": getattr(import_job, "attempt", None),
    },
)

_register_default_extractor(
    "source",
    lambda source: {
        "source_key": getattr(source, "source_key", None),
        "source_kind": getattr(source, "kind", None),
    },
)

# Freeze default extractors to prevent mutation
_DEFAULT_EXTRACTORS = MappingProxyType(_DEFAULT_EXTRACTORS)


class FilmgraphLogger:
    """
    A structured logging wrapper around structlog that enforces consistent logging
    conventions across the importer.

    Features:
        - Requires 'message' and 'event_code' for all logs, and 'reason'/'reason_code'
          for warnings/errors.
        - Automatically extracts common context from objects like Movie, Person
          and ImportJob.
        - Allows semantic binding of objects (e.g., import_job=job) which are
          expanded at log time.

    Usage:
    -----

    Create a logger:
        ```python
        structured_logger = FilmgraphLogger.get_logger(__name__)
        ```

    Log an info-level event:
        ```python
        structured_logger.info(
            "Movie imported.",
            event_code="movie_imported",
            movie=movie,
            import_job=import_job,
        )
        ```

    Log a warning with reason:
        ```python
        structured_logger.warning(
            "Candidate rejected.",
            event_code="movie_quality_rejected",
            reason="Only one quality criterion met.",
            reason_code="insufficient_criteria",
            tmdb_id=candidate.tmdb_id,
        )
        ```

    Special Context Expansion:
    --------------------------

    - `movie` -> `movie_id`, `tmdb_id`, `imdb_id`
    - `person` -> `person_id`, `person_tmdb_id`
    - `import_job` -> `import_job_id`, `job_kind`, `job_attempt`
    - `source` -> `source_key`, `source_kind`

    Explicit values passed (e.g., `tmdb_id=...`) override extracted ones. Fields
    with `None` values are omitted from the final log output.

    Registering a new extractor on a logger with `register_extractor()`
    overrides the default for that logger only.
    """

    def __init__(self, logger, context: Optional[dict[str, Any]] = None):
        self._logger = logger
        self._context = context or {}
        self._extractors = _DEFAULT_EXTRACTORS.copy()

    @classmethod
    def get_logger(cls, name: str) -> "FilmgraphLogger":
        """
        Factory method to create a FilmgraphLogger from a given logger name.

        Args:
            name (str): The logger name (typically ``__name__``); it is placed
                under the ``structlog`` logger hierarchy.

        Returns:
            FilmgraphLogger: A logger instance with enriched behavior.
        """
        return cls(structlog.get_logger(f"structlog.{name}"))

    def register_extractor(
        self, key: str, extractor: Callable[[Any], dict[str, Any]]
    ) -> None:
        """
        Register a custom context extractor for this logger instance only.
        """
        self._extractors[key] = extractor
        if key in _DEFAULT_EXTRACTORS:
            warnings.warn(
                f"Extractor for '{key}' overrides the default extractor for this "
                f"logger only.",
                UserWarning,
                stacklevel=2,
            )

    def unregister_extractor(self, key: str) -> None:
        self._extractors.pop(key, None)

    def log(
        self,
        level: str,
        message: str,
        *,
        event_code: str,
        reason: Optional[str] = None,
        reason_code: Optional[str] = None,
        **context: Any,
    ) -> None:
        """
        Emit structured logs with standardized context. Use one of the level
        methods (debug, info, warning, error) rather than calling this directly.

        Raises:
            ValueError: If required fields are missing for the given log level.
        """
        if not message:
            raise ValueError("Log message is required.")
        if not event_code:
            raise ValueError("Structured logs must include an 'event_code' field.")
        if level in ("warning", "error") and (not reason or not reason_code):
            raise ValueError(
                "Warnings and errors must include both 'reason' and 'reason_code'."
            )

        context_data = {"event_code": event_code}
        if reason:
            context_data["reason"] = reason
        if reason_code:
            context_data["reason_code"] = reason_code

        bound_context = self._context

        for context_key, extractor_function in self._extractors.items():
            context_object = context.pop(context_key, bound_context.get(context_key))
            if context_object:
                extracted_fields = extractor_function(context_object)
                for key, value in extracted_fields.items():
                    if value is not None:
                        context_data.setdefault(key, value)

        # Bound values which were not expanded by an extractor
        for key, value in bound_context.items():
            if key not in self._extractors and key not in context and value is not None:
                context_data[key] = value

        # Explicit values win over extracted and bound ones
        for key, value in context.items():
            if value is not None:
                context_data[key] = value

        getattr(self._logger, level)(message, **context_data)

    def debug(self, message: str, *, event_code: str, **kwargs):
        """Emit a debug-level structured log."""
        self.log("debug", message, event_code=event_code, **kwargs)

    def info(self, message: str, *, event_code: str, **kwargs):
        """Emit an info-level structured log."""
        self.log("info", message, event_code=event_code, **kwargs)

    def warning(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        """Emit a warning-level structured log. Requires reason and reason_code."""
        self.log(
            "warning",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )

    def error(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        """Emit an error-level structured log. Requires reason and reason_code."""
        self.log(
            "error",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )

    def bind(self, **kwargs: Any) -> "FilmgraphLogger":
        """
        Return a new FilmgraphLogger with additional context permanently bound.
        """
        new_context = self._context.copy()
        new_context.update(kwargs)
        return FilmgraphLogger(self._logger, context=new_context)


class CeleryTaskFilter(logging.Filter):
    """
    Add the current Celery task to every record as ``task_id`` ("/[<id>]", or
    an empty string outside a task) and ``task_name``, so formatters can
    always reference both
    """

    def filter(self, record):  # NOQA: A003
        task = current_task
        if task and task.request.id:
            record.task_id = f"/[{task.request.id}]"
            record.task_name = task.name
        else:
            record.task_id = ""
            record.task_name = ""
        return True
