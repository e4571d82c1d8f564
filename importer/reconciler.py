"""
Writes movie records so that every source agrees on one row per film.

The same film reaches the importer from discovery, from curated lists and
from award ceremonies, often at the same time in different workers. Rather
than reading a row and saving it back, ``reconcile`` issues a single UPDATE
keyed by ``tmdb_id`` which also merges the source's provenance into
``canonical_sources`` inside the database. Only when no row matched does it
INSERT, inside a savepoint, and if that INSERT loses a race against another
worker the UPDATE is simply repeated.
"""

import enum
from dataclasses import dataclass
from logging import getLogger

from django.db import IntegrityError, transaction
from django.db.models import Case, F, Func, JSONField, Value, When
from django.db.models.functions import Coalesce
from django.utils import timezone

from filmgraph.logging import FilmgraphLogger
from filmgraph.models import ImportStatus, Movie
from prometheus_metrics.models import model_updates_total

logger = getLogger(__name__)
structured_logger = FilmgraphLogger.get_logger(__name__)


class JSONMerge(Func):
    """
    Merge two JSON objects in the database; keys from the right-hand
    expression replace those on the left
    """

    function = "JSON_PATCH"
    arity = 2
    output_field = JSONField()

    def as_postgresql(self, compiler, connection, **extra_context):
        return self.as_sql(
            compiler,
            connection,
            template="(%(expressions)s)",
            arg_joiner=" || ",
            **extra_context,
        )

    def as_mysql(self, compiler, connection, **extra_context):
        return self.as_sql(
            compiler, connection, function="JSON_MERGE_PATCH", **extra_context
        )


class ReconcileOutcome(enum.Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    movie_id: int

    @property
    def created(self):
        return self.outcome is ReconcileOutcome.CREATED


def _without_nulls(metadata):
    # A null in a JSON merge patch removes the key on SQLite and MySQL but is
    # stored on PostgreSQL
    return {
        key: _without_nulls(value) if isinstance(value, dict) else value
        for key, value in metadata.items()
        if value is not None
    }


def _provenance(source, canonical):
    if not source:
        return {}
    return {source: _without_nulls(canonical) if canonical is not None else {}}


def _update_values(fields, provenance, import_status):
    values = dict(fields)
    values["modified"] = timezone.now()

    if provenance:
        values["canonical_sources"] = JSONMerge(
            Coalesce(F("canonical_sources"), Value({}, output_field=JSONField())),
            Value(provenance, output_field=JSONField()),
        )

    if import_status == ImportStatus.FULL:
        values["import_status"] = ImportStatus.FULL
    elif import_status:
        # A soft or pending import never demotes a fully imported film
        values["import_status"] = Case(
            When(import_status=ImportStatus.FULL, then=Value(ImportStatus.FULL)),
            default=Value(import_status),
        )

    return values


def _update(lookup, fields, provenance, import_status):
    queryset = Movie.objects.filter(**lookup)
    updated = queryset.update(**_update_values(fields, provenance, import_status))
    if not updated:
        return None
    model_updates_total.labels("movie").inc(updated)
    return queryset.values_list("pk", flat=True).first()


def reconcile(tmdb_id, fields, source="", canonical=None, import_status=None):
    """
    Create or update the movie ``tmdb_id`` with ``fields`` and record that
    ``source`` referenced it, with ``canonical`` as the source's metadata.

    Only the fields given are written, so a partial record from one source
    never erases what another source supplied. Provenance from other sources
    is kept. ``import_status`` is written as given except that a film which
    is already fully imported stays that way.

    Returns a ReconcileResult naming the movie's primary key.
    """
    fields = {key: value for key, value in fields.items() if key != "tmdb_id"}
    provenance = _provenance(source, canonical)

    movie_id = _update({"tmdb_id": tmdb_id}, fields, provenance, import_status)
    if movie_id is not None:
        return ReconcileResult(ReconcileOutcome.UPDATED, movie_id)

    try:
        with transaction.atomic():
            movie = Movie.objects.create(
                tmdb_id=tmdb_id,
                canonical_sources=provenance,
                import_status=import_status or ImportStatus.PENDING,
                **fields,
            )
    except IntegrityError:
        # Another worker inserted the film first, or the IMDb id already
        # belongs to a different row
        movie_id = _update({"tmdb_id": tmdb_id}, fields, provenance, import_status)
        if movie_id is None:
            logger.exception(
                "Could not create movie %s and no existing row to update", tmdb_id
            )
            raise
        logger.info("Movie %s was created concurrently; updated it instead", tmdb_id)
        return ReconcileResult(ReconcileOutcome.UPDATED, movie_id)

    structured_logger.info(
        "Created movie.",
        event_code="movie_created",
        movie=movie,
        source_name=source or None,
        import_status=movie.import_status,
    )
    return ReconcileResult(ReconcileOutcome.CREATED, movie.pk)


def stamp_source(lookup, source, canonical=None):
    """
    Record provenance on an existing movie without touching anything else.

    ``lookup`` is ``{"tmdb_id": ...}`` or ``{"imdb_id": ...}``. Returns None
    when no such movie is stored.
    """
    if set(lookup) - {"tmdb_id", "imdb_id"} or len(lookup) != 1:
        raise ValueError("stamp_source needs exactly one of tmdb_id or imdb_id")

    movie_id = _update(lookup, {}, _provenance(source, canonical), None)
    if movie_id is None:
        return None
    logger.debug("Stamped %s on movie %s", source, movie_id)
    return ReconcileResult(ReconcileOutcome.UPDATED, movie_id)


def is_fully_imported(tmdb_id):
    return Movie.objects.filter(
        tmdb_id=tmdb_id, import_status=ImportStatus.FULL
    ).exists()
