from logging import getLogger

from django.db import transaction

from filmgraph.celery import app
from filmgraph.logging import FilmgraphLogger
from filmgraph.models import Credit, ImportStatus, Person
from importer import progress, reconciler
from importer.collaborations import collaboration_bounds, recompute_collaborations
from importer.models import ImportJob
from importer.providers.tmdb import TMDbClient
from importer.quality import QualityGate, record_skipped_movie, record_skipped_people
from importer.queue import enqueue

from .decorators import track_import_job

logger = getLogger(__name__)
structured_logger = FilmgraphLogger.get_logger(__name__)

ALREADY_IMPORTED = "already_imported"

# Tasks


@app.task(bind=True, acks_late=True)
def fetch_movie_details_task(self, import_job_pk):
    import_job = ImportJob.objects.get(pk=import_job_pk)
    return fetch_movie_details(self, import_job)


# End tasks


def record_failed_movie(import_job, exc):
    progress.record_failed(import_job.scope)


@track_import_job(on_discard=record_failed_movie)
def fetch_movie_details(self, import_job):
    payload = import_job.payload
    return import_movie(
        payload.get("tmdb_id"),
        imdb_id=payload.get("imdb_id"),
        scope=payload.get("scope") or "",
        provenance=payload.get("provenance"),
        force=payload.get("force", False),
    )


def provenance_entries(provenance):
    """
    Normalize job provenance, given as one ``{"source": ..., "metadata": ...}``
    mapping or a list of them, to a list of (source, metadata) pairs
    """
    if not provenance:
        return []
    if isinstance(provenance, dict):
        provenance = [provenance]
    return [
        (entry["source"], entry.get("metadata") or {})
        for entry in provenance
        if entry.get("source")
    ]


def save_movie(tmdb_id, fields, entries, import_status):
    if entries:
        (source, metadata), *others = entries
    else:
        source, metadata, others = "", None, []

    result = reconciler.reconcile(
        tmdb_id, fields, source, metadata, import_status=import_status
    )
    for other_source, other_metadata in others:
        reconciler.stamp_source({"tmdb_id": tmdb_id}, other_source, other_metadata)
    return result


def import_movie(
    tmdb_id=None, *, imdb_id=None, scope="", provenance=None, force=False, client=None
):
    """
    Fetch one movie, run it through the quality gate and store what passes.

    Returns the outcome: ``full``, ``soft``, ``reject`` or
    ``already_imported``. A fully imported movie is not fetched again unless
    ``force`` is set, but any provenance is still recorded on it.
    """
    client = client or TMDbClient()
    entries = provenance_entries(provenance)

    if tmdb_id is None:
        if not imdb_id:
            raise ValueError("A details job needs a tmdb_id or an imdb_id")
        tmdb_id = client.find_by_imdb_id(imdb_id)
    tmdb_id = int(tmdb_id)

    if not force and reconciler.is_fully_imported(tmdb_id):
        for source, metadata in entries:
            reconciler.stamp_source({"tmdb_id": tmdb_id}, source, metadata)
        logger.debug("Movie %s is already fully imported", tmdb_id)
        return ALREADY_IMPORTED

    candidate = client.movie_details(tmdb_id)
    gate = QualityGate.load()
    decision = gate.evaluate_movie(candidate)
    audit_source = entries[0][0] if entries else scope

    if decision.is_reject:
        record_skipped_movie(candidate, decision, source=audit_source)
        return decision.outcome.value

    if decision.is_soft:
        record_skipped_movie(candidate, decision, source=audit_source)
        with transaction.atomic():
            save_movie(
                candidate.tmdb_id, candidate.soft_fields(), entries, ImportStatus.SOFT
            )
        return decision.outcome.value

    with transaction.atomic():
        result = save_movie(
            candidate.tmdb_id, candidate.movie_fields(), entries, ImportStatus.FULL
        )
        credit_count = import_credits(result.movie_id, candidate, gate, audit_source)

    progress.record_imported(scope)
    structured_logger.info(
        "Movie imported.",
        event_code="movie_imported",
        movie_id=result.movie_id,
        tmdb_id=candidate.tmdb_id,
        imdb_id=candidate.imdb_id,
        scope=scope or None,
        credits=credit_count,
    )

    if candidate.imdb_id:
        enqueue(
            ImportJob.Kind.ENRICHMENT,
            {"movie_id": result.movie_id, "imdb_id": candidate.imdb_id, "scope": scope},
        )

    return decision.outcome.value


def import_credits(movie_id, candidate, gate, source=""):
    """
    Store the people who pass the person gate and their credits on the
    movie, remove credits the catalog no longer lists and recompute the
    movie's collaborations. Returns the number of credits stored.
    """
    max_cast_order, key_crew_jobs = collaboration_bounds()

    people = {}
    key_people = set()
    for credit in candidate.credits:
        people.setdefault(credit.person.tmdb_id, credit.person)
        if credit.is_cast:
            significant = (
                credit.cast_order is not None and credit.cast_order < max_cast_order
            )
        else:
            significant = credit.job in key_crew_jobs
        if significant:
            key_people.add(credit.person.tmdb_id)

    accepted = []
    rejected = []
    for person_tmdb_id, person in people.items():
        decision = gate.evaluate_person(person, key_role=person_tmdb_id in key_people)
        if decision.is_reject:
            rejected.append((person, decision))
        else:
            accepted.append(person)
    record_skipped_people(rejected, source=source)

    Person.objects.bulk_create(
        [
            Person(tmdb_id=person.tmdb_id, **person.person_fields())
            for person in accepted
        ],
        batch_size=500,
        update_conflicts=True,
        unique_fields=["tmdb_id"],
        update_fields=["name", "popularity", "profile_path", "known_for_department"],
    )
    person_ids = dict(
        Person.objects.filter(
            tmdb_id__in=[person.tmdb_id for person in accepted]
        ).values_list("tmdb_id", "pk")
    )

    credits = {}
    for credit in candidate.credits:
        person_id = person_ids.get(credit.person.tmdb_id)
        if person_id is None:
            continue
        credits[credit.credit_id] = Credit(
            credit_id=credit.credit_id,
            movie_id=movie_id,
            person_id=person_id,
            credit_type=credit.credit_type,
            character=credit.character,
            cast_order=credit.cast_order,
            department=credit.department[:100],
            job=credit.job[:100],
        )

    Credit.objects.bulk_create(
        list(credits.values()),
        batch_size=500,
        update_conflicts=True,
        unique_fields=["movie", "credit_id"],
        update_fields=[
            "person",
            "credit_type",
            "character",
            "cast_order",
            "department",
            "job",
        ],
    )
    stale, _ = (
        Credit.objects.filter(movie_id=movie_id)
        .exclude(credit_id__in=list(credits))
        .delete()
    )
    if stale:
        logger.info("Removed %s stale credits from movie %s", stale, movie_id)

    recompute_collaborations(movie_id, max_cast_order, key_crew_jobs)
    return len(credits)
