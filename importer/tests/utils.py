import uuid
from unittest import mock

from filmgraph.models import ImportStatus, Movie, Person
from filmgraph.utils.celery import get_registered_task
from importer.models import CanonicalSource, ImportJob, ImportProgress
from importer.queue import KIND_TO_TASK


def create_movie(tmdb_id=1, **kwargs):
    kwargs.setdefault("title", f"Movie {tmdb_id}")
    kwargs.setdefault("import_status", ImportStatus.FULL)
    return Movie.objects.create(tmdb_id=tmdb_id, **kwargs)


def create_person(tmdb_id=1, **kwargs):
    kwargs.setdefault("name", f"Person {tmdb_id}")
    return Person.objects.create(tmdb_id=tmdb_id, **kwargs)


def create_import_job(kind=ImportJob.Kind.DETAILS, payload=None, **kwargs):
    payload = {"tmdb_id": 1} if payload is None else payload
    kwargs.setdefault("scope", payload.get("scope", ""))
    return ImportJob.objects.create(kind=kind, payload=payload, **kwargs)


def create_progress(scope="tmdb_full", **kwargs):
    kwargs.setdefault("import_type", ImportProgress.ImportType.FULL)
    return ImportProgress.objects.create(scope=scope, **kwargs)


def create_canonical_source(source_key="1001-movies", **kwargs):
    kwargs.setdefault("kind", CanonicalSource.SourceKind.LIST)
    kwargs.setdefault("name", source_key.replace("-", " ").title())
    kwargs.setdefault("external_id", "ls024863935")
    return CanonicalSource.objects.create(source_key=source_key, **kwargs)


def tmdb_cast(person_id, order, credit_id=None, **kwargs):
    data = {
        "id": person_id,
        "name": f"Actor {person_id}",
        "credit_id": credit_id or f"cast-{person_id}-{order}",
        "character": f"Character {order}",
        "order": order,
        "popularity": 5.0,
        "profile_path": f"/profile{person_id}.jpg",
        "known_for_department": "Acting",
    }
    data.update(kwargs)
    return data


def tmdb_crew(person_id, job, department="Crew", credit_id=None, **kwargs):
    data = {
        "id": person_id,
        "name": f"Crew {person_id}",
        "credit_id": credit_id or f"crew-{person_id}-{job}",
        "department": department,
        "job": job,
        "popularity": 2.0,
        "profile_path": f"/profile{person_id}.jpg",
        "known_for_department": department,
    }
    data.update(kwargs)
    return data


def tmdb_movie(tmdb_id, cast=(), crew=(), **kwargs):
    """A movie details response as returned with credits and external ids"""
    imdb_id = kwargs.pop("imdb_id", f"tt{tmdb_id:07d}")
    data = {
        "id": tmdb_id,
        "title": f"Movie {tmdb_id}",
        "original_title": f"Movie {tmdb_id}",
        "release_date": "2020-05-01",
        "runtime": 110,
        "overview": "A film.",
        "popularity": 12.5,
        "vote_count": 250,
        "vote_average": 7.2,
        "poster_path": f"/poster{tmdb_id}.jpg",
        "backdrop_path": f"/backdrop{tmdb_id}.jpg",
        "adult": False,
        "imdb_id": imdb_id,
        "external_ids": {"imdb_id": imdb_id},
        "credits": {"cast": list(cast), "crew": list(crew)},
    }
    data.update(kwargs)
    return data


class QueueRecorder:
    """
    Stands in for ``importer.queue.dispatch`` so jobs are recorded rather
    than sent to a broker, and can then be run in order:

    >>> with mock.patch("importer.queue.dispatch", QueueRecorder()) as queue:
    ...     start_full_import()
    ...     queue.run_all()
    """

    def __init__(self):
        self.pending = []
        self.dispatched = []

    def __call__(self, import_job, countdown=None):
        self.pending.append(import_job.pk)
        self.dispatched.append(import_job.pk)
        return mock.Mock(id=str(uuid.uuid4()))

    def run_all(self, limit=200):
        ran = []
        while self.pending:
            if len(ran) >= limit:
                raise AssertionError("Queue did not drain within %s jobs" % limit)
            import_job_pk = self.pending.pop(0)
            kind = ImportJob.objects.values_list("kind", flat=True).get(
                pk=import_job_pk
            )
            get_registered_task(KIND_TO_TASK[kind])(import_job_pk)
            ran.append(import_job_pk)
        return ran

    def kinds(self):
        return list(
            ImportJob.objects.filter(pk__in=self.dispatched)
            .order_by("pk")
            .values_list("kind", flat=True)
        )
