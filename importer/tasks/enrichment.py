from logging import getLogger

from django.utils.timezone import now

from filmgraph.celery import app
from filmgraph.models import Movie
from importer.models import ImportJob
from importer.providers.omdb import OMDbClient

from .decorators import track_import_job

logger = getLogger(__name__)

# Tasks


@app.task(bind=True, acks_late=True)
def enrich_movie_task(self, import_job_pk):
    import_job = ImportJob.objects.get(pk=import_job_pk)
    return enrich_movie(self, import_job)


# End tasks


@track_import_job
def enrich_movie(self, import_job):
    """Store the secondary provider's record for a fully imported movie"""
    movie_id = import_job.payload["movie_id"]
    imdb_id = import_job.payload["imdb_id"]

    data = OMDbClient().lookup(imdb_id)

    updated = Movie.objects.filter(pk=movie_id).update(omdb_data=data, modified=now())
    if not updated:
        logger.warning("Movie %s was deleted before it could be enriched", movie_id)
    return updated
