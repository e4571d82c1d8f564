"""
Celery tasks for the import pipeline, one module per queue class:

* ``discovery``: catalog discovery pages and the daily update
* ``details``: fetching, gating and storing one movie with its credits
* ``enrichment``: secondary metadata for fully imported movies
* ``canonical`` and ``festivals``: curated list pages and award ceremonies

Each task takes the primary key of an ImportJob and hands the job to a
function wrapped with ``track_import_job``.
"""
