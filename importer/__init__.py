"""
Design
======

The importer fills the film catalog from three external providers:

* TMDb, the primary catalog, which is paginated and authoritative for ids,
  titles, images and credits
* OMDb, a secondary metadata API used to enrich fully imported movies
* IMDb curated lists and award ceremony pages, which are scraped to record
  which films they reference

General goals:

* All state is stored in the database and visible for reporting. Every unit of
  work is an ImportJob row whose state changes as workers pick it up, finish
  it or give up on it.
* Celery tasks are ephemeral and may run more than once (tasks are acknowledged
  late). They always check the database first and rely on unique constraints
  and conditional updates rather than in-process state to avoid conflicts.
* Every call to a provider goes through a shared rate limit kept in the cache,
  so any number of workers together stay below the provider's quota.

The full import process works like this:

1. An operator starts a full import. An ImportProgress row records the scope
   and a discovery job is queued for the first page which has not been
   processed yet.
2. The discovery job fetches one page of candidate ids and queues one details
   job per candidate. Only once every details job for the page exists is the
   page cursor advanced, and then the next page is scheduled after a short
   delay. A crash between those steps makes the page run again, never skips
   it.
3. The details job fetches the full record (with credits, images and external
   ids) and asks the quality gate whether to import it fully, import it as a
   minimal "soft" record, or skip it. Skipped and soft decisions leave an
   audit row behind.
4. Fully imported movies are written through the reconciler, which upserts by
   the catalog id in a single statement so that the same film arriving from
   two sources at once still ends up as a single row. Credits and the
   collaborations between the most significant people are then rebuilt, and an
   enrichment job is queued if the film has an IMDb id.
5. Stopping an import sets the scope's status. Running discovery jobs notice
   it before fetching their page, unstarted ones are cancelled, and details
   jobs which were already queued are allowed to finish.

Curated lists and festivals are imported independently. Each page of a list,
or each ceremony of a festival, is its own job with its own cursor. A film
already in the catalog only gets a provenance entry added to its
``canonical_sources``; an unknown film gets a details job which carries that
provenance with it.
"""
