"""
See the module-level docstring for implementation details
"""

from datetime import date, datetime
from logging import getLogger

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

logger = getLogger(__name__)


class TaskStatusModel(models.Model):
    class FailureReason(models.TextChoices):
        TRANSIENT = "Transient"
        PERMANENT = "Permanent"
        RETRIES = "Retries"
        CONFLICT = "Conflict"
        ERROR = "Error"

    created = models.DateTimeField(auto_now_add=True)
    modified = models.DateTimeField(auto_now=True)

    last_started = models.DateTimeField(
        help_text="Last time when a worker started processing this job",
        null=True,
        blank=True,
    )
    completed = models.DateTimeField(
        help_text="Time when the job completed without error", null=True, blank=True
    )
    failed = models.DateTimeField(
        help_text="Time when the job failed due to an error", null=True, blank=True
    )

    status = models.TextField(
        help_text="Status message, if any, from the last worker", blank=True, default=""
    )

    task_id = models.UUIDField(
        help_text="UUID of the last Celery task to process this record",
        null=True,
        blank=True,
    )

    failure_reason = models.CharField(
        help_text="Reason the task failed, if one was provided",
        max_length=50,
        blank=True,
        default="",
        choices=FailureReason.choices,
    )

    retry_count = models.IntegerField(
        help_text="Number of times an operator replayed the task", default=0
    )

    failure_history = models.JSONField(
        help_text="Information about previous failures of the task, if any",
        encoder=DjangoJSONEncoder,
        default=list,
    )

    class Meta:
        abstract = True

    def update_status(self, status, do_save=True):
        self.status = status
        if do_save:
            self.save()

    def update_failure_history(self, do_save=True):
        self.failure_history.append(
            {
                "failed": self.failed,
                "failure_reason": self.failure_reason,
                "status": self.status,
            }
        )
        if do_save:
            self.save()


class ImportJob(TaskStatusModel):
    """
    One unit of queued import work and the state of its processing.

    The Celery message only carries the primary key of this row; everything a
    worker needs is in ``payload``. A job moves through these states::

        available -> executing -> completed
                              \\-> retryable -> executing ...
                              \\-> discarded
        available -> cancelled

    ``completed``, ``discarded`` and ``cancelled`` are final; a redelivered
    message for a job in one of them does nothing.
    """

    class Kind(models.TextChoices):
        DISCOVERY = "discovery", "Discovery page"
        DETAILS = "details", "Movie details"
        ENRICHMENT = "enrichment", "Secondary enrichment"
        CANONICAL_PAGE = "canonical_page", "Curated list page"
        FESTIVAL_CEREMONY = "festival_ceremony", "Festival ceremony"

    class State(models.TextChoices):
        AVAILABLE = "available", "Available"
        EXECUTING = "executing", "Executing"
        COMPLETED = "completed", "Completed"
        RETRYABLE = "retryable", "Retryable"
        DISCARDED = "discarded", "Discarded"
        CANCELLED = "cancelled", "Cancelled"

    FINAL_STATES = (State.COMPLETED, State.DISCARDED, State.CANCELLED)

    kind = models.CharField(max_length=20, choices=Kind.choices)
    payload = models.JSONField(encoder=DjangoJSONEncoder, default=dict)
    scope = models.CharField(
        max_length=200,
        blank=True,
        default="",
        db_index=True,
        help_text="Import run this job belongs to, if any",
    )
    state = models.CharField(
        max_length=10, choices=State.choices, default=State.AVAILABLE
    )
    attempt = models.PositiveIntegerField(
        default=0, help_text="Number of times a worker has started this job"
    )
    max_attempts = models.PositiveIntegerField(default=3)
    scheduled_at = models.DateTimeField(
        null=True, blank=True, help_text="Earliest time the job may run"
    )

    class Meta:
        ordering = ("-created",)
        indexes = [models.Index(fields=["kind", "state"], name="importjob_kind_state")]

    def __str__(self):
        return "ImportJob(pk=%s, kind=%s, state=%s)" % (self.pk, self.kind, self.state)

    @property
    def is_final(self):
        return self.state in self.FINAL_STATES

    @property
    def attempts_remaining(self):
        return max(self.max_attempts - self.attempt, 0)

    def reset_for_retry(self):
        """
        Make a discarded job available again with a fresh set of attempts. Its
        earlier failures stay in ``failure_history``.
        """
        if self.state != self.State.DISCARDED:
            self.status = "Job was not discarded, so it will not be replayed."
            self.save()
            logger.warning("Only discarded jobs can be replayed; %s is not", self)
            return False

        logger.info("Resetting %s for replay", self)
        self.state = self.State.AVAILABLE
        self.attempt = 0
        self.failed = None
        self.completed = None
        self.failure_reason = ""
        self.status = "Replaying"
        self.retry_count += 1
        self.save()
        return True


class ImportState(models.Model):
    """
    Durable key/value store for importer bookkeeping which is not tied to a
    single run, e.g. the catalog's total size or when the last sync finished.
    """

    TMDB_TOTAL_MOVIES = "tmdb_total_movies"
    LAST_FULL_SYNC = "last_full_sync"
    LAST_DAILY_UPDATE = "last_daily_update"

    key = models.CharField(max_length=100, primary_key=True)
    value = models.TextField(blank=True, default="")
    updated = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "import state value"

    def __str__(self):
        return f"{self.key}={self.value}"

    @classmethod
    def get(cls, key, default=None):
        try:
            return cls.objects.values_list("value", flat=True).get(key=key)
        except cls.DoesNotExist:
            return default

    @classmethod
    def get_integer(cls, key, default=0):
        value = cls.get(key)
        if value in (None, ""):
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("Import state %s is not an integer: %r", key, value)
            return default

    @classmethod
    def get_date(cls, key):
        value = cls.get(key)
        if not value:
            return None
        return parse_date(value) or parse_datetime(value)

    @classmethod
    def set(cls, key, value):  # NOQA: A003
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        obj, _ = cls.objects.update_or_create(key=key, defaults={"value": str(value)})
        return obj

    @classmethod
    def set_many(cls, values):
        return [cls.set(key, value) for key, value in values.items()]

    @classmethod
    def delete_key(cls, key):
        cls.objects.filter(key=key).delete()

    @classmethod
    def as_dict(cls):
        return dict(cls.objects.values_list("key", "value"))


class ImportProgress(models.Model):
    """
    Progress of one import run ("scope"), including its page cursor.

    ``last_page_processed`` only moves forward one page at a time through
    ``importer.progress.advance_cursor``; ``version`` counts those moves.
    """

    class Status(models.TextChoices):
        RUNNING = "running", "Running"
        STOPPED = "stopped", "Stopped"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    class ImportType(models.TextChoices):
        FULL = "full", "Full catalog"
        DAILY = "daily", "Daily update"
        CANONICAL_LIST = "canonical_list", "Curated list"
        FESTIVAL = "festival", "Festival"

    scope = models.CharField(max_length=200, unique=True)
    import_type = models.CharField(max_length=20, choices=ImportType.choices)
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.RUNNING
    )

    last_page_processed = models.PositiveIntegerField(default=0)
    total_pages = models.PositiveIntegerField(null=True, blank=True)
    max_pages = models.PositiveIntegerField(null=True, blank=True)
    version = models.PositiveIntegerField(default=0)

    total_known = models.PositiveIntegerField(
        default=0, help_text="Number of records the provider reports for the run"
    )
    total_discovered = models.PositiveIntegerField(default=0)
    total_imported = models.PositiveIntegerField(default=0)
    total_failed = models.PositiveIntegerField(default=0)

    filters = models.JSONField(encoder=DjangoJSONEncoder, default=dict, blank=True)

    started = models.DateTimeField(default=timezone.now)
    modified = models.DateTimeField(auto_now=True)
    completed = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name_plural = "import progress"
        ordering = ("-started",)

    def __str__(self):
        return f"{self.scope} ({self.status}, page {self.last_page_processed})"

    @property
    def is_running(self):
        return self.status == self.Status.RUNNING

    @property
    def page_limit(self):
        limits = [limit for limit in (self.total_pages, self.max_pages) if limit]
        return min(limits) if limits else None

    @property
    def completion_percentage(self):
        if not self.total_known:
            return 0.0
        return round(min(self.total_imported / self.total_known, 1) * 100, 2)


class FailedPageRange(models.Model):
    """Pages whose processing was given up on, kept for operator review"""

    scope = models.CharField(max_length=200, db_index=True)
    first_page = models.PositiveIntegerField()
    last_page = models.PositiveIntegerField()
    error = models.TextField(blank=True, default="")
    resolved = models.BooleanField(default=False)
    created = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("scope", "first_page")

    def __str__(self):
        if self.first_page == self.last_page:
            return f"{self.scope} page {self.first_page}"
        return f"{self.scope} pages {self.first_page}-{self.last_page}"


class SkippedImport(models.Model):
    """
    Audit trail of candidates the quality gate did not import fully.

    Rows are only ever added.
    """

    class EntityKind(models.TextChoices):
        MOVIE = "movie", "Movie"
        PERSON = "person", "Person"

    class Decision(models.TextChoices):
        SOFT = "soft", "Soft import"
        REJECT = "reject", "Rejected"

    kind = models.CharField(max_length=10, choices=EntityKind.choices)
    tmdb_id = models.PositiveIntegerField(null=True, blank=True, db_index=True)
    imdb_id = models.CharField(max_length=20, blank=True, default="")
    title = models.CharField(max_length=500, blank=True, default="")
    decision = models.CharField(max_length=10, choices=Decision.choices)
    reason = models.TextField(blank=True, default="")
    criteria = models.JSONField(encoder=DjangoJSONEncoder, default=dict, blank=True)
    source = models.CharField(max_length=200, blank=True, default="")
    created = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created",)

    def __str__(self):
        return f"{self.kind} {self.tmdb_id or self.imdb_id}: {self.decision}"


class CanonicalSource(models.Model):
    """
    A curated list or award festival which is scraped for the films it
    references
    """

    class SourceKind(models.TextChoices):
        LIST = "list", "Curated list"
        FESTIVAL = "festival", "Festival"

    source_key = models.SlugField(max_length=100, unique=True)
    kind = models.CharField(max_length=10, choices=SourceKind.choices)
    name = models.CharField(max_length=255)
    external_id = models.CharField(
        max_length=50, help_text="IMDb list id (ls...) or event id (ev...)"
    )
    metadata = models.JSONField(encoder=DjangoJSONEncoder, default=dict, blank=True)
    active = models.BooleanField(default=True)
    last_imported = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("kind", "name")

    def __str__(self):
        return self.name

    @property
    def progress_scope(self):
        if self.kind == self.SourceKind.FESTIVAL:
            return f"festival:{self.source_key}"
        return f"canonical:{self.source_key}"
