from django.contrib import admin, messages
from django.contrib.humanize.templatetags.humanize import naturaltime
from django.db.models import QuerySet
from django.http import HttpRequest

from importer import progress
from importer.exceptions import ImportAlreadyRunning
from importer.queue import cancel_jobs, replay_job

from .models import (
    CanonicalSource,
    FailedPageRange,
    ImportJob,
    ImportProgress,
    ImportState,
    SkippedImport,
)


@admin.action(description="Replay discarded jobs")
def replay_discarded_jobs(
    modeladmin: admin.ModelAdmin,
    request: HttpRequest,
    queryset: QuerySet[ImportJob],
) -> None:
    """
    Reset the selected discarded jobs and queue them again. Jobs in any other
    state are left alone.
    """
    replayed = 0
    for import_job in queryset.filter(state=ImportJob.State.DISCARDED):
        if replay_job(import_job) is not None:
            replayed += 1
    messages.add_message(request, messages.INFO, "Queued %d jobs" % replayed)


@admin.action(description="Cancel jobs which have not started")
def cancel_available_jobs(
    modeladmin: admin.ModelAdmin,
    request: HttpRequest,
    queryset: QuerySet[ImportJob],
) -> None:
    cancelled = 0
    for kind, scope in (
        queryset.filter(state=ImportJob.State.AVAILABLE)
        .values_list("kind", "scope")
        .distinct()
    ):
        cancelled += cancel_jobs(kind, scope or None)
    messages.add_message(request, messages.INFO, "Cancelled %d jobs" % cancelled)


@admin.action(description="Stop selected imports")
def stop_imports(
    modeladmin: admin.ModelAdmin,
    request: HttpRequest,
    queryset: QuerySet[ImportProgress],
) -> None:
    scopes = list(
        queryset.filter(status=ImportProgress.Status.RUNNING).values_list(
            "scope", flat=True
        )
    )
    for scope in scopes:
        progress.stop_import(scope)
    messages.add_message(request, messages.INFO, "Stopped %d imports" % len(scopes))


@admin.action(description="Resume selected imports")
def resume_imports(
    modeladmin: admin.ModelAdmin,
    request: HttpRequest,
    queryset: QuerySet[ImportProgress],
) -> None:
    resumed = 0
    for scope in queryset.values_list("scope", flat=True):
        try:
            if progress.resume_import(scope) is not None:
                resumed += 1
        except ImportAlreadyRunning as exc:
            messages.add_message(request, messages.WARNING, str(exc))
    messages.add_message(request, messages.INFO, "Resumed %d imports" % resumed)


class NullableTimestampFilter(admin.SimpleListFilter):
    """
    Base class for Admin list filters which define whether a datetime field has
    a value or is null
    """

    # Title displayed on the list filter URL
    title = ""
    # Model field name:
    parameter_name = ""
    # Choices displayed
    lookup_labels = ("NULL", "NOT NULL")

    def lookups(self, request, model_admin):
        return zip(("null", "not-null"), self.lookup_labels, strict=False)

    def queryset(self, request, queryset):
        kwargs = {"%s__isnull" % self.parameter_name: True}
        if self.value() == "null":
            return queryset.filter(**kwargs)
        elif self.value() == "not-null":
            return queryset.exclude(**kwargs)
        return queryset


class LastStartedFilter(NullableTimestampFilter):
    title = "Last Started"
    parameter_name = "last_started"
    lookup_labels = ("Unstarted", "Started")


class FailedFilter(NullableTimestampFilter):
    title = "Failed"
    parameter_name = "failed"
    lookup_labels = ("Has not failed", "Has failed")


class TaskStatusModelAdmin(admin.ModelAdmin):
    """
    Base ModelAdmin for task-like models with standard readonly fields and
    human-friendly timestamp columns (e.g. "3 minutes ago")
    """

    readonly_fields = (
        "created",
        "modified",
        "last_started",
        "completed",
        "failed",
        "status",
        "task_id",
        "failure_reason",
        "retry_count",
        "failure_history",
    )

    @staticmethod
    def generate_natural_timestamp_display_property(field_name: str):
        def inner(obj):
            value = getattr(obj, field_name, None)
            if value:
                return naturaltime(value)
            return value

        inner.short_description = field_name.replace("_", " ").title()
        inner.admin_order_field = field_name
        return inner

    def __init__(self, *args, **kwargs):
        for field_name in (
            "created",
            "modified",
            "last_started",
            "completed",
            "failed",
        ):
            setattr(
                self,
                f"display_{field_name}",
                self.generate_natural_timestamp_display_property(field_name),
            )

        super().__init__(*args, **kwargs)


@admin.register(ImportJob)
class ImportJobAdmin(TaskStatusModelAdmin):
    readonly_fields = TaskStatusModelAdmin.readonly_fields + (
        "kind",
        "payload",
        "scope",
        "state",
        "attempt",
        "max_attempts",
        "scheduled_at",
    )
    list_display = (
        "id",
        "kind",
        "state",
        "scope",
        "attempt",
        "display_created",
        "display_last_started",
        "failure_reason",
    )
    list_filter = (
        "kind",
        "state",
        "failure_reason",
        LastStartedFilter,
        FailedFilter,
    )
    search_fields = ("scope", "status", "=task_id")
    actions = (replay_discarded_jobs, cancel_available_jobs)


@admin.register(ImportProgress)
class ImportProgressAdmin(admin.ModelAdmin):
    list_display = (
        "scope",
        "import_type",
        "status",
        "last_page_processed",
        "total_pages",
        "total_imported",
        "total_failed",
        "completion_percentage",
        "started",
    )
    list_filter = ("import_type", "status")
    search_fields = ("scope",)
    readonly_fields = (
        "last_page_processed",
        "version",
        "total_known",
        "total_discovered",
        "total_imported",
        "total_failed",
        "started",
        "modified",
        "completed",
    )
    actions = (stop_imports, resume_imports)


@admin.register(ImportState)
class ImportStateAdmin(admin.ModelAdmin):
    list_display = ("key", "value", "updated")
    search_fields = ("key",)


@admin.register(FailedPageRange)
class FailedPageRangeAdmin(admin.ModelAdmin):
    list_display = ("scope", "first_page", "last_page", "resolved", "created")
    list_filter = ("resolved",)
    search_fields = ("scope", "error")


@admin.register(SkippedImport)
class SkippedImportAdmin(admin.ModelAdmin):
    list_display = (
        "kind",
        "tmdb_id",
        "imdb_id",
        "title",
        "decision",
        "reason",
        "created",
    )
    list_filter = ("kind", "decision")
    search_fields = ("title", "imdb_id", "=tmdb_id", "source")

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(CanonicalSource)
class CanonicalSourceAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "source_key",
        "kind",
        "external_id",
        "active",
        "last_imported",
    )
    list_filter = ("kind", "active")
    search_fields = ("name", "source_key", "external_id")
    prepopulated_fields = {"source_key": ("name",)}
    readonly_fields = ("last_imported",)
