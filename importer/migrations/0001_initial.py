import django.core.serializers.json
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ImportJob",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created", models.DateTimeField(auto_now_add=True)),
                ("modified", models.DateTimeField(auto_now=True)),
                (
                    "last_started",
                    models.DateTimeField(
                        blank=True,
                        help_text="Last time when a worker started processing "
                        "this job",
                        null=True,
                    ),
                ),
                (
                    "completed",
                    models.DateTimeField(
                        blank=True,
                        help_text="Time when the job completed without error",
                        null=True,
                    ),
                ),
                (
                    "failed",
                    models.DateTimeField(
                        blank=True,
                        help_text="Time when the job failed due to an error",
                        null=True,
                    ),
                ),
                (
                    "status",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Status message, if any, from the last worker",
                    ),
                ),
                (
                    "task_id",
                    models.UUIDField(
                        blank=True,
                        help_text="UUID of the last Celery task to process this "
                        "record",
                        null=True,
                    ),
                ),
                (
                    "failure_reason",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("Transient", "Transient"),
                            ("Permanent", "Permanent"),
                            ("Retries", "Retries"),
                            ("Conflict", "Conflict"),
                            ("Error", "Error"),
                        ],
                        default="",
                        help_text="Reason the task failed, if one was provided",
                        max_length=50,
                    ),
                ),
                (
                    "retry_count",
                    models.IntegerField(
                        default=0,
                        help_text="Number of times an operator replayed the task",
                    ),
                ),
                (
                    "failure_history",
                    models.JSONField(
                        default=list,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        help_text="Information about previous failures of the "
                        "task, if any",
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("discovery", "Discovery page"),
                            ("details", "Movie details"),
                            ("enrichment", "Secondary enrichment"),
                            ("canonical_page", "Curated list page"),
                            ("festival_ceremony", "Festival ceremony"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                (
                    "scope",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Import run this job belongs to, if any",
                        max_length=200,
                    ),
                ),
                (
                    "state",
                    models.CharField(
                        choices=[
                            ("available", "Available"),
                            ("executing", "Executing"),
                            ("completed", "Completed"),
                            ("retryable", "Retryable"),
                            ("discarded", "Discarded"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="available",
                        max_length=10,
                    ),
                ),
                (
                    "attempt",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Number of times a worker has started this job",
                    ),
                ),
                ("max_attempts", models.PositiveIntegerField(default=3)),
                (
                    "scheduled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Earliest time the job may run",
                        null=True,
                    ),
                ),
            ],
            options={
                "ordering": ("-created",),
                "indexes": [
                    models.Index(
                        fields=["kind", "state"], name="importjob_kind_state"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ImportState",
            fields=[
                (
                    "key",
                    models.CharField(max_length=100, primary_key=True, serialize=False),
                ),
                ("value", models.TextField(blank=True, default="")),
                ("updated", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "import state value",
            },
        ),
        migrations.CreateModel(
            name="ImportProgress",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("scope", models.CharField(max_length=200, unique=True)),
                (
                    "import_type",
                    models.CharField(
                        choices=[
                            ("full", "Full catalog"),
                            ("daily", "Daily update"),
                            ("canonical_list", "Curated list"),
                            ("festival", "Festival"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("running", "Running"),
                            ("stopped", "Stopped"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="running",
                        max_length=10,
                    ),
                ),
                ("last_page_processed", models.PositiveIntegerField(default=0)),
                ("total_pages", models.PositiveIntegerField(blank=True, null=True)),
                ("max_pages", models.PositiveIntegerField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=0)),
                (
                    "total_known",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Number of records the provider reports for the "
                        "run",
                    ),
                ),
                ("total_discovered", models.PositiveIntegerField(default=0)),
                ("total_imported", models.PositiveIntegerField(default=0)),
                ("total_failed", models.PositiveIntegerField(default=0)),
                (
                    "filters",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                (
                    "started",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("modified", models.DateTimeField(auto_now=True)),
                ("completed", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name_plural": "import progress",
                "ordering": ("-started",),
            },
        ),
        migrations.CreateModel(
            name="FailedPageRange",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("scope", models.CharField(db_index=True, max_length=200)),
                ("first_page", models.PositiveIntegerField()),
                ("last_page", models.PositiveIntegerField()),
                ("error", models.TextField(blank=True, default="")),
                ("resolved", models.BooleanField(default=False)),
                ("created", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ("scope", "first_page"),
            },
        ),
        migrations.CreateModel(
            name="SkippedImport",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[("movie", "Movie"), ("person", "Person")],
                        max_length=10,
                    ),
                ),
                (
                    "tmdb_id",
                    models.PositiveIntegerField(blank=True, db_index=True, null=True),
                ),
                ("imdb_id", models.CharField(blank=True, default="", max_length=20)),
                ("title", models.CharField(blank=True, default="", max_length=500)),
                (
                    "decision",
                    models.CharField(
                        choices=[("soft", "Soft import"), ("reject", "Rejected")],
                        max_length=10,
                    ),
                ),
                ("reason", models.TextField(blank=True, default="")),
                (
                    "criteria",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                ("source", models.CharField(blank=True, default="", max_length=200)),
                ("created", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ("-created",),
            },
        ),
        migrations.CreateModel(
            name="CanonicalSource",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("source_key", models.SlugField(max_length=100, unique=True)),
                (
                    "kind",
                    models.CharField(
                        choices=[("list", "Curated list"), ("festival", "Festival")],
                        max_length=10,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                (
                    "external_id",
                    models.CharField(
                        help_text="IMDb list id (ls...) or event id (ev...)",
                        max_length=50,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                ("active", models.BooleanField(default=True)),
                ("last_imported", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ("kind", "name"),
            },
        ),
    ]
