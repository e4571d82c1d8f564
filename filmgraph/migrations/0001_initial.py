import django.core.serializers.json
import django.db.models.deletion
from django.db import migrations, models

import prometheus_metrics.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Movie",
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
                ("tmdb_id", models.PositiveIntegerField(unique=True)),
                (
                    "imdb_id",
                    models.CharField(blank=True, max_length=20, null=True, unique=True),
                ),
                ("title", models.CharField(max_length=500)),
                (
                    "original_title",
                    models.CharField(blank=True, default="", max_length=500),
                ),
                ("release_date", models.DateField(blank=True, null=True)),
                ("runtime", models.PositiveIntegerField(blank=True, null=True)),
                ("overview", models.TextField(blank=True, default="")),
                ("popularity", models.FloatField(default=0)),
                ("vote_count", models.PositiveIntegerField(default=0)),
                ("vote_average", models.FloatField(default=0)),
                (
                    "poster_path",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "backdrop_path",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "import_status",
                    models.CharField(
                        choices=[
                            ("full", "Full"),
                            ("soft", "Soft"),
                            ("pending", "Pending"),
                        ],
                        db_index=True,
                        default="full",
                        max_length=10,
                    ),
                ),
                (
                    "canonical_sources",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        help_text="Curated lists and ceremonies which reference "
                        "this film",
                    ),
                ),
                (
                    "tmdb_data",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
                (
                    "omdb_data",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
            ],
            options={
                "ordering": ("-popularity",),
            },
            bases=(prometheus_metrics.models.MetricsModelMixin("movie"), models.Model),
        ),
        migrations.CreateModel(
            name="Person",
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
                ("tmdb_id", models.PositiveIntegerField(unique=True)),
                ("imdb_id", models.CharField(blank=True, default="", max_length=20)),
                ("name", models.CharField(max_length=255)),
                ("popularity", models.FloatField(default=0)),
                (
                    "profile_path",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "known_for_department",
                    models.CharField(blank=True, default="", max_length=100),
                ),
            ],
            options={
                "verbose_name_plural": "people",
            },
            bases=(
                prometheus_metrics.models.MetricsModelMixin("person"),
                models.Model,
            ),
        ),
        migrations.CreateModel(
            name="Credit",
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
                    "credit_id",
                    models.CharField(
                        help_text="Credit id assigned by the catalog",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "credit_type",
                    models.CharField(
                        choices=[("cast", "Cast"), ("crew", "Crew")], max_length=4
                    ),
                ),
                ("character", models.TextField(blank=True, default="")),
                ("cast_order", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "department",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                ("job", models.CharField(blank=True, default="", max_length=100)),
                (
                    "movie",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credits",
                        to="filmgraph.movie",
                    ),
                ),
                (
                    "person",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credits",
                        to="filmgraph.person",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["movie", "credit_type"],
                        name="credit_movie_type_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Collaboration",
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
                    "collaboration_type",
                    models.CharField(
                        choices=[
                            ("actor-actor", "Actor Actor"),
                            ("actor-director", "Actor Director"),
                            ("actor-crew", "Actor Crew"),
                            ("director-director", "Director Director"),
                            ("director-crew", "Director Crew"),
                            ("crew-crew", "Crew Crew"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "movie",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="collaborations",
                        to="filmgraph.movie",
                    ),
                ),
                (
                    "person_a",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="collaborations_as_a",
                        to="filmgraph.person",
                    ),
                ),
                (
                    "person_b",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="collaborations_as_b",
                        to="filmgraph.person",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("person_a", "person_b", "movie"),
                        name="unique_collaboration_per_movie",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("person_a__lt", models.F("person_b"))),
                        name="collaboration_pair_ordered",
                    ),
                ],
            },
        ),
    ]
