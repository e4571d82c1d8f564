
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models import F, Q

from prometheus_metrics.models import MetricsModelMixin


class ImportStatus(models.TextChoices):
    FULL = "full", "Full"
    SOFT = "soft", "Soft"
    PENDING = "pending", "Pending"


class Movie(MetricsModelMixin("movie"), models.Model):
    """
    A film, keyed by the primary catalog's id.

    ``canonical_sources`` records every curated list or award ceremony which
    referenced the film, as ``{source_key: metadata}``. Keys are only ever
    added or updated, never removed.
    """

    created = models.DateTimeField(auto_now_add=True)
    modified = models.DateTimeField(auto_now=True)

    tmdb_id = models.PositiveIntegerField(unique=True)
    imdb_id = models.CharField(max_length=20, unique=True, null=True, blank=True)

    title = models.CharField(max_length=500)
    original_title = models.CharField(max_length=500, blank=True, default="")
    release_date = models.DateField(null=True, blank=True)
    runtime = models.PositiveIntegerField(null=True, blank=True)
    overview = models.TextField(blank=True, default="")

    popularity = models.FloatField(default=0)
    vote_count = models.PositiveIntegerField(default=0)
    vote_average = models.FloatField(default=0)

    poster_path = models.CharField(max_length=255, blank=True, default="")
    backdrop_path = models.CharField(max_length=255, blank=True, default="")

    import_status = models.CharField(
        max_length=10,
        choices=ImportStatus.choices,
        default=ImportStatus.FULL,
        db_index=True,
    )
    canonical_sources = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Curated lists and ceremonies which reference this film",
    )

    tmdb_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    omdb_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)

    class Meta:
        ordering = ("-popularity",)

    def __str__(self):
        if self.release_date:
            return f"{self.title} ({self.release_date.year})"
        return self.title

    @property
    def is_fully_imported(self):
        return self.import_status == ImportStatus.FULL


class Person(MetricsModelMixin("person"), models.Model):
    created = models.DateTimeField(auto_now_add=True)
    modified = models.DateTimeField(auto_now=True)

    tmdb_id = models.PositiveIntegerField(unique=True)
    imdb_id = models.CharField(max_length=20, blank=True, default="")
    name = models.CharField(max_length=255)
    popularity = models.FloatField(default=0)
    profile_path = models.CharField(max_length=255, blank=True, default="")
    known_for_department = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        verbose_name_plural = "people"

    def __str__(self):
        return self.name


class Credit(models.Model):
    class CreditType(models.TextChoices):
        CAST = "cast", "Cast"
        CREW = "crew", "Crew"

    credit_id = models.CharField(
        max_length=64, help_text="Credit id assigned by the catalog"
    )
    movie = models.ForeignKey(Movie, on_delete=models.CASCADE, related_name="credits")
    person = models.ForeignKey(
        Person, on_delete=models.CASCADE, related_name="credits"
    )
    credit_type = models.CharField(max_length=4, choices=CreditType.choices)

    character = models.TextField(blank=True, default="")
    cast_order = models.PositiveIntegerField(null=True, blank=True)

    department = models.CharField(max_length=100, blank=True, default="")
    job = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["movie", "credit_type"], name="credit_movie_type_idx")
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["movie", "credit_id"], name="unique_credit_per_movie"
            )
        ]

    def __str__(self):
        role = self.character if self.credit_type == self.CreditType.CAST else self.job
        return f"{self.person_id} as {role} in {self.movie_id}"


class Collaboration(models.Model):
    """
    Two people who share credits on the same film.

    The pair is stored once with ``person_a`` holding the lower primary key,
    so looking up a pair in either order finds the same row.
    """

    class CollaborationType(models.TextChoices):
        ACTOR_ACTOR = "actor-actor"
        ACTOR_DIRECTOR = "actor-director"
        ACTOR_CREW = "actor-crew"
        DIRECTOR_DIRECTOR = "director-director"
        DIRECTOR_CREW = "director-crew"
        CREW_CREW = "crew-crew"

    person_a = models.ForeignKey(
        Person, on_delete=models.CASCADE, related_name="collaborations_as_a"
    )
    person_b = models.ForeignKey(
        Person, on_delete=models.CASCADE, related_name="collaborations_as_b"
    )
    movie = models.ForeignKey(
        Movie, on_delete=models.CASCADE, related_name="collaborations"
    )
    collaboration_type = models.CharField(
        max_length=20, choices=CollaborationType.choices
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["person_a", "person_b", "movie"],
                name="unique_collaboration_per_movie",
            ),
            models.CheckConstraint(
                condition=Q(person_a__lt=F("person_b")),
                name="collaboration_pair_ordered",
            ),
        ]

    def __str__(self):
        return f"{self.person_a_id}/{self.person_b_id} on {self.movie_id}"

    @classmethod
    def for_pair(cls, first, second):
        """Return the collaborations between two people, in either order"""
        low, high = sorted((first.pk, second.pk))
        return cls.objects.filter(person_a_id=low, person_b_id=high)
