from django.contrib import admin

from .models import Collaboration, Credit, Movie, Person


class CreditInline(admin.TabularInline):
    model = Credit
    fields = ("person", "credit_type", "character", "job", "cast_order")
    raw_id_fields = ("person",)
    extra = 0


@admin.register(Movie)
class MovieAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "release_date",
        "tmdb_id",
        "imdb_id",
        "import_status",
        "popularity",
        "vote_count",
    )
    list_filter = ("import_status",)
    search_fields = ("title", "original_title", "=tmdb_id", "=imdb_id")
    readonly_fields = (
        "created",
        "modified",
        "canonical_sources",
        "tmdb_data",
        "omdb_data",
    )
    date_hierarchy = "release_date"
    inlines = (CreditInline,)


@admin.register(Person)
class PersonAdmin(admin.ModelAdmin):
    list_display = ("name", "tmdb_id", "known_for_department", "popularity")
    list_filter = ("known_for_department",)
    search_fields = ("name", "=tmdb_id", "=imdb_id")
    readonly_fields = ("created", "modified")


@admin.register(Collaboration)
class CollaborationAdmin(admin.ModelAdmin):
    list_display = ("person_a", "person_b", "movie", "collaboration_type")
    list_filter = ("collaboration_type",)
    raw_id_fields = ("person_a", "person_b", "movie")
    list_select_related = ("person_a", "person_b", "movie")
