from django.apps import AppConfig


class FilmgraphAppConfig(AppConfig):
    default_auto_field = "django.db.models.AutoField"
    name = "filmgraph"
    verbose_name = "Film catalog"
