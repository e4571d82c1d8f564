from django.apps import AppConfig


class ImporterAppConfig(AppConfig):
    default_auto_field = "django.db.models.AutoField"
    name = "importer"
    verbose_name = "Catalog importer"
