from django.apps import AppConfig


class ConfigurationAppConfig(AppConfig):
    default_auto_field = "django.db.models.AutoField"
    name = "configuration"

    def ready(self):
        from configuration import signals  # NOQA: F401
