import json

from django.core.exceptions import ValidationError
from django.db import models

from configuration.validation import validate_rate


class Configuration(models.Model):
    class DataType(models.TextChoices):
        TEXT = "text", "Plain text"
        NUMBER = "number", "Number"
        BOOLEAN = "boolean", "Boolean"
        JSON = "json", "JSON"
        RATE = "rate", "Rate"

    key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique identifier for the configuration setting",
    )
    data_type = models.CharField(
        max_length=10,
        choices=DataType.choices,
        default=DataType.TEXT,
        help_text="Data type of the value",
    )
    value = models.TextField(help_text="Value of the configuration setting")
    description = models.TextField(
        blank=True, help_text="Optional description of the configuration setting"
    )

    def __str__(self):
        return self.key

    def clean(self):
        try:
            self.get_value()
        except (ValueError, ValidationError) as exc:
            raise ValidationError({"value": str(exc)}) from exc

    def get_value(self):
        if self.data_type == Configuration.DataType.NUMBER:
            try:
                return int(self.value)
            except ValueError:
                try:
                    return float(self.value)
                except ValueError:
                    return 0
        elif self.data_type == Configuration.DataType.BOOLEAN:
            return self.value.strip().lower() == "true"
        elif self.data_type == Configuration.DataType.JSON:
            return json.loads(self.value)
        elif self.data_type == Configuration.DataType.RATE:
            return validate_rate(self.value)
        else:
            # DataType.TEXT or an unknown type,
            # so just return the value itself
            return self.value
