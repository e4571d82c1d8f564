import json

from django.core.exceptions import ValidationError
from django.test import TestCase

from configuration.models import Configuration


class TestConfiguration(TestCase):
    def test_str(self):
        config = Configuration.objects.create(
            key="test-key", value="Test value", data_type=Configuration.DataType.TEXT
        )
        self.assertEqual(str(config), "test-key")

    def test_text(self):
        config = Configuration.objects.create(
            key="test-key", value="Test value", data_type=Configuration.DataType.TEXT
        )
        self.assertEqual(config.get_value(), "Test value")

        config2 = Configuration.objects.create(
            key="test-key2",
            value='{"key" : "value"}',
            data_type=Configuration.DataType.TEXT,
        )
        self.assertEqual(config2.get_value(), '{"key" : "value"}')

    def test_number(self):
        config = Configuration.objects.create(
            key="test-key", value="100", data_type=Configuration.DataType.NUMBER
        )
        self.assertEqual(config.get_value(), 100)

        config2 = Configuration.objects.create(
            key="test-key2", value="0.5", data_type=Configuration.DataType.NUMBER
        )
        self.assertEqual(config2.get_value(), 0.5)

        config3 = Configuration.objects.create(
            key="test-key3", value="Test value", data_type=Configuration.DataType.NUMBER
        )
        self.assertEqual(config3.get_value(), 0)

    def test_boolean(self):
        config = Configuration.objects.create(
            key="test-key", value="TrUe", data_type=Configuration.DataType.BOOLEAN
        )
        self.assertIs(config.get_value(), True)

        config2 = Configuration.objects.create(
            key="test-key2", value=" true\n", data_type=Configuration.DataType.BOOLEAN
        )
        self.assertIs(config2.get_value(), True)

        config3 = Configuration.objects.create(
            key="test-key3", value="1", data_type=Configuration.DataType.BOOLEAN
        )
        self.assertIs(config3.get_value(), False)

    def test_json(self):
        config = Configuration.objects.create(
            key="test-key",
            value='["Acting", "Directing"]',
            data_type=Configuration.DataType.JSON,
        )
        self.assertEqual(config.get_value(), ["Acting", "Directing"])

        config2 = Configuration.objects.create(
            key="test-key2", value="", data_type=Configuration.DataType.JSON
        )
        self.assertRaises(json.decoder.JSONDecodeError, config2.get_value)

    def test_rate(self):
        for value in ("1/s", "100/m", "40/10s", "1000/d"):
            config = Configuration(
                key=f"rate-{value}", value=value, data_type=Configuration.DataType.RATE
            )
            self.assertEqual(config.get_value(), value)

        for value in ("5/hour", "ten/m", "10", "10/", "0/s"):
            config = Configuration(
                key=f"rate-{value}", value=value, data_type=Configuration.DataType.RATE
            )
            with self.assertRaises(ValidationError):
                config.get_value()

    def test_clean_rejects_unparseable_values(self):
        config = Configuration(
            key="bad-json", value="{not json", data_type=Configuration.DataType.JSON
        )
        with self.assertRaises(ValidationError) as ctx:
            config.clean()
        self.assertIn("value", ctx.exception.message_dict)

        config = Configuration(
            key="bad-rate", value="fast", data_type=Configuration.DataType.RATE
        )
        with self.assertRaises(ValidationError):
            config.clean()

    def test_importer_values_are_seeded(self):
        self.assertEqual(
            Configuration.objects.get(key="quality_min_vote_count").get_value(), 10
        )
        self.assertEqual(
            Configuration.objects.get(key="collaboration_max_cast_order").get_value(),
            20,
        )
        self.assertIn(
            "Director",
            Configuration.objects.get(key="collaboration_key_crew_jobs").get_value(),
        )
