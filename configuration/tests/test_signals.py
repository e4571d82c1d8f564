from django.core.cache import caches
from django.test import TestCase

from configuration.models import Configuration


class TestConfigurationSignal(TestCase):
    def setUp(self):
        caches["configuration_cache"].clear()

    def test_signal_caches_valid_value(self):
        Configuration.objects.create(
            key="signal-key",
            value="42",
            data_type=Configuration.DataType.NUMBER,
        )
        self.assertEqual(caches["configuration_cache"].get("config_signal-key"), 42)

    def test_signal_refreshes_on_update(self):
        config = Configuration.objects.create(
            key="signal-rate", value="40/10s", data_type=Configuration.DataType.RATE
        )
        config.value = "20/10s"
        config.save()
        self.assertEqual(
            caches["configuration_cache"].get("config_signal-rate"), "20/10s"
        )

    def test_signal_does_not_cache_invalid_json(self):
        Configuration.objects.create(
            key="signal-json-invalid",
            value="not valid json",
            data_type=Configuration.DataType.JSON,
        )
        self.assertIsNone(
            caches["configuration_cache"].get("config_signal-json-invalid")
        )

    def test_signal_does_not_cache_invalid_rate(self):
        Configuration.objects.create(
            key="signal-rate-invalid",
            value="often",
            data_type=Configuration.DataType.RATE,
        )
        self.assertIsNone(
            caches["configuration_cache"].get("config_signal-rate-invalid")
        )
