from django.apps import AppConfig


class PrometheusMetricsConfig(AppConfig):
    name = "prometheus_metrics"
    verbose_name = "Prometheus metrics"
