import prometheus_client
from django.http import HttpResponse
from django.views import View
from django.views.decorators.cache import never_cache


class MetricsView(View):
    """Expose the process' counters in the Prometheus text format"""

    http_method_names = ["get"]
    registry = prometheus_client.REGISTRY

    @classmethod
    def as_view(cls, **initkwargs):
        return never_cache(super().as_view(**initkwargs))

    def get(self, request, *args, **kwargs):
        return HttpResponse(
            prometheus_client.generate_latest(self.registry),
            content_type=prometheus_client.CONTENT_TYPE_LATEST,
        )
