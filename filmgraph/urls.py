from django.contrib import admin
from django.urls import path

from filmgraph.api import api
from prometheus_metrics.views import MetricsView

admin.site.site_header = "Filmgraph importer"

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", api.urls),
    path("metrics", MetricsView.as_view(), name="prometheus-django-metrics"),
]
