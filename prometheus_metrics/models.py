from prometheus_client import Counter, Histogram

model_inserts_total = Counter(
    "django_model_inserts_total", "Number of inserts on a certain model", ["model"]
)
model_updates_total = Counter(
    "django_model_updates_total", "Number of updates on a certain model", ["model"]
)

provider_requests_total = Counter(
    "filmgraph_provider_requests_total",
    "Requests made to external providers, by outcome",
    ["provider", "outcome"],
)
provider_request_latency = Histogram(
    "filmgraph_provider_request_latency_seconds",
    "Time spent waiting on external provider responses",
    ["provider"],
)
rate_limit_waits_total = Counter(
    "filmgraph_rate_limit_waits_total",
    "Times a caller had to wait for a provider token",
    ["provider"],
)
quality_decisions_total = Counter(
    "filmgraph_quality_decisions_total",
    "Quality gate decisions, by entity kind and outcome",
    ["kind", "outcome"],
)
import_jobs_total = Counter(
    "filmgraph_import_jobs_total",
    "Import job state transitions, by job kind and new state",
    ["kind", "state"],
)


def MetricsModelMixin(name):
    class Mixin(object):
        def _do_insert(self, *args, **kwargs):
            model_inserts_total.labels(name).inc()
            return super(Mixin, self)._do_insert(*args, **kwargs)

        def _do_update(self, *args, **kwargs):
            model_updates_total.labels(name).inc()
            return super(Mixin, self)._do_update(*args, **kwargs)

    return Mixin
