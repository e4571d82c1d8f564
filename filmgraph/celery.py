import importlib
import os
import pkgutil

import sentry_sdk
from celery import Celery
from sentry_sdk.integrations.celery import CeleryIntegration

from filmgraph.version import get_filmgraph_version

SENTRY_BACKEND_DSN = os.environ.get("SENTRY_BACKEND_DSN", None)

if SENTRY_BACKEND_DSN:
    FILMGRAPH_ENVIRONMENT = os.environ.get("FILMGRAPH_ENVIRONMENT", None)
    sentry_sdk.init(
        SENTRY_BACKEND_DSN,
        environment=FILMGRAPH_ENVIRONMENT,
        release=get_filmgraph_version(),
        integrations=[CeleryIntegration()],
    )

app = Celery("filmgraph")

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django app configs.
app.autodiscover_tasks()


def import_all_submodules(package_name: str):
    """
    Import a package and recursively import all submodules.
    Used sparingly at Celery startup to ensure all task modules are loaded.
    """
    pkg = importlib.import_module(package_name)
    if not hasattr(pkg, "__path__"):
        return
    for mod in pkgutil.walk_packages(pkg.__path__, pkg.__name__ + "."):
        importlib.import_module(mod.name)


# Celery autodiscovery only finds tasks.py or tasks/__init__.py, and the
# importer keeps one module per queue class under importer.tasks. This has to
# wait until Django is fully loaded.
@app.on_after_finalize.connect
def _load_all_task_modules(sender, **kwargs):
    import_all_submodules("importer.tasks")
