import os

import sentry_sdk
import structlog
from celery.schedules import crontab
from django.core.management.utils import get_random_secret_key
from sentry_sdk.integrations.django import DjangoIntegration

from filmgraph.version import get_filmgraph_version

DEFAULT_AUTO_FIELD = "django.db.models.AutoField"

# Build paths inside the project like this: os.path.join(SITE_ROOT_DIR, ...)
FILMGRAPH_APP_DIR = os.path.abspath(os.path.dirname(__file__))
SITE_ROOT_DIR = os.path.dirname(FILMGRAPH_APP_DIR)

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", get_random_secret_key())

FILMGRAPH_ENVIRONMENT = os.environ.get("FILMGRAPH_ENVIRONMENT", "development")

ALLOWED_HOSTS = ["*"]

DEBUG = False
CSRF_COOKIE_SECURE = False

LANGUAGE_CODE = "en-us"
ROOT_URLCONF = "filmgraph.urls"
STATIC_ROOT = "static-files"
STATIC_URL = "/static/"

TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True
WSGI_APPLICATION = "filmgraph.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("POSTGRESQL_DB", "filmgraph"),
        "USER": os.getenv("POSTGRESQL_USER", "filmgraph"),
        "PASSWORD": os.getenv("POSTGRESQL_PW"),
        "HOST": os.getenv("POSTGRESQL_HOST", "localhost"),
        "PORT": os.getenv("POSTGRESQL_PORT", "5432"),
        "CONN_MAX_AGE": 0,
    }
}

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "django_structlog",
    "filmgraph.apps.FilmgraphAppConfig",
    "importer.apps.ImporterAppConfig",
    "configuration.apps.ConfigurationAppConfig",
    "prometheus_metrics.apps.PrometheusMetricsConfig",
    "django_celery_beat",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "django_structlog.middlewares.RequestMiddleware",
]

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

REDIS_ADDRESS = os.environ.get("REDIS_ADDRESS", "localhost")
REDIS_PORT = os.environ.get("REDIS_PORT", "")
if REDIS_PORT.isdigit():
    REDIS_PORT = int(REDIS_PORT)
else:
    REDIS_PORT = 6379

if REDIS_ADDRESS and REDIS_PORT:
    CACHES = {
        # The default cache also holds the provider token buckets and task
        # locks, so it has to be shared by every worker process
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": f"redis://{REDIS_ADDRESS}:{REDIS_PORT}/1",
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
            },
        },
        "configuration_cache": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": f"redis://{REDIS_ADDRESS}:{REDIS_PORT}/3",
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
            },
        },
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        },
        "configuration_cache": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache"
        },
    }

CELERY_BROKER_URL = f"redis://{REDIS_ADDRESS}:{REDIS_PORT}/0"
CELERY_RESULT_BACKEND = f"redis://{REDIS_ADDRESS}:{REDIS_PORT}/0"

CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_IMPORTS = ("importer.tasks",)

# Jobs are acknowledged after they run so a worker crash redelivers them. Every
# importer task is safe to run more than once.
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_REJECT_ON_WORKER_LOST = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1

# One queue per class of work, so each can be given its own worker
# concurrency when deployed
CELERY_TASK_ROUTES = {
    "importer.tasks.discovery.*": {"queue": "discovery"},
    "importer.tasks.details.*": {"queue": "details"},
    "importer.tasks.enrichment.*": {"queue": "enrichment"},
    "importer.tasks.canonical.*": {"queue": "secondary"},
    "importer.tasks.festivals.*": {"queue": "secondary"},
}

CELERY_BEAT_SCHEDULE = {
    "daily-movie-update": {
        "task": "importer.tasks.discovery.start_daily_update_task",
        "schedule": crontab(hour=4, minute=0),
    },
}

CELERY_BROKER_HEARTBEAT = 0
CELERY_BROKER_CONNECTION_RETRY = True
CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP = True
CELERY_BROKER_TRANSPORT_OPTIONS = {
    "confirm_publish": True,
    "max_retries": 3,
    "interval_start": 0,
    "interval_step": 0.2,
    "interval_max": 0.5,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "celery_task_id": {"()": "filmgraph.logging.CeleryTaskFilter"},
    },
    "formatters": {
        "long": {
            "format": "[{asctime} {levelname} {name}:{lineno}{task_id}] {message}",
            "datefmt": "%Y-%m-%dT%H:%M:%S",
            "style": "{",
        },
        "short": {
            "format": "[{levelname} {name}] {message}",
            "datefmt": "%Y-%m-%dT%H:%M:%S",
            "style": "{",
        },
        "structlog_json": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processor": structlog.processors.JSONRenderer(),
        },
        "structlog_console": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processor": structlog.dev.ConsoleRenderer(),
        },
    },
    "handlers": {
        "stream": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "long",
            "filters": ["celery_task_id"],
        },
        "null": {"level": "INFO", "class": "logging.NullHandler"},
        "file": {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "level": "INFO",
            "formatter": "long",
            "filters": ["celery_task_id"],
            "filename": f"{SITE_ROOT_DIR}/logs/filmgraph.log",
            "when": "H",
            "interval": 3,
            "backupCount": 16,
            "delay": True,
        },
        "celery": {
            "level": "INFO",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": f"{SITE_ROOT_DIR}/logs/celery.log",
            "formatter": "long",
            "filters": ["celery_task_id"],
            "maxBytes": 1024 * 1024 * 100,  # 100 mb
            "delay": True,
        },
        "structlog_file": {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "level": "DEBUG",
            "formatter": "structlog_json",
            "filename": f"{SITE_ROOT_DIR}/logs/filmgraph-json.log",
            "when": "H",
            "interval": 3,
            "backupCount": 16,
            "delay": True,
        },
        "structlog_console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "structlog_console",
        },
    },
    "loggers": {
        "django": {"handlers": ["file"], "level": "INFO"},
        "celery": {"handlers": ["celery"], "level": "INFO"},
        "filmgraph": {"handlers": ["file"], "level": "INFO"},
        "importer": {"handlers": ["file", "celery"], "level": "INFO"},
        "structlog": {
            "handlers": ["structlog_file"],
            "level": "DEBUG",
            "propagate": True,
        },
        "django_structlog": {
            "handlers": ["structlog_file"],
            "level": "DEBUG",
            "propagate": False,
        },
    },
}

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


################################################################################
# Django-specific settings above
################################################################################

LOGIN_URL = "admin:login"

SENTRY_BACKEND_DSN = os.environ.get("SENTRY_BACKEND_DSN", "")

APPLICATION_VERSION = get_filmgraph_version()

sentry_sdk.init(
    dsn=SENTRY_BACKEND_DSN,
    environment=FILMGRAPH_ENVIRONMENT,
    release=APPLICATION_VERSION,
    integrations=[DjangoIntegration()],
)

CONFIGURATION_CACHE_TIMEOUT = 3600  # One hour

################################################################################
# Importer settings
################################################################################

#: Per-provider connection settings. ``rate`` is "<requests>/<period>" where the
#: period is an optional multiplier followed by s, m, h or d ("40/10s" is forty
#: requests every ten seconds). Any rate can be overridden at runtime with a
#: ``<provider>_rate_limit`` configuration value.
IMPORTER_PROVIDERS = {
    "tmdb": {
        "base_url": os.environ.get("TMDB_BASE_URL", "https://api.themoviedb.org/3"),
        "api_key": os.environ.get("TMDB_API_KEY", ""),
        "rate": "40/10s",
        "timeout": 30,
        "max_retries": 3,
        "max_wait": 60,
    },
    "omdb": {
        "base_url": os.environ.get("OMDB_BASE_URL", "https://www.omdbapi.com"),
        "api_key": os.environ.get("OMDB_API_KEY", ""),
        "rate": "1/s",
        "timeout": 30,
        "max_retries": 2,
        "max_wait": 60,
    },
    "imdb": {
        "base_url": os.environ.get("IMDB_BASE_URL", "https://www.imdb.com"),
        "api_key": "",
        "rate": "1/2s",
        "timeout": 30,
        "max_retries": 2,
        "max_wait": 120,
    },
}

#: Seconds a 429 response keeps a provider's bucket closed, as a multiple of its
#: refill interval. Any Retry-After hint longer than this wins.
IMPORTER_RATE_LIMIT_COOLDOWN_FACTOR = 2

#: Base and ceiling, in seconds, of the exponential backoff used between attempts
IMPORTER_RETRY_BACKOFF_BASE = 2
IMPORTER_RETRY_BACKOFF_MAX = 10 * 60

#: Seconds between consecutive discovery pages
IMPORTER_DISCOVERY_PAGE_DELAY = 1

#: Seconds between consecutive curated list pages or festival ceremonies
IMPORTER_SECONDARY_PAGE_DELAY = 5

#: Upper bound on discovery pages per run; the catalog API refuses pages past 500
IMPORTER_DISCOVERY_MAX_PAGES = 500

#: Maximum attempts before a job is discarded, by job kind
IMPORTER_MAX_ATTEMPTS = {
    "discovery": 3,
    "details": 5,
    "enrichment": 3,
    "canonical_page": 3,
    "festival_ceremony": 3,
}
