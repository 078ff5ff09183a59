import json
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

DEBUG = os.getenv("DEBUG", "0") == "1"
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    "reliability.apps.ReliabilityConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {"context_processors": [
            "django.template.context_processors.debug",
            "django.template.context_processors.request",
            "django.contrib.auth.context_processors.auth",
            "django.contrib.messages.context_processors.messages",
        ]},
    }
]

WSGI_APPLICATION = "config.wsgi.application"

DB_NAME = os.getenv("DB_NAME", "dam")
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": DB_NAME,
        "USER": DB_USER,
        "PASSWORD": DB_PASSWORD,
        "HOST": DB_HOST,
        "PORT": DB_PORT,
    }
}

STATIC_URL = "/static/"

USE_TZ = True
TIME_ZONE = "UTC"

# Default primary key field type for new models
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Reliability engine
RELIABILITY_QUEUE = os.getenv("RELIABILITY_QUEUE", "default")
RELIABILITY_ESCALATION_MINUTES = int(os.getenv("RELIABILITY_ESCALATION_MINUTES", "15"))
RELIABILITY_THUMBNAIL_MAX_RETRIES = int(os.getenv("RELIABILITY_THUMBNAIL_MAX_RETRIES", "3"))
RELIABILITY_RECOVERY_CRON = os.getenv("RELIABILITY_RECOVERY_CRON", "*/5 * * * *")
RELIABILITY_LOG_LEVEL = os.getenv("RELIABILITY_LOG_LEVEL", "INFO")

# job name -> dotted path of the pipeline callable the repair job runs, e.g.
# {"generate_thumbnails": "media.pipeline.generate_thumbnails"}
RELIABILITY_PIPELINE_CALLABLES = json.loads(os.getenv("RELIABILITY_PIPELINE_CALLABLES", "{}") or "{}")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "reliability": {
            "handlers": ["console"],
            "level": RELIABILITY_LOG_LEVEL,
            "propagate": False,
        },
        "rq.worker": {
            "handlers": ["console"],
            "level": "INFO",
        },
    },
}
