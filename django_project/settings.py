import os
from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


def env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def env_list(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}.")


# Quick-start development settings - unsuitable for production
# See https://docs.djangoproject.com/en/dev/howto/deployment/checklist/

# https://docs.djangoproject.com/en/dev/ref/settings/#secret-key
# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-secret-key-change-me")

# https://docs.djangoproject.com/en/dev/ref/settings/#debug
# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env_flag("DJANGO_DEBUG", "true")
if not DEBUG and SECRET_KEY == "dev-secret-key-change-me":
    raise ValueError("DJANGO_SECRET_KEY must be set in production.")

# https://docs.djangoproject.com/en/dev/ref/settings/#allowed-hosts
ALLOWED_HOSTS = env_list("DJANGO_ALLOWED_HOSTS", "localhost,0.0.0.0,127.0.0.1,testserver")


# Application definition
# https://docs.djangoproject.com/en/dev/ref/settings/#installed-apps
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    # Third-party
    "rest_framework",
    "corsheaders",
    # Local
    "exam_scheduling",
]

# https://docs.djangoproject.com/en/dev/ref/settings/#middleware
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

# https://docs.djangoproject.com/en/dev/ref/settings/#root-urlconf
ROOT_URLCONF = "django_project.urls"

# https://docs.djangoproject.com/en/dev/ref/settings/#wsgi-application
WSGI_APPLICATION = "django_project.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

# Exams, rooms, terms and allocations live behind the examboard API; the local
# database only backs Django's own bookkeeping.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DJANGO_DB_NAME", str(BASE_DIR / "db.sqlite3")),
    }
}


# Internationalization
# https://docs.djangoproject.com/en/dev/topics/i18n/
LANGUAGE_CODE = "fa"

# https://docs.djangoproject.com/en/dev/ref/settings/#time-zone
# Allocation timestamps carry wall-clock digits as UTC; never convert them.
TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True

# https://docs.djangoproject.com/en/dev/ref/settings/#static-url
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# https://docs.djangoproject.com/en/stable/ref/settings/#default-auto-field
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Credentials are forwarded to the examboard API, which performs authentication.
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "exam_scheduling.api.authentication.ForwardedCredentialAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "exam_scheduling.api.authentication.HasForwardedCredential",
    ],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": os.getenv("DRF_THROTTLE_ANON_RATE", "200/min"),
    },
}

# Spreadsheets with a few thousand rows are normal for a term.
DATA_UPLOAD_MAX_MEMORY_SIZE = env_int("DJANGO_DATA_UPLOAD_MAX_MEMORY_SIZE", 20 * 1024 * 1024)
FILE_UPLOAD_MAX_MEMORY_SIZE = DATA_UPLOAD_MAX_MEMORY_SIZE

# CORS setup for the examboard frontend
CORS_ALLOWED_ORIGINS = env_list("DJANGO_CORS_ALLOWED_ORIGINS") or [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
CORS_ALLOW_CREDENTIALS = True

SECURE_SSL_REDIRECT = env_flag("DJANGO_SECURE_SSL_REDIRECT", "false")
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")


# Logging
LOG_LEVEL = os.getenv("DJANGO_LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
            "datefmt": "%Y-%m-%dT%H:%M:%S%z",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "exam_scheduling": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "httpx": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}


# Examboard API (remote persistence for terms, rooms, exams and allocations)
EXAMBOARD_API_URL = os.getenv("EXAMBOARD_API_URL", "http://localhost:8000").strip().rstrip("/")
EXAMBOARD_API_TIMEOUT = float(os.getenv("EXAMBOARD_API_TIMEOUT", "30"))

# Scheduling defaults
EXAM_DEFAULT_DURATION_MINUTES = env_int("EXAM_DEFAULT_DURATION_MINUTES", 120)

# Spreadsheet import behaviour
EXAM_IMPORT_DEFAULT_OWNER = env_int("EXAM_IMPORT_DEFAULT_OWNER", 1)
EXAM_IMPORT_DEFAULT_EXPECTED_STUDENTS = env_int("EXAM_IMPORT_DEFAULT_EXPECTED_STUDENTS", 1)
# "silent": rows lacking room/date/time/students are imported without an allocation.
# "warn": the same rows also get a note listing what was missing.
EXAM_IMPORT_UNALLOCATED_POLICY = os.getenv("EXAM_IMPORT_UNALLOCATED_POLICY", "silent").strip().lower()
# "report": over-capacity allocations are still created and flagged.
# "skip": over-capacity allocations are not created.
EXAM_IMPORT_CONFLICT_POLICY = os.getenv("EXAM_IMPORT_CONFLICT_POLICY", "report").strip().lower()

if EXAM_IMPORT_UNALLOCATED_POLICY not in {"silent", "warn"}:
    raise ValueError("EXAM_IMPORT_UNALLOCATED_POLICY must be 'silent' or 'warn'.")
if EXAM_IMPORT_CONFLICT_POLICY not in {"report", "skip"}:
    raise ValueError("EXAM_IMPORT_CONFLICT_POLICY must be 'report' or 'skip'.")

# Utilization report horizon
EXAM_REPORT_WORKING_DAYS = env_int("EXAM_REPORT_WORKING_DAYS", 80)
EXAM_REPORT_HOURS_PER_DAY = env_int("EXAM_REPORT_HOURS_PER_DAY", 10)
