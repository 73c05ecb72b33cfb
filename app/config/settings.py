"""
Settings for the course payment backend.

One module for every environment; values come from environment variables
through django-environ. Locally they are read from ``.env.development``
(or the file named by ENV_FILE); containers pass them in directly.
"""

import os
from datetime import timedelta
from pathlib import Path

import environ
from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    CORS_ALLOWED_ORIGINS=(list, []),
    LOG_LEVEL=(str, "INFO"),
    MOBILE_BANKING_ENABLED=(bool, False),
)

env_file = os.environ.get("ENV_FILE", BASE_DIR.parent / ".env.development")
if Path(env_file).exists():
    environ.Env.read_env(env_file)

# Also the JWT signing key
SECRET_KEY = env("SECRET_KEY", default="insecure-development-key-change-me")
DEBUG = env("DEBUG")
ALLOWED_HOSTS = env("ALLOWED_HOSTS")


# -----------------------------------------------------------------------------
# Applications
# -----------------------------------------------------------------------------

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "rest_framework_simplejwt.token_blacklist",
    "corsheaders",
    "django_celery_beat",
    "drf_spectacular",
    "core",
    "authentication",
    "learning",
    "commerce",
    "coupons",
    "earnings",
    "audit",
    "payments",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    # Before CommonMiddleware
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "audit.middleware.AuditRequestMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

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
    },
]

AUTH_USER_MODEL = "authentication.User"
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": f"django.contrib.auth.password_validation.{name}"}
    for name in (
        "UserAttributeSimilarityValidator",
        "MinimumLengthValidator",
        "CommonPasswordValidator",
        "NumericPasswordValidator",
    )
]

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# -----------------------------------------------------------------------------
# Storage
# -----------------------------------------------------------------------------

# PostgreSQL (psycopg 3) in deployments; SQLite when DATABASE_URL is unset
DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}
if DATABASES["default"]["ENGINE"] == "django.db.backends.postgresql":
    DATABASES["default"]["OPTIONS"] = {"connect_timeout": 10}

# Redis also holds the per-payment locks (payments.locks)
CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": env("REDIS_URL", default="redis://redis:6379/0"),
        "OPTIONS": {
            "CLIENT_CLASS": "django_redis.client.DefaultClient",
            "IGNORE_EXCEPTIONS": True,
        },
    }
}

STATIC_URL = env("STATIC_URL", default="/static/")
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True


# -----------------------------------------------------------------------------
# API
# -----------------------------------------------------------------------------

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        # Browsable API and admin
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "EXCEPTION_HANDLER": "core.responses.application_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": env("THROTTLE_ANON_RATE", default="100/hour"),
        "user": env("THROTTLE_USER_RATE", default="1000/hour"),
    },
}
if DEBUG:
    REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"].append(
        "rest_framework.renderers.BrowsableAPIRenderer"
    )

SPECTACULAR_SETTINGS = {
    "TITLE": "Course Payments API",
    "DESCRIPTION": "Payments, orders, coupons, commissions and finance reports",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SCHEMA_PATH_PREFIX": r"/api/v[0-9]+",
    "SECURITY": [{"Bearer": []}],
    "APPEND_COMPONENTS": {
        "securitySchemes": {
            "Bearer": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
        }
    },
    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": False,
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=60),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=7),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": True,
    "UPDATE_LAST_LOGIN": True,
    "ALGORITHM": "HS256",
    "SIGNING_KEY": SECRET_KEY,
    "AUTH_HEADER_TYPES": ("Bearer",),
    "USER_ID_FIELD": "id",
    "USER_ID_CLAIM": "user_id",
}

CORS_ALLOWED_ORIGINS = env("CORS_ALLOWED_ORIGINS")
CORS_ALLOW_CREDENTIALS = True

# Gateways return the payer's browser to BACKEND_URL callbacks, which then
# redirect to the frontend's payment status page.
FRONTEND_URL = env("FRONTEND_URL", default="http://localhost:3000")
BACKEND_URL = env("BACKEND_URL", default="http://localhost:8000")


# -----------------------------------------------------------------------------
# Celery
# -----------------------------------------------------------------------------

CELERY_BROKER_URL = env("CELERY_BROKER_URL", default="redis://redis:6379/1")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", default="redis://redis:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60
CELERY_TASK_ALWAYS_EAGER = env.bool("CELERY_TASK_ALWAYS_EAGER", default=False)
CELERY_BEAT_SCHEDULER = "django_celery_beat.schedulers:DatabaseScheduler"

# Copied into django-celery-beat's tables when beat starts
CELERY_BEAT_SCHEDULE = {
    "retry-failed-webhooks": {
        "task": "payments.tasks.retry_failed_webhooks",
        "schedule": crontab(minute="*/5"),
    },
    "cleanup-stuck-webhooks": {
        "task": "payments.tasks.cleanup_stuck_webhooks",
        "schedule": crontab(minute="*/15"),
    },
    "cleanup-old-webhooks": {
        "task": "payments.tasks.cleanup_old_webhooks",
        "schedule": crontab(hour=3, minute=0),
    },
    "expire-stale-pending-payments": {
        "task": "payments.tasks.expire_stale_pending_payments",
        "schedule": crontab(minute=30),
    },
    "expire-coupons": {
        "task": "payments.tasks.expire_coupons",
        "schedule": crontab(hour=0, minute=10),
    },
}


# -----------------------------------------------------------------------------
# Payment gateways
# -----------------------------------------------------------------------------

# Timeout for outbound eSewa and Khalti calls, in seconds
GATEWAY_HTTP_TIMEOUT_SECONDS = env.int("GATEWAY_HTTP_TIMEOUT_SECONDS", default=30)

# eSewa wallet; the sandbox merchant code is EPAYTEST
ESEWA_MERCHANT_CODE = env("ESEWA_MERCHANT_CODE", default="")
ESEWA_SECRET_KEY = env("ESEWA_SECRET_KEY", default="")
ESEWA_ENVIRONMENT = env("ESEWA_ENVIRONMENT", default="sandbox")  # sandbox | production

KHALTI_SECRET_KEY = env("KHALTI_SECRET_KEY", default="")
KHALTI_BASE_URL = env("KHALTI_BASE_URL", default="https://dev.khalti.com/api/v2/")

STRIPE_SECRET_KEY = env("STRIPE_SECRET_KEY", default="")
STRIPE_PUBLISHABLE_KEY = env("STRIPE_PUBLISHABLE_KEY", default="")
STRIPE_WEBHOOK_SECRET = env("STRIPE_WEBHOOK_SECRET", default="")
STRIPE_API_TIMEOUT_SECONDS = env.int("STRIPE_API_TIMEOUT_SECONDS", default=10)

# Provider for visa_card and mastercard: khalti | stripe. When empty, the
# first configured of khalti, stripe is used.
CARD_PAYMENT_GATEWAY = env("CARD_PAYMENT_GATEWAY", default="")

# mobile_banking is a manual bank transfer, confirmed by an administrator
MOBILE_BANKING_ENABLED = env("MOBILE_BANKING_ENABLED")
PAYMENT_BANK_DETAILS = {
    "bank_name": env("PAYMENT_BANK_NAME", default=""),
    "account_name": env("PAYMENT_BANK_ACCOUNT_NAME", default=""),
    "account_number": env("PAYMENT_BANK_ACCOUNT_NUMBER", default=""),
    "branch": env("PAYMENT_BANK_BRANCH", default=""),
}


# -----------------------------------------------------------------------------
# Payment engine
# -----------------------------------------------------------------------------

PAYMENT_CURRENCY = env("PAYMENT_CURRENCY", default="NPR")

# Retries allowed after the first failed attempt
PAYMENT_MAX_RETRIES = env.int("PAYMENT_MAX_RETRIES", default=3)

# Redis lock held around verify, refund and retry of one payment
PAYMENT_LOCK_TTL_SECONDS = env.int("PAYMENT_LOCK_TTL_SECONDS", default=30)
PAYMENT_LOCK_TIMEOUT_SECONDS = env.int("PAYMENT_LOCK_TIMEOUT_SECONDS", default=10)

PAYMENT_PENDING_EXPIRY_HOURS = env.int("PAYMENT_PENDING_EXPIRY_HOURS", default=24)
WEBHOOK_MAX_RETRIES = env.int("WEBHOOK_MAX_RETRIES", default=5)

FRAUD_LARGE_AMOUNT_THRESHOLD_PAISA = env.int(
    "FRAUD_LARGE_AMOUNT_THRESHOLD_PAISA", default=10_000_000  # NPR 100,000
)
FRAUD_VELOCITY_LIMIT = env.int("FRAUD_VELOCITY_LIMIT", default=5)
FRAUD_WINDOW_MINUTES = env.int("FRAUD_WINDOW_MINUTES", default=60)
FRAUD_IP_REUSE_PAYERS = env.int("FRAUD_IP_REUSE_PAYERS", default=3)
FRAUD_RAPID_SECONDS = env.int("FRAUD_RAPID_SECONDS", default=60)
FRAUD_MIN_USER_AGENT_LENGTH = env.int("FRAUD_MIN_USER_AGENT_LENGTH", default=20)

# Percent of a payment's final amount
INSTRUCTOR_DEFAULT_COMMISSION_RATE = env.int("INSTRUCTOR_DEFAULT_COMMISSION_RATE", default=30)
AFFILIATE_DEFAULT_COMMISSION_RATE = env.int("AFFILIATE_DEFAULT_COMMISSION_RATE", default=10)

# Audit entries scoring at least this are flagged for review
AUDIT_FLAG_THRESHOLD = env.int("AUDIT_FLAG_THRESHOLD", default=70)

# One audit entry per state-changing API call
AUDIT_REQUESTS_ENABLED = env.bool("AUDIT_REQUESTS_ENABLED", default=not DEBUG)
AUDIT_REQUEST_PATH_PREFIX = "/api/"
AUDIT_SKIP_PATHS = env.list(
    "AUDIT_SKIP_PATHS", default=["/health/", "/api/v1/payments/webhooks/"]
)


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

LOG_LEVEL = env("LOG_LEVEL")
# One file per process type: django.log, celery-worker.log, celery-beat.log
LOG_FILE_NAME = env("LOG_FILE_NAME", default="django.log")
LOG_DIR = BASE_DIR / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)

_HANDLERS = ["console", "file"]

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
        "file": {
            "format": "[{asctime}] {levelname} {name} {module}:{lineno} - {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "verbose"},
        "file": {
            "level": "DEBUG",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": LOG_DIR / LOG_FILE_NAME,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "file",
            "encoding": "utf-8",
        },
    },
    "root": {"handlers": _HANDLERS, "level": LOG_LEVEL},
    "loggers": {
        "django": {"handlers": _HANDLERS, "level": LOG_LEVEL, "propagate": False},
        "django.request": {"handlers": _HANDLERS, "level": "ERROR", "propagate": False},
        "celery": {"handlers": _HANDLERS, "level": LOG_LEVEL, "propagate": False},
        # Adapters log each gateway call with its duration
        "payments": {"handlers": _HANDLERS, "level": LOG_LEVEL, "propagate": False},
    },
}


# -----------------------------------------------------------------------------
# Production hardening (DEBUG=False)
# -----------------------------------------------------------------------------

if not DEBUG:
    SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
    SESSION_COOKIE_SECURE = env.bool("SESSION_COOKIE_SECURE", default=True)
    CSRF_COOKIE_SECURE = env.bool("CSRF_COOKIE_SECURE", default=True)
    SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=31536000)
    SECURE_HSTS_INCLUDE_SUBDOMAINS = env.bool("SECURE_HSTS_INCLUDE_SUBDOMAINS", default=True)
    SECURE_HSTS_PRELOAD = env.bool("SECURE_HSTS_PRELOAD", default=True)
    SECURE_CONTENT_TYPE_NOSNIFF = True
    X_FRAME_OPTIONS = "DENY"
