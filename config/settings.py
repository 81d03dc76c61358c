"""
EATME – Django Settings (Infrastructure Only)
===============================================
Django serves as the container for the EATME engine: ORM persistence
for the document store, settings and logging configuration.
Engine rules live in engines/, not here.

Every value can be overridden from the environment.
"""

import json
import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("EATME_SECRET_KEY", "eatme-dev-key-replace-before-deployment")

DEBUG = os.environ.get("EATME_DEBUG", "1") == "1"

ALLOWED_HOSTS = [
    host for host in os.environ.get("EATME_ALLOWED_HOSTS", "").split(",") if host
]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # ── EATME Modules ─────────────────────────────────────
    "core.document_store",
]

MIDDLEWARE = []

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("EATME_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
EATME_LOG_LEVEL = os.environ.get("EATME_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "eatme": {
            "handlers": ["console"],
            "level": EATME_LOG_LEVEL,
            "propagate": True,
        },
    },
}

# ── Engine ────────────────────────────────────────────────────
# "memory" or "django"
EATME_STORE_BACKEND = os.environ.get("EATME_STORE_BACKEND", "django")

# SMS gateway. No key → no SMS channel is wired.
EATME_SMS_API_URL = os.environ.get("EATME_SMS_API_URL", "https://sms.smsnotifygh.com/smsapi")
EATME_SMS_API_KEY = os.environ.get("EATME_SMS_API_KEY", "")
EATME_SMS_SENDER_ID = os.environ.get("EATME_SMS_SENDER_ID", "EATME food")
EATME_SMS_TIMEOUT_SECONDS = float(os.environ.get("EATME_SMS_TIMEOUT_SECONDS", "10"))
EATME_SMS_MAX_RETRIES = int(os.environ.get("EATME_SMS_MAX_RETRIES", "2"))

EATME_ADMIN_PHONE = os.environ.get("EATME_ADMIN_PHONE", "")

# Loyalty program overrides, e.g. '{"review_cap": 10}'
EATME_LOYALTY = json.loads(os.environ.get("EATME_LOYALTY", "{}"))
