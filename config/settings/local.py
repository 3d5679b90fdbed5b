# config/settings/local.py
import os

from .base import *  # noqa

DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"

# SQLite unless a Postgres database is explicitly configured
if os.getenv("DB_ENGINE", "sqlite") == "sqlite":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.getenv("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),  # noqa: F405
        }
    }

EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend")
