# config/settings/test.py
from .base import *  # noqa

DEBUG = False
SECRET_KEY = "test-secret-key"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

AUDIT_STRICT = False
INTEGRATION_RETRY_PROCESSOR = None

LOGGING["loggers"]["cr_core"]["level"] = "CRITICAL"
LOGGING["loggers"]["cr_core"]["propagate"] = True  # caplog listens on the root logger
