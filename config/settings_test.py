import os

os.environ.setdefault("DJANGO_SECRET_KEY", "psbook-test-secret-key")
os.environ.setdefault("DJANGO_SECURE_SSL_REDIRECT", "False")
os.environ.setdefault("DJANGO_SESSION_COOKIE_SECURE", "False")
os.environ.setdefault("DJANGO_CSRF_COOKIE_SECURE", "False")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")
os.environ["CLERK_JWT_ISSUER_DOMAIN"] = ""

from config.settings import *  # noqa: E402,F401,F403

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

CLERK_JWT_ISSUER_DOMAIN = ""
CLERK_WEBHOOK_SECRET = ""
CLERK_SECRET_KEY = ""
