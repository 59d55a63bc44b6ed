"""
Test settings.

SQLite in memory and fixed secrets; no network access is expected.
"""

from .base import *  # noqa: F403

DEBUG = False
ALLOWED_HOSTS = ["testserver"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

STYTCH_PROJECT_ID = "project-test-00000000-0000-0000-0000-000000000000"
STYTCH_SECRET = "secret-test-xxxxxxxx"
STRIPE_SECRET_KEY = "sk_test_xxx"
STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
STRIPE_PRICE_IDS = {
    "starter": "price_starter",
    "growth": "price_growth",
    "scale": "price_scale",
    "enterprise": "price_enterprise",
}
BILLING_DEFAULT_TIER = "starter"
BILLING_GRACE_PERIOD_DAYS = 7
PLAN_CATALOG = ""
