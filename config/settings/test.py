"""
With these settings, tests run faster.
"""

import os

# Test-safe Stripe values so no test can reach a real account
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy_test_key_for_testing")
os.environ.setdefault("STRIPE_PUBLIC_KEY", "pk_test_dummy_test_key_for_testing")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_dummy_test_secret")

from .base import *  # noqa: F403
from .base import REST_FRAMEWORK
from .base import env

# GENERAL
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#secret-key
SECRET_KEY = env(
    "DJANGO_SECRET_KEY",
    default="Wq3HCmVbqm2xoyMlt1YcLQvNbN2xvbXW6a0C8oVJy9gqJ3dX7lT5xY0fRzK1sQeA",
)
# https://docs.djangoproject.com/en/dev/ref/settings/#test-runner
TEST_RUNNER = "django.test.runner.DiscoverRunner"
# https://docs.djangoproject.com/en/dev/ref/settings/#allowed-hosts
ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# DATABASES
# ------------------------------------------------------------------------------
DATABASES = {
    "default": env.db("DATABASE_URL", default="sqlite://:memory:"),
}

# PASSWORDS
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#password-hashers
PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# EMAIL
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#email-backend
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

# STRIPE
# ------------------------------------------------------------------------------
# A complete price catalog so checkout and webhook tests can resolve prices.
STRIPE_PRICE_SHOP_PRO_MONTHLY = "price_shop_pro_monthly"
STRIPE_PRICE_SHOP_PRO_ANNUAL = "price_shop_pro_annual"
STRIPE_PRICE_SHOP_PRO_PLUS_MONTHLY = "price_shop_pro_plus_monthly"
STRIPE_PRICE_SHOP_PRO_PLUS_ANNUAL = "price_shop_pro_plus_annual"
STRIPE_PRICE_DRIPCLUB_MONTHLY = "price_dripclub_monthly"
STRIPE_PRICE_DRIPCLUB_ANNUAL = "price_dripclub_annual"

# Your stuff...
# ------------------------------------------------------------------------------

# Disable DRF throttling in tests to prevent rate limit failures during test runs
# Tests run many rapid API calls which would trigger throttle limits.
REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []  # type: ignore[name-defined]
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}  # type: ignore[name-defined]
