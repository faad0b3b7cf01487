"""
Public API router.

Everything here is mounted under /api/v1/. Billing endpoints live in their
own namespace; the Stripe webhook is outside the API (see config/urls.py)
because it authenticates by signature rather than by token.
"""

from django.urls import include
from django.urls import path

from dripmap.core.api.auth_views import AuthMeView

app_name = "api"
urlpatterns = [
    # Auth endpoint for token verification and user identification
    path("auth/me/", AuthMeView.as_view(), name="auth-me"),
    path("billing/", include("dripmap.billing.urls", namespace="billing")),
]
