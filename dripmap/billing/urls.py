"""
URL configuration for the billing API.

Mounted under /api/v1/billing/. The Stripe webhook receiver is mounted
separately at /stripe/webhook/ (see config/urls.py).

Routes:
- checkout/shop/                 - Start a shop subscription checkout
- checkout/membership/           - Start a DripClub membership checkout
- portal/                        - Stripe Customer Portal URL
- cancel/                        - Cancel a subscription
- shops/member-discounts/        - Public list of discounting shops
- shops/<id>/subscription/       - Shop subscription snapshot
- shops/<id>/discount/           - Toggle the member discount (POST)
- membership/                    - Current user's membership snapshot
"""

from django.urls import path

from dripmap.billing.views import CancelSubscriptionView
from dripmap.billing.views import CustomerPortalView
from dripmap.billing.views import MemberDiscountShopsView
from dripmap.billing.views import MembershipCheckoutView
from dripmap.billing.views import MembershipView
from dripmap.billing.views import ShopCheckoutView
from dripmap.billing.views import ShopDiscountView
from dripmap.billing.views import ShopSubscriptionView

app_name = "billing"

urlpatterns = [
    path(
        "checkout/shop/",
        ShopCheckoutView.as_view(),
        name="checkout-shop",
    ),
    path(
        "checkout/membership/",
        MembershipCheckoutView.as_view(),
        name="checkout-membership",
    ),
    path(
        "portal/",
        CustomerPortalView.as_view(),
        name="portal",
    ),
    path(
        "cancel/",
        CancelSubscriptionView.as_view(),
        name="cancel",
    ),
    path(
        "shops/member-discounts/",
        MemberDiscountShopsView.as_view(),
        name="member-discounts",
    ),
    path(
        "shops/<int:shop_id>/subscription/",
        ShopSubscriptionView.as_view(),
        name="shop-subscription",
    ),
    path(
        "shops/<int:shop_id>/discount/",
        ShopDiscountView.as_view(),
        name="shop-discount",
    ),
    path(
        "membership/",
        MembershipView.as_view(),
        name="membership",
    ),
]
