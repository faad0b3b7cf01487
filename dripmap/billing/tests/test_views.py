"""
Tests for the billing API views.

Service calls are mocked at the view boundary; the services themselves are
covered in test_services.py. Webhook view tests send signed bodies through
the real processor.
"""

from datetime import UTC
from datetime import datetime
from unittest.mock import patch

import pytest
from django.urls import reverse
from rest_framework import status

from dripmap.billing.constants import ShopTier
from dripmap.billing.constants import SubscriptionStatus
from dripmap.billing.exceptions import AuthorizationError
from dripmap.billing.exceptions import ConflictError
from dripmap.billing.exceptions import NotFoundError
from dripmap.billing.exceptions import UpstreamDependencyError
from dripmap.billing.models import DripClubMembership
from dripmap.billing.models import ProcessedEvent
from dripmap.billing.services import CancellationResult
from dripmap.billing.tests import stripe_payloads as payloads
from dripmap.billing.tests.factories import DripClubMembershipFactory
from dripmap.shops.tests.factories import ShopFactory

CHECKOUT_URL = "https://checkout.stripe.com/c/pay/cs_test_1"
PORTAL_URL = "https://billing.stripe.com/p/session/test_1"


def shop_checkout_body(**overrides):
    body = {
        "shopId": 1,
        "tier": "pro",
        "billingInterval": "monthly",
        "successUrl": "https://dripmap.app/shops/1/?upgraded=1",
        "cancelUrl": "https://dripmap.app/shops/1/",
    }
    body.update(overrides)
    return body


@pytest.mark.django_db
class TestAuthentication:
    @pytest.mark.parametrize(
        ("method", "name"),
        [
            ("post", "api:billing:checkout-shop"),
            ("post", "api:billing:checkout-membership"),
            ("post", "api:billing:portal"),
            ("post", "api:billing:cancel"),
            ("get", "api:billing:membership"),
        ],
    )
    def test_requires_token(self, api_client, method, name):
        response = getattr(api_client, method)(reverse(name), {}, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data["status"] == status.HTTP_401_UNAUTHORIZED

    def test_shop_subscription_requires_token(self, api_client):
        url = reverse("api:billing:shop-subscription", args=[1])

        response = api_client.get(url)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestShopCheckoutView:
    url = "/api/v1/billing/checkout/shop/"

    @patch("dripmap.billing.views.BillingService")
    def test_returns_checkout_url(self, mock_service_class, auth_client, user):
        mock_service_class.return_value.create_shop_checkout.return_value = CHECKOUT_URL

        response = auth_client.post(self.url, shop_checkout_body(), format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"url": CHECKOUT_URL}
        mock_service_class.return_value.create_shop_checkout.assert_called_once_with(
            user,
            shop_id=1,
            tier="pro",
            billing_interval="monthly",
            success_url="https://dripmap.app/shops/1/?upgraded=1",
            cancel_url="https://dripmap.app/shops/1/",
            price_id=None,
        )

    @patch("dripmap.billing.views.BillingService")
    def test_passes_explicit_price(self, mock_service_class, auth_client, user):
        mock_service_class.return_value.create_shop_checkout.return_value = CHECKOUT_URL

        auth_client.post(
            self.url,
            shop_checkout_body(priceId="price_shop_pro_annual"),
            format="json",
        )

        kwargs = mock_service_class.return_value.create_shop_checkout.call_args.kwargs
        assert kwargs["price_id"] == "price_shop_pro_annual"

    @patch("dripmap.billing.views.BillingService")
    def test_missing_fields_are_400(self, mock_service_class, auth_client):
        response = auth_client.post(self.url, {"shopId": 1}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["status"] == status.HTTP_400_BAD_REQUEST
        assert "tier: This field is required." in response.data["error"]
        assert "successUrl: This field is required." in response.data["error"]
        mock_service_class.return_value.create_shop_checkout.assert_not_called()

    @patch("dripmap.billing.views.BillingService")
    def test_free_tier_is_not_purchasable(self, mock_service_class, auth_client):
        response = auth_client.post(
            self.url,
            shop_checkout_body(tier="free"),
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error"].startswith("tier:")

    @pytest.mark.parametrize(
        ("error", "expected_status"),
        [
            (AuthorizationError("You do not own this shop."), 403),
            (NotFoundError("Shop not found."), 404),
            (ConflictError("Shop is already on PRO."), 409),
            (UpstreamDependencyError("Card network unavailable."), 502),
        ],
    )
    @patch("dripmap.billing.views.BillingService")
    def test_service_errors_map_to_status(
        self,
        mock_service_class,
        error,
        expected_status,
        auth_client,
    ):
        mock_service_class.return_value.create_shop_checkout.side_effect = error

        response = auth_client.post(self.url, shop_checkout_body(), format="json")

        assert response.status_code == expected_status
        assert response.data == {"error": error.message, "status": expected_status}


class TestMembershipCheckoutView:
    url = "/api/v1/billing/checkout/membership/"

    @patch("dripmap.billing.views.BillingService")
    def test_returns_checkout_url(self, mock_service_class, auth_client, user):
        service = mock_service_class.return_value
        service.create_membership_checkout.return_value = CHECKOUT_URL

        response = auth_client.post(
            self.url,
            {
                "userId": user.pk,
                "billingInterval": "annual",
                "successUrl": "https://dripmap.app/dripclub/welcome/",
                "cancelUrl": "https://dripmap.app/dripclub/",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["url"] == CHECKOUT_URL
        service.create_membership_checkout.assert_called_once_with(
            user,
            subject_user_id=user.pk,
            billing_interval="annual",
            success_url="https://dripmap.app/dripclub/welcome/",
            cancel_url="https://dripmap.app/dripclub/",
            price_id=None,
        )

    @patch("dripmap.billing.views.BillingService")
    def test_invalid_interval_is_400(self, mock_service_class, auth_client, user):
        response = auth_client.post(
            self.url,
            {
                "userId": user.pk,
                "billingInterval": "weekly",
                "successUrl": "https://dripmap.app/ok/",
                "cancelUrl": "https://dripmap.app/no/",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error"].startswith("billingInterval:")


class TestCustomerPortalView:
    url = "/api/v1/billing/portal/"

    @patch("dripmap.billing.views.BillingService")
    def test_returns_portal_url(self, mock_service_class, auth_client, user):
        service = mock_service_class.return_value
        service.create_portal_session.return_value = PORTAL_URL

        response = auth_client.post(
            self.url,
            {"customerId": "cus_123", "returnUrl": "https://dripmap.app/account/"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"url": PORTAL_URL}
        service.create_portal_session.assert_called_once_with(
            user,
            customer_id="cus_123",
            return_url="https://dripmap.app/account/",
        )

    @patch("dripmap.billing.views.BillingService")
    def test_foreign_customer_is_403(self, mock_service_class, auth_client):
        service = mock_service_class.return_value
        service.create_portal_session.side_effect = AuthorizationError()

        response = auth_client.post(
            self.url,
            {"customerId": "cus_other", "returnUrl": "https://dripmap.app/account/"},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error"] == AuthorizationError.default_message


class TestCancelSubscriptionView:
    url = "/api/v1/billing/cancel/"

    @patch("dripmap.billing.views.BillingService")
    def test_defaults_to_period_end(self, mock_service_class, auth_client, user):
        period_end = datetime(2026, 2, 1, tzinfo=UTC)
        service = mock_service_class.return_value
        service.cancel_subscription.return_value = CancellationResult(
            success=True,
            cancel_at_period_end=True,
            current_period_end=period_end,
            subscription_status=SubscriptionStatus.ACTIVE,
        )

        response = auth_client.post(
            self.url,
            {"subscriptionId": "sub_123"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["success"] is True
        assert response.data["cancelAtPeriodEnd"] is True
        assert response.data["currentPeriodEnd"] == period_end
        service.cancel_subscription.assert_called_once_with(
            user,
            subscription_id="sub_123",
            cancel_at_period_end=True,
        )

    @patch("dripmap.billing.views.BillingService")
    def test_immediate_cancel(self, mock_service_class, auth_client, user):
        service = mock_service_class.return_value
        service.cancel_subscription.return_value = CancellationResult(
            success=True,
            cancel_at_period_end=False,
            current_period_end=None,
            subscription_status=SubscriptionStatus.CANCELED,
        )

        response = auth_client.post(
            self.url,
            {"subscriptionId": "sub_123", "cancelAtPeriodEnd": False},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["cancelAtPeriodEnd"] is False
        kwargs = service.cancel_subscription.call_args.kwargs
        assert kwargs["cancel_at_period_end"] is False

    @patch("dripmap.billing.views.BillingService")
    def test_missing_subscription_id_is_400(self, mock_service_class, auth_client):
        response = auth_client.post(self.url, {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error"] == "subscriptionId: This field is required."


class TestShopSubscriptionView:
    def test_owner_gets_snapshot(self, auth_client, user):
        shop = ShopFactory(pro_plus=True, claimed_by=user, discount_enabled=True)
        url = reverse("api:billing:shop-subscription", args=[shop.pk])

        response = auth_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["shopId"] == shop.pk
        assert response.data["tier"] == ShopTier.PRO_PLUS
        assert response.data["subscriptionStatus"] == SubscriptionStatus.ACTIVE
        assert response.data["stripeSubscriptionId"] == shop.stripe_subscription_id
        assert response.data["isPro"] is True
        assert response.data["isProPlus"] is True
        assert response.data["discountEnabled"] is True
        assert response.data["entitlements"] == {
            "entitled": True,
            "inGracePeriod": False,
            "needsAttention": False,
        }

    def test_other_owner_is_403(self, auth_client):
        shop = ShopFactory(pro=True)
        url = reverse("api:billing:shop-subscription", args=[shop.pk])

        response = auth_client.get(url)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data == {
            "error": "You do not own this shop.",
            "status": status.HTTP_403_FORBIDDEN,
        }

    def test_missing_shop_is_404(self, auth_client):
        url = reverse("api:billing:shop-subscription", args=[999999])

        response = auth_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestShopDiscountView:
    def test_pro_plus_owner_enables_discount(self, auth_client, user):
        shop = ShopFactory(pro_plus=True, claimed_by=user)
        url = reverse("api:billing:shop-discount", args=[shop.pk])

        response = auth_client.post(url, {"enabled": True}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["discountEnabled"] is True
        shop.refresh_from_db()
        assert shop.discount_enabled is True

    def test_pro_shop_cannot_enable_discount(self, auth_client, user):
        shop = ShopFactory(pro=True, claimed_by=user)
        url = reverse("api:billing:shop-discount", args=[shop.pk])

        response = auth_client.post(url, {"enabled": True}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        shop.refresh_from_db()
        assert shop.discount_enabled is False

    def test_missing_enabled_is_400(self, auth_client, user):
        shop = ShopFactory(pro_plus=True, claimed_by=user)
        url = reverse("api:billing:shop-discount", args=[shop.pk])

        response = auth_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestMemberDiscountShopsView:
    url = "/api/v1/billing/shops/member-discounts/"

    def test_public_listing(self, api_client, db):
        offering = ShopFactory(
            pro_plus=True,
            name="Aeropress Alley",
            discount_enabled=True,
        )
        ShopFactory(pro_plus=True, discount_enabled=False)
        ShopFactory(pro=True, discount_enabled=True)
        ShopFactory(
            pro_plus=True,
            discount_enabled=True,
            subscription_status=SubscriptionStatus.CANCELED,
        )

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data == [
            {
                "id": offering.pk,
                "name": "Aeropress Alley",
                "tier": ShopTier.PRO_PLUS,
                "discountActive": True,
            },
        ]


class TestMembershipView:
    url = "/api/v1/billing/membership/"

    def test_defaults_without_membership(self, auth_client, user):
        response = auth_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["tier"] == "none"
        assert response.data["subscriptionStatus"] == SubscriptionStatus.INACTIVE
        assert response.data["isActiveMember"] is False
        assert not DripClubMembership.objects.filter(user=user).exists()

    def test_active_member(self, auth_client, user):
        membership = DripClubMembershipFactory(user=user, active=True)

        response = auth_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["tier"] == "active"
        assert response.data["isActiveMember"] is True
        assert response.data["stripeCustomerId"] == membership.stripe_customer_id


class TestStripeWebhookView:
    url = "/stripe/webhook/"

    @pytest.fixture(autouse=True)
    def _webhook_secret(self, settings):
        settings.STRIPE_WEBHOOK_SECRET = "whsec_view_test"

    def post_event(
        self,
        client,
        event_type,
        obj,
        *,
        secret="whsec_view_test",
        event_id=None,
    ):
        body, signature = payloads.signed_event(
            event_type,
            obj,
            secret,
            event_id=event_id,
        )
        return client.post(
            self.url,
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=signature,
        )

    def test_applies_event(self, api_client, db):
        shop = ShopFactory()

        response = self.post_event(
            api_client,
            "checkout.session.completed",
            payloads.checkout_session(metadata=payloads.shop_metadata(shop)),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"received": True}
        shop.refresh_from_db()
        assert shop.tier == ShopTier.PRO

    def test_duplicate_delivery(self, api_client, db):
        obj = {"id": "cus_1"}
        self.post_event(api_client, "customer.created", obj, event_id="evt_view_dup")

        response = self.post_event(
            api_client,
            "customer.created",
            obj,
            event_id="evt_view_dup",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"received": True, "duplicate": True}
        assert ProcessedEvent.objects.filter(pk="evt_view_dup").count() == 1

    def test_bad_signature_is_400(self, api_client, db):
        response = self.post_event(
            api_client,
            "customer.created",
            {"id": "cus_1"},
            secret="whsec_wrong",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data == {
            "error": "Invalid webhook signature.",
            "status": status.HTTP_400_BAD_REQUEST,
        }
        assert not ProcessedEvent.objects.exists()

    def test_missing_signature_is_400(self, api_client, db):
        response = api_client.post(
            self.url,
            data=b"{}",
            content_type="application/json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_does_not_need_token(self, api_client, db):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer not-a-real-token")

        response = self.post_event(api_client, "customer.created", {"id": "cus_1"})

        assert response.status_code == status.HTTP_200_OK

    @patch("dripmap.billing.views.WebhookProcessor")
    def test_unexpected_error_is_500(self, mock_processor_class, api_client, db):
        mock_processor_class.return_value.handle.side_effect = RuntimeError("db down")

        response = self.post_event(api_client, "customer.created", {"id": "cus_1"})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.data["error"] == "Webhook processing failed."
