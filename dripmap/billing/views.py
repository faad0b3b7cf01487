"""
Billing API views.

Views in this module:
- ShopCheckoutView: Stripe Checkout URL for a shop PRO/PRO+ subscription
- MembershipCheckoutView: Stripe Checkout URL for a DripClub membership
- CustomerPortalView: Stripe Customer Portal URL
- CancelSubscriptionView: cancel now or at period end
- ShopSubscriptionView / MembershipView: subscription snapshots
- ShopDiscountView: toggle the DripClub member discount
- MemberDiscountShopsView: public list of discounting shops
- StripeWebhookView: Stripe event receiver

Billing exceptions raised by the services are rendered by the project
exception handler as ``{"error": ..., "status": ...}``.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import inline_serializer
from rest_framework import serializers
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from dripmap.billing.entitlements import offers_member_discount
from dripmap.billing.exceptions import AuthorizationError
from dripmap.billing.exceptions import BillingError
from dripmap.billing.exceptions import NotFoundError
from dripmap.billing.models import DripClubMembership
from dripmap.billing.ownership import verify_shop_ownership
from dripmap.billing.serializers import CancelRequestSerializer
from dripmap.billing.serializers import CancelResponseSerializer
from dripmap.billing.serializers import DiscountRequestSerializer
from dripmap.billing.serializers import MemberDiscountShopSerializer
from dripmap.billing.serializers import MembershipCheckoutRequestSerializer
from dripmap.billing.serializers import MembershipSerializer
from dripmap.billing.serializers import PortalRequestSerializer
from dripmap.billing.serializers import SessionUrlSerializer
from dripmap.billing.serializers import ShopCheckoutRequestSerializer
from dripmap.billing.serializers import ShopSubscriptionSerializer
from dripmap.billing.services import BillingService
from dripmap.billing.services import member_discount_shops
from dripmap.billing.services import set_discount_enabled
from dripmap.billing.webhooks import WebhookProcessor
from dripmap.core.api.exceptions import error_response
from dripmap.shops.models import Shop

logger = logging.getLogger(__name__)

ERROR_RESPONSE = inline_serializer(
    name="BillingErrorResponse",
    fields={
        "error": serializers.CharField(),
        "status": serializers.IntegerField(),
    },
)


class ShopCheckoutView(APIView):
    """Start a Stripe Checkout session for a shop subscription."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Create shop checkout session",
        request=ShopCheckoutRequestSerializer,
        responses={
            200: SessionUrlSerializer,
            400: ERROR_RESPONSE,
            403: ERROR_RESPONSE,
            404: ERROR_RESPONSE,
            409: ERROR_RESPONSE,
            502: ERROR_RESPONSE,
        },
        tags=["Billing"],
    )
    def post(self, request):
        serializer = ShopCheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        url = BillingService().create_shop_checkout(
            request.user,
            shop_id=data["shop_id"],
            tier=data["tier"],
            billing_interval=data["billing_interval"],
            success_url=data["success_url"],
            cancel_url=data["cancel_url"],
            price_id=data.get("price_id") or None,
        )
        return Response({"url": url}, status=status.HTTP_200_OK)


class MembershipCheckoutView(APIView):
    """Start a Stripe Checkout session for a DripClub membership."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Create DripClub membership checkout session",
        request=MembershipCheckoutRequestSerializer,
        responses={
            200: SessionUrlSerializer,
            400: ERROR_RESPONSE,
            403: ERROR_RESPONSE,
            409: ERROR_RESPONSE,
            502: ERROR_RESPONSE,
        },
        tags=["Billing"],
    )
    def post(self, request):
        serializer = MembershipCheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        url = BillingService().create_membership_checkout(
            request.user,
            subject_user_id=data["subject_user_id"],
            billing_interval=data["billing_interval"],
            success_url=data["success_url"],
            cancel_url=data["cancel_url"],
            price_id=data.get("price_id") or None,
        )
        return Response({"url": url}, status=status.HTTP_200_OK)


class CustomerPortalView(APIView):
    """Get a Stripe Customer Portal URL for a billing account the user owns."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Create customer portal session",
        request=PortalRequestSerializer,
        responses={
            200: SessionUrlSerializer,
            400: ERROR_RESPONSE,
            403: ERROR_RESPONSE,
            502: ERROR_RESPONSE,
        },
        tags=["Billing"],
    )
    def post(self, request):
        serializer = PortalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        url = BillingService().create_portal_session(
            request.user,
            customer_id=data["customer_id"],
            return_url=data["return_url"],
        )
        return Response({"url": url}, status=status.HTTP_200_OK)


class CancelSubscriptionView(APIView):
    """Cancel a shop or membership subscription."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Cancel subscription",
        description=(
            "Cancels at the end of the current period by default. Pass "
            "cancelAtPeriodEnd=false to cancel immediately; the shop or "
            "membership then drops to the free tier."
        ),
        request=CancelRequestSerializer,
        responses={
            200: CancelResponseSerializer,
            400: ERROR_RESPONSE,
            403: ERROR_RESPONSE,
            502: ERROR_RESPONSE,
        },
        tags=["Billing"],
    )
    def post(self, request):
        serializer = CancelRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = BillingService().cancel_subscription(
            request.user,
            subscription_id=data["subscription_id"],
            cancel_at_period_end=data["cancel_at_period_end"],
        )
        return Response(
            {
                "success": result.success,
                "cancelAtPeriodEnd": result.cancel_at_period_end,
                "currentPeriodEnd": result.current_period_end,
            },
            status=status.HTTP_200_OK,
        )


class ShopSubscriptionView(APIView):
    """Subscription snapshot for a shop the user owns."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get shop subscription",
        responses={
            200: ShopSubscriptionSerializer,
            403: ERROR_RESPONSE,
            404: ERROR_RESPONSE,
        },
        tags=["Billing"],
    )
    def get(self, request, shop_id: int):
        shop = Shop.objects.filter(pk=shop_id).first()
        if shop is None:
            msg = "Shop not found."
            raise NotFoundError(msg)
        if not verify_shop_ownership(request.user, shop_id):
            msg = "You do not own this shop."
            raise AuthorizationError(msg)
        return Response(ShopSubscriptionSerializer(shop).data)


class ShopDiscountView(APIView):
    """Turn the DripClub member discount on or off."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Set shop member discount",
        request=DiscountRequestSerializer,
        responses={
            200: ShopSubscriptionSerializer,
            400: ERROR_RESPONSE,
            403: ERROR_RESPONSE,
            404: ERROR_RESPONSE,
            409: ERROR_RESPONSE,
        },
        tags=["Billing"],
    )
    def post(self, request, shop_id: int):
        serializer = DiscountRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        shop = set_discount_enabled(
            request.user,
            shop_id,
            enabled=serializer.validated_data["enabled"],
        )
        return Response(ShopSubscriptionSerializer(shop).data)


class MemberDiscountShopsView(APIView):
    """Shops currently offering a discount to DripClub members."""

    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(
        summary="List shops with a member discount",
        responses={200: MemberDiscountShopSerializer(many=True)},
        tags=["Billing"],
    )
    def get(self, request):
        shops = [shop for shop in member_discount_shops() if offers_member_discount(shop)]
        return Response(MemberDiscountShopSerializer(shops, many=True).data)


class MembershipView(APIView):
    """The current user's DripClub membership."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get DripClub membership",
        responses={200: MembershipSerializer},
        tags=["Billing"],
    )
    def get(self, request):
        membership = DripClubMembership.objects.filter(user=request.user).first()
        if membership is None:
            # Never subscribed: report the defaults without creating a row.
            membership = DripClubMembership(user=request.user)
        return Response(MembershipSerializer(membership).data)


class StripeWebhookView(APIView):
    """
    Receive Stripe webhook events.

    Stripe authenticates with the ``Stripe-Signature`` header, so DRF
    authentication and CSRF checks are off. The raw body is passed to the
    processor untouched because the signature covers the exact bytes.

    Responses:
    - 200 once the event is applied or recognized as a duplicate
    - 400 when the signature or payload is invalid (Stripe will not retry)
    - 500 on any other failure (Stripe retries later)
    """

    authentication_classes = []
    permission_classes = []

    @extend_schema(exclude=True)
    def post(self, request):
        signature = request.headers.get("Stripe-Signature")
        try:
            result = WebhookProcessor().handle(request.body, signature)
        except BillingError as e:
            logger.warning("Rejected Stripe webhook: %s", e.message)
            return error_response(e.message, e.status_code)
        except Exception:
            logger.exception("Error processing Stripe webhook")
            return error_response(
                "Webhook processing failed.",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        body = {"received": True}
        if result.duplicate:
            body["duplicate"] = True
        return Response(body, status=status.HTTP_200_OK)
