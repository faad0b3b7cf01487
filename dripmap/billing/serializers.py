"""
Request and response serializers for the billing API.

Field names are camelCase on the wire; ``source`` maps them to the
snake_case keyword arguments the services take.
"""

from rest_framework import serializers

from dripmap.billing.constants import BillingInterval
from dripmap.billing.constants import ShopTier
from dripmap.billing.entitlements import entitlements_for
from dripmap.billing.entitlements import is_active_member
from dripmap.billing.entitlements import is_pro
from dripmap.billing.entitlements import is_pro_plus
from dripmap.billing.entitlements import offers_member_discount
from dripmap.billing.models import DripClubMembership
from dripmap.shops.models import Shop

# Requests
# ------------------------------------------------------------------------------


class ShopCheckoutRequestSerializer(serializers.Serializer):
    shopId = serializers.IntegerField(source="shop_id", min_value=1)  # noqa: N815
    priceId = serializers.CharField(  # noqa: N815
        source="price_id",
        required=False,
        allow_blank=True,
        max_length=255,
    )
    tier = serializers.ChoiceField(
        choices=[
            (ShopTier.PRO, ShopTier.PRO.label),
            (ShopTier.PRO_PLUS, ShopTier.PRO_PLUS.label),
        ],
    )
    billingInterval = serializers.ChoiceField(  # noqa: N815
        source="billing_interval",
        choices=BillingInterval.choices,
    )
    successUrl = serializers.URLField(source="success_url")  # noqa: N815
    cancelUrl = serializers.URLField(source="cancel_url")  # noqa: N815


class MembershipCheckoutRequestSerializer(serializers.Serializer):
    userId = serializers.IntegerField(source="subject_user_id", min_value=1)  # noqa: N815
    priceId = serializers.CharField(  # noqa: N815
        source="price_id",
        required=False,
        allow_blank=True,
        max_length=255,
    )
    billingInterval = serializers.ChoiceField(  # noqa: N815
        source="billing_interval",
        choices=BillingInterval.choices,
    )
    successUrl = serializers.URLField(source="success_url")  # noqa: N815
    cancelUrl = serializers.URLField(source="cancel_url")  # noqa: N815


class PortalRequestSerializer(serializers.Serializer):
    customerId = serializers.CharField(source="customer_id", max_length=255)  # noqa: N815
    returnUrl = serializers.URLField(source="return_url")  # noqa: N815


class CancelRequestSerializer(serializers.Serializer):
    subscriptionId = serializers.CharField(  # noqa: N815
        source="subscription_id",
        max_length=255,
    )
    cancelAtPeriodEnd = serializers.BooleanField(  # noqa: N815
        source="cancel_at_period_end",
        required=False,
        default=True,
    )


class DiscountRequestSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()


# Responses
# ------------------------------------------------------------------------------


class SessionUrlSerializer(serializers.Serializer):
    url = serializers.URLField()


class CancelResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    cancelAtPeriodEnd = serializers.BooleanField()  # noqa: N815
    currentPeriodEnd = serializers.DateTimeField(allow_null=True)  # noqa: N815


class EntitlementsSerializer(serializers.Serializer):
    entitled = serializers.BooleanField()
    inGracePeriod = serializers.BooleanField(source="in_grace_period")  # noqa: N815
    needsAttention = serializers.BooleanField(source="needs_attention")  # noqa: N815


class ShopSubscriptionSerializer(serializers.ModelSerializer):
    """Subscription snapshot for a shop owner."""

    shopId = serializers.IntegerField(source="id", read_only=True)  # noqa: N815
    subscriptionStatus = serializers.CharField(source="subscription_status")  # noqa: N815
    stripeCustomerId = serializers.CharField(source="stripe_customer_id")  # noqa: N815
    stripeSubscriptionId = serializers.CharField(  # noqa: N815
        source="stripe_subscription_id",
    )
    currentPeriodEnd = serializers.DateTimeField(source="current_period_end")  # noqa: N815
    cancelAtPeriodEnd = serializers.BooleanField(source="cancel_at_period_end")  # noqa: N815
    discountEnabled = serializers.BooleanField(source="discount_enabled")  # noqa: N815
    isPro = serializers.SerializerMethodField()  # noqa: N815
    isProPlus = serializers.SerializerMethodField()  # noqa: N815
    entitlements = serializers.SerializerMethodField()

    class Meta:
        model = Shop
        fields = [
            "shopId",
            "name",
            "tier",
            "subscriptionStatus",
            "stripeCustomerId",
            "stripeSubscriptionId",
            "currentPeriodEnd",
            "cancelAtPeriodEnd",
            "discountEnabled",
            "isPro",
            "isProPlus",
            "entitlements",
        ]
        read_only_fields = fields

    def get_isPro(self, obj) -> bool:  # noqa: N802
        return is_pro(obj)

    def get_isProPlus(self, obj) -> bool:  # noqa: N802
        return is_pro_plus(obj)

    def get_entitlements(self, obj) -> dict:
        return EntitlementsSerializer(entitlements_for(obj)).data


class MembershipSerializer(serializers.ModelSerializer):
    """DripClub membership snapshot for the member."""

    subscriptionStatus = serializers.CharField(source="subscription_status")  # noqa: N815
    billingInterval = serializers.CharField(source="billing_interval")  # noqa: N815
    stripeCustomerId = serializers.CharField(source="stripe_customer_id")  # noqa: N815
    stripeSubscriptionId = serializers.CharField(  # noqa: N815
        source="stripe_subscription_id",
    )
    currentPeriodStart = serializers.DateTimeField(source="current_period_start")  # noqa: N815
    currentPeriodEnd = serializers.DateTimeField(source="current_period_end")  # noqa: N815
    cancelAtPeriodEnd = serializers.BooleanField(source="cancel_at_period_end")  # noqa: N815
    isActiveMember = serializers.SerializerMethodField()  # noqa: N815
    entitlements = serializers.SerializerMethodField()

    class Meta:
        model = DripClubMembership
        fields = [
            "tier",
            "subscriptionStatus",
            "billingInterval",
            "stripeCustomerId",
            "stripeSubscriptionId",
            "currentPeriodStart",
            "currentPeriodEnd",
            "cancelAtPeriodEnd",
            "isActiveMember",
            "entitlements",
        ]
        read_only_fields = fields

    def get_isActiveMember(self, obj) -> bool:  # noqa: N802
        return is_active_member(obj)

    def get_entitlements(self, obj) -> dict:
        return EntitlementsSerializer(entitlements_for(obj)).data


class MemberDiscountShopSerializer(serializers.ModelSerializer):
    """Public listing entry for shops offering the DripClub discount."""

    discountActive = serializers.SerializerMethodField()  # noqa: N815

    class Meta:
        model = Shop
        fields = ["id", "name", "tier", "discountActive"]
        read_only_fields = fields

    def get_discountActive(self, obj) -> bool:  # noqa: N802
        return offers_member_discount(obj)
