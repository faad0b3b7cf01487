"""
Tests for feature entitlement checks.

These work on unsaved instances: the checks never touch the database.
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from dripmap.billing.constants import MembershipTier
from dripmap.billing.constants import ShopTier
from dripmap.billing.constants import SubscriptionStatus
from dripmap.billing.entitlements import entitlements_for
from dripmap.billing.entitlements import is_active_member
from dripmap.billing.entitlements import is_pro
from dripmap.billing.entitlements import is_pro_plus
from dripmap.billing.entitlements import needs_attention
from dripmap.billing.entitlements import offers_member_discount
from dripmap.billing.models import DripClubMembership
from dripmap.shops.models import Shop


def make_shop(tier, status, **kwargs):
    return Shop(name="Test", tier=tier, subscription_status=status, **kwargs)


class TestShopTiers:
    @pytest.mark.parametrize(
        ("tier", "status", "pro", "pro_plus"),
        [
            (ShopTier.FREE, SubscriptionStatus.ACTIVE, False, False),
            (ShopTier.PRO, SubscriptionStatus.ACTIVE, True, False),
            (ShopTier.PRO, SubscriptionStatus.TRIALING, True, False),
            (ShopTier.PRO_PLUS, SubscriptionStatus.ACTIVE, True, True),
            (ShopTier.PRO_PLUS, SubscriptionStatus.PAST_DUE, True, True),
            (ShopTier.PRO_PLUS, SubscriptionStatus.UNPAID, False, False),
            (ShopTier.PRO_PLUS, SubscriptionStatus.CANCELED, False, False),
            (ShopTier.PRO, SubscriptionStatus.INACTIVE, False, False),
        ],
    )
    def test_tier_checks(self, tier, status, pro, pro_plus):
        shop = make_shop(tier, status)

        assert is_pro(shop) is pro
        assert is_pro_plus(shop) is pro_plus


class TestGracePeriod:
    def test_past_due_within_grace_keeps_features(self, settings):
        settings.BILLING_PAST_DUE_GRACE_DAYS = 7
        shop = make_shop(
            ShopTier.PRO,
            SubscriptionStatus.PAST_DUE,
            past_due_since=timezone.now() - timedelta(days=2),
        )

        assert is_pro(shop) is True
        assert entitlements_for(shop).in_grace_period is True

    def test_past_due_after_grace_loses_features(self, settings):
        settings.BILLING_PAST_DUE_GRACE_DAYS = 7
        shop = make_shop(
            ShopTier.PRO,
            SubscriptionStatus.PAST_DUE,
            past_due_since=timezone.now() - timedelta(days=8),
        )

        assert is_pro(shop) is False
        entitlements = entitlements_for(shop)
        assert entitlements.entitled is False
        assert entitlements.in_grace_period is False
        assert entitlements.needs_attention is True

    def test_no_grace_limit_keeps_features(self, settings):
        settings.BILLING_PAST_DUE_GRACE_DAYS = None
        shop = make_shop(
            ShopTier.PRO,
            SubscriptionStatus.PAST_DUE,
            past_due_since=timezone.now() - timedelta(days=365),
        )

        assert is_pro(shop) is True


class TestMembership:
    def test_active_member(self):
        membership = DripClubMembership(
            tier=MembershipTier.ACTIVE,
            subscription_status=SubscriptionStatus.TRIALING,
        )

        assert is_active_member(membership) is True

    def test_no_membership(self):
        assert is_active_member(None) is False

    def test_canceled_member(self):
        membership = DripClubMembership(
            tier=MembershipTier.NONE,
            subscription_status=SubscriptionStatus.CANCELED,
        )

        assert is_active_member(membership) is False
        assert entitlements_for(membership).entitled is False


class TestMemberDiscount:
    def test_requires_pro_plus_and_toggle(self):
        shop = make_shop(
            ShopTier.PRO_PLUS,
            SubscriptionStatus.ACTIVE,
            discount_enabled=True,
        )

        assert offers_member_discount(shop) is True

    def test_toggle_off(self):
        shop = make_shop(ShopTier.PRO_PLUS, SubscriptionStatus.ACTIVE)

        assert offers_member_discount(shop) is False

    def test_pro_shop_cannot_offer_discount(self):
        shop = make_shop(ShopTier.PRO, SubscriptionStatus.ACTIVE, discount_enabled=True)

        assert offers_member_discount(shop) is False


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (SubscriptionStatus.PAST_DUE, True),
        (SubscriptionStatus.UNPAID, True),
        (SubscriptionStatus.ACTIVE, False),
        (SubscriptionStatus.CANCELED, False),
    ],
)
def test_needs_attention(status, expected):
    assert needs_attention(make_shop(ShopTier.PRO, status)) is expected
