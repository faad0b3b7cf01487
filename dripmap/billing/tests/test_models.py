"""Tests for the shared subscription columns on billable models."""

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from dripmap.billing.constants import MembershipTier
from dripmap.billing.constants import ShopTier
from dripmap.billing.constants import SubscriptionStatus
from dripmap.billing.tests.factories import DripClubMembershipFactory
from dripmap.billing.tests.factories import ProcessedEventFactory
from dripmap.shops.tests.factories import ShopFactory


class ApplyStatusTests(TestCase):
    """Tests for BillableModel.apply_status."""

    def test_entering_past_due_records_when(self):
        shop = ShopFactory(pro=True)

        fields = shop.apply_status(SubscriptionStatus.PAST_DUE)

        self.assertEqual(shop.subscription_status, SubscriptionStatus.PAST_DUE)
        self.assertIsNotNone(shop.past_due_since)
        self.assertIn("past_due_since", fields)

    def test_repeated_past_due_keeps_first_timestamp(self):
        first = timezone.now() - timedelta(days=3)
        shop = ShopFactory(
            pro=True,
            subscription_status=SubscriptionStatus.PAST_DUE,
            past_due_since=first,
        )

        fields = shop.apply_status(SubscriptionStatus.PAST_DUE)

        self.assertEqual(shop.past_due_since, first)
        self.assertEqual(fields, ["subscription_status"])

    def test_leaving_past_due_clears_timestamp(self):
        shop = ShopFactory(
            pro=True,
            subscription_status=SubscriptionStatus.PAST_DUE,
            past_due_since=timezone.now(),
        )

        shop.apply_status(SubscriptionStatus.ACTIVE)

        self.assertIsNone(shop.past_due_since)

    def test_canceled_clears_pending_cancel_flag(self):
        shop = ShopFactory(pro=True, cancel_at_period_end=True)

        shop.apply_status(SubscriptionStatus.CANCELED)

        self.assertFalse(shop.cancel_at_period_end)

    def test_inactive_clears_subscription_id(self):
        membership = DripClubMembershipFactory(active=True)

        fields = membership.apply_status(SubscriptionStatus.INACTIVE)

        self.assertEqual(membership.stripe_subscription_id, "")
        self.assertIn("stripe_subscription_id", fields)

    def test_other_statuses_keep_subscription_id(self):
        shop = ShopFactory(pro=True)
        sub_id = shop.stripe_subscription_id

        shop.apply_status(SubscriptionStatus.UNPAID)

        self.assertEqual(shop.stripe_subscription_id, sub_id)


class RevertToFreeTests(TestCase):
    def test_shop_reverts_to_free_and_canceled(self):
        shop = ShopFactory(pro_plus=True, cancel_at_period_end=True)

        fields = shop.revert_to_free()
        shop.save(update_fields=fields)
        shop.refresh_from_db()

        self.assertEqual(shop.tier, ShopTier.FREE)
        self.assertEqual(shop.subscription_status, SubscriptionStatus.CANCELED)
        self.assertFalse(shop.cancel_at_period_end)
        self.assertTrue(shop.stripe_customer_id)

    def test_membership_reverts_to_none(self):
        membership = DripClubMembershipFactory(active=True)

        membership.revert_to_free()

        self.assertEqual(membership.tier, MembershipTier.NONE)
        self.assertEqual(membership.subscription_status, SubscriptionStatus.CANCELED)


class StrTests(TestCase):
    def test_str_representations(self):
        shop = ShopFactory(name="Blue Bottle")
        event = ProcessedEventFactory(event_id="evt_1", event_type="invoice.paid")

        self.assertEqual(str(shop), "Blue Bottle")
        self.assertEqual(str(event), "evt_1 (invoice.paid)")
