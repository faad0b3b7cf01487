"""
Shop listing model.

Only the parts of a shop the billing engine reads or writes live here: the
owner who claimed the listing, its subscription tier and the PRO+ member
discount toggle. Reviews, photos and map data belong to the content layer.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from dripmap.billing.constants import EntityType
from dripmap.billing.constants import ShopTier
from dripmap.billing.models import BillableModel


class Shop(BillableModel):
    """
    A coffee shop listing that can carry a PRO or PRO+ subscription.

    Usage:
        if is_pro(shop):
            # show analytics, featured placement, etc.
    """

    entity_type = EntityType.SHOP
    free_tier = ShopTier.FREE

    name = models.CharField(max_length=255)
    claimed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="claimed_shops",
        help_text="Owner who claimed the listing. Only they can manage billing.",
    )
    tier = models.CharField(
        max_length=20,
        choices=ShopTier.choices,
        default=ShopTier.FREE,
    )
    discount_enabled = models.BooleanField(
        default=False,
        help_text="Offer the DripClub member discount. Only honored at PRO+.",
    )

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name
