"""
Stripe price catalog.

Maps Stripe Price IDs (price_xxx) to what they sell: which kind of entity,
which tier and which billing interval. The IDs come from settings (one
environment variable per price) so test and live mode can use different
Stripe accounts without code changes.

Display prices, for reference (USD cents, configured in Stripe):

    Shop PRO        2888 / month    29888 / year
    Shop PRO+       4888 / month    49888 / year
    DripClub         888 / month     8888 / year
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from dripmap.billing.constants import BillingInterval
from dripmap.billing.constants import EntityType
from dripmap.billing.constants import ShopTier


@dataclass(frozen=True)
class PriceMapping:
    """What a Stripe price sells. ``tier`` is None for DripClub prices."""

    entity_type: str
    tier: str | None
    billing_interval: str


# Setting name → mapping. Settings left empty are skipped.
PRICE_SETTINGS = (
    (
        "STRIPE_PRICE_SHOP_PRO_MONTHLY",
        PriceMapping(EntityType.SHOP, ShopTier.PRO, BillingInterval.MONTHLY),
    ),
    (
        "STRIPE_PRICE_SHOP_PRO_ANNUAL",
        PriceMapping(EntityType.SHOP, ShopTier.PRO, BillingInterval.ANNUAL),
    ),
    (
        "STRIPE_PRICE_SHOP_PRO_PLUS_MONTHLY",
        PriceMapping(EntityType.SHOP, ShopTier.PRO_PLUS, BillingInterval.MONTHLY),
    ),
    (
        "STRIPE_PRICE_SHOP_PRO_PLUS_ANNUAL",
        PriceMapping(EntityType.SHOP, ShopTier.PRO_PLUS, BillingInterval.ANNUAL),
    ),
    (
        "STRIPE_PRICE_DRIPCLUB_MONTHLY",
        PriceMapping(EntityType.MEMBERSHIP, None, BillingInterval.MONTHLY),
    ),
    (
        "STRIPE_PRICE_DRIPCLUB_ANNUAL",
        PriceMapping(EntityType.MEMBERSHIP, None, BillingInterval.ANNUAL),
    ),
)


def get_catalog() -> dict[str, PriceMapping]:
    """Build the price id → mapping table from the current settings."""
    catalog = {}
    for setting_name, mapping in PRICE_SETTINGS:
        price_id = getattr(settings, setting_name, "")
        if price_id:
            catalog[price_id] = mapping
    return catalog


def resolve(price_id: str | None) -> PriceMapping | None:
    """Look up a Stripe price id. Returns None for unknown or empty ids."""
    if not price_id:
        return None
    return get_catalog().get(price_id)


def price_id_for(
    entity_type: str,
    tier: str | None,
    billing_interval: str,
) -> str | None:
    """Reverse lookup: the configured price id for a product, or None."""
    wanted = PriceMapping(entity_type, tier, billing_interval)
    for price_id, mapping in get_catalog().items():
        if mapping == wanted:
            return price_id
    return None
