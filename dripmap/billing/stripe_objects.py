"""
Typed views of the Stripe payloads the billing engine reads.

Stripe objects arrive as loosely-typed JSON. They are validated into these
pydantic models at the boundary so the rest of the code works with known
fields. Every field is optional unless the object is meaningless without it,
and unknown fields are ignored: Stripe adds fields across API versions.

Period boundaries moved from the subscription to its items in newer Stripe
API versions, so both locations are read.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from dripmap.billing.constants import LEGACY_MEMBERSHIP_CHECKOUT_TYPE
from dripmap.billing.constants import LEGACY_SHOP_CHECKOUT_TYPE
from dripmap.billing.constants import EntityType


def from_timestamp(value: int | None) -> datetime | None:
    """Convert a Stripe epoch-seconds timestamp to an aware datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=UTC)


@dataclass(frozen=True)
class EntityRef:
    """
    Reference to a billable entity taken from checkout metadata.

    For shops ``entity_id`` is the shop id; for memberships it is the id of
    the member (user), since a membership row may not exist yet.
    """

    entity_type: str
    entity_id: int


def _parse_id(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


class BillingMetadata(BaseModel):
    """
    Metadata attached to checkout sessions and subscriptions.

    Current checkouts write ``entity_type``/``entity_id``. Earlier releases
    wrote ``type`` plus ``shop_id`` or ``user_id``; both shapes are read.
    """

    model_config = ConfigDict(extra="ignore")

    entity_type: str | None = None
    entity_id: str | None = None
    tier: str | None = None
    billing_interval: str | None = None

    type: str | None = None
    shop_id: str | None = None
    user_id: str | None = None

    def entity_ref(self) -> EntityRef | None:
        """Return the referenced entity, or None if metadata doesn't name one."""
        if self.entity_type in EntityType.values:
            entity_id = _parse_id(self.entity_id)
            if entity_id is not None:
                return EntityRef(self.entity_type, entity_id)

        shop_id = _parse_id(self.shop_id)
        if shop_id is not None and self.type in (None, LEGACY_SHOP_CHECKOUT_TYPE):
            return EntityRef(EntityType.SHOP, shop_id)

        user_id = _parse_id(self.user_id)
        if user_id is not None and self.type in (
            None,
            LEGACY_MEMBERSHIP_CHECKOUT_TYPE,
        ):
            return EntityRef(EntityType.MEMBERSHIP, user_id)

        return None


class StripePrice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str


class SubscriptionItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    price: StripePrice | None = None
    current_period_start: int | None = None
    current_period_end: int | None = None


class SubscriptionItemList(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: list[SubscriptionItem] = Field(default_factory=list)


class StripeSubscription(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    customer: str | None = None
    status: str = ""
    cancel_at_period_end: bool = False
    current_period_start: int | None = None
    current_period_end: int | None = None
    metadata: BillingMetadata = Field(default_factory=BillingMetadata)
    items: SubscriptionItemList = Field(default_factory=SubscriptionItemList)

    @classmethod
    def from_stripe(cls, stripe_sub) -> StripeSubscription:
        """Validate a ``stripe.Subscription`` returned by the API client."""
        return cls.model_validate(stripe_sub.to_dict())

    @property
    def first_item(self) -> SubscriptionItem | None:
        return self.items.data[0] if self.items.data else None

    @property
    def price_id(self) -> str | None:
        item = self.first_item
        if item and item.price:
            return item.price.id
        return None

    @property
    def period_start(self) -> datetime | None:
        value = self.current_period_start
        if value is None and self.first_item:
            value = self.first_item.current_period_start
        return from_timestamp(value)

    @property
    def period_end(self) -> datetime | None:
        value = self.current_period_end
        if value is None and self.first_item:
            value = self.first_item.current_period_end
        return from_timestamp(value)


class StripeCheckoutSession(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    mode: str | None = None
    customer: str | None = None
    subscription: str | None = None
    metadata: BillingMetadata = Field(default_factory=BillingMetadata)


class InvoiceSubscriptionDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    subscription: str | None = None
    metadata: BillingMetadata | None = None


class InvoiceParent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    subscription_details: InvoiceSubscriptionDetails | None = None


class StripeInvoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    customer: str | None = None
    subscription: str | None = None
    subscription_details: InvoiceSubscriptionDetails | None = None
    parent: InvoiceParent | None = None

    def _details(self) -> InvoiceSubscriptionDetails | None:
        if self.parent and self.parent.subscription_details:
            return self.parent.subscription_details
        return self.subscription_details

    @property
    def subscription_id(self) -> str | None:
        if self.subscription:
            return self.subscription
        details = self._details()
        return details.subscription if details else None

    @property
    def metadata(self) -> BillingMetadata:
        details = self._details()
        if details and details.metadata:
            return details.metadata
        return BillingMetadata()


class StripeEventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: dict[str, Any] = Field(default_factory=dict)


class StripeEvent(BaseModel):
    """The event envelope. ``data.object`` is parsed per event type."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    livemode: bool = False
    created: int | None = None
    data: StripeEventData = Field(default_factory=StripeEventData)
