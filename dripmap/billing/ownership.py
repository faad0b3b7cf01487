"""
Ownership checks for billing operations.

Stripe customer and subscription ids live in two tables (shops and DripClub
memberships) that share one namespace. ``resolve_owner`` is the single place
that looks an id up across both tables and returns a tagged result; every
other check here, and the webhook fallback lookup, goes through it.

Rules:
- A shop's billing is managed by the user in ``claimed_by``. Superusers may
  also act on any shop, for support.
- A membership's billing is managed only by its member.

None of these functions raise on a miss. Callers turn False or ``NotFound``
into an AuthorizationError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dripmap.billing.models import DripClubMembership
from dripmap.shops.models import Shop

if TYPE_CHECKING:
    from dripmap.users.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShopOwner:
    entity: Shop


@dataclass(frozen=True)
class MembershipOwner:
    entity: DripClubMembership


@dataclass(frozen=True)
class NotFound:
    pass


OwnerRef = ShopOwner | MembershipOwner | NotFound


def _is_admin(user: User) -> bool:
    return bool(getattr(user, "is_superuser", False))


def resolve_owner(
    *,
    customer_id: str | None = None,
    subscription_id: str | None = None,
    user: User | None = None,
) -> OwnerRef:
    """
    Find the shop or membership a Stripe customer or subscription belongs to.

    Exactly one of ``customer_id`` / ``subscription_id`` must be given. When
    ``user`` is passed, only entities that user may manage are considered.

    Usage:
        ref = resolve_owner(subscription_id="sub_123", user=request.user)
        if isinstance(ref, NotFound):
            raise AuthorizationError
    """
    if bool(customer_id) == bool(subscription_id):
        msg = "Pass exactly one of customer_id or subscription_id"
        raise ValueError(msg)

    if customer_id:
        lookup = {"stripe_customer_id": customer_id}
    else:
        lookup = {"stripe_subscription_id": subscription_id}

    shops = Shop.objects.filter(**lookup)
    if user is not None and not _is_admin(user):
        shops = shops.filter(claimed_by=user)
    shop = shops.first()
    if shop is not None:
        return ShopOwner(shop)

    memberships = DripClubMembership.objects.filter(**lookup)
    if user is not None:
        memberships = memberships.filter(user=user)
    membership = memberships.first()
    if membership is not None:
        return MembershipOwner(membership)

    return NotFound()


def verify_shop_ownership(user: User, shop_id: int) -> bool:
    """True if the shop exists and ``user`` may manage its billing."""
    shop = Shop.objects.filter(pk=shop_id).only("claimed_by").first()
    if shop is None:
        return False
    if _is_admin(user):
        return True
    return shop.claimed_by_id is not None and shop.claimed_by_id == user.pk


def verify_membership_subject(user: User, subject_user_id: int) -> bool:
    """True if ``user`` is the member the membership checkout is for."""
    return user.pk is not None and user.pk == subject_user_id


def verify_customer_ownership(user: User, customer_id: str) -> bool:
    """True if ``user`` owns the shop or membership behind a Stripe customer."""
    if not customer_id:
        return False
    ref = resolve_owner(customer_id=customer_id, user=user)
    if isinstance(ref, NotFound):
        logger.warning(
            "User %s has no shop or membership with customer %s",
            user.pk,
            customer_id,
        )
        return False
    return True


def verify_subscription_ownership(user: User, subscription_id: str) -> OwnerRef:
    """Return the owned entity behind a Stripe subscription, or NotFound."""
    if not subscription_id:
        return NotFound()
    return resolve_owner(subscription_id=subscription_id, user=user)
