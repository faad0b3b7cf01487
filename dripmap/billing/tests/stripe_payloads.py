"""
Builders for Stripe webhook payloads used across the billing tests.

Payloads carry only the fields the billing code reads. ``signed_event``
produces a body and a Stripe-Signature header the same way Stripe does:
HMAC-SHA256 over ``"{timestamp}.{body}"`` with the endpoint secret.
"""

import hashlib
import hmac
import json
import time
from itertools import count
from unittest.mock import MagicMock

PERIOD_START = 1_767_225_600  # 2026-01-01T00:00:00Z
PERIOD_END = 1_769_904_000  # 2026-02-01T00:00:00Z

_event_ids = count(1)


def sign(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def event(event_type: str, obj: dict, event_id: str | None = None) -> dict:
    return {
        "id": event_id or f"evt_test_{next(_event_ids)}",
        "object": "event",
        "type": event_type,
        "livemode": False,
        "created": int(time.time()),
        "data": {"object": obj},
    }


def signed_event(
    event_type: str,
    obj: dict,
    secret: str,
    event_id: str | None = None,
) -> tuple[bytes, str]:
    """Return ``(body, signature_header)`` for a webhook delivery."""
    payload = json.dumps(event(event_type, obj, event_id)).encode()
    return payload, sign(payload, secret)


def shop_metadata(shop, tier="pro", interval="monthly") -> dict:
    return {
        "entity_type": "shop",
        "entity_id": str(shop.pk),
        "tier": tier,
        "billing_interval": interval,
    }


def membership_metadata(user, interval="monthly") -> dict:
    return {
        "entity_type": "membership",
        "entity_id": str(user.pk),
        "tier": "active",
        "billing_interval": interval,
    }


def checkout_session(
    *,
    metadata: dict,
    customer="cus_test",
    subscription="sub_test",
    mode="subscription",
    session_id="cs_test_1",
) -> dict:
    return {
        "id": session_id,
        "object": "checkout.session",
        "mode": mode,
        "customer": customer,
        "subscription": subscription,
        "metadata": metadata,
    }


def subscription(
    *,
    sub_id="sub_test",
    customer="cus_test",
    status="active",
    price="price_shop_pro_monthly",
    metadata: dict | None = None,
    cancel_at_period_end=False,
    period_start=PERIOD_START,
    period_end=PERIOD_END,
) -> dict:
    """Subscription in the newer API shape, with periods on the item."""
    return {
        "id": sub_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "cancel_at_period_end": cancel_at_period_end,
        "metadata": metadata or {},
        "items": {
            "object": "list",
            "data": [
                {
                    "id": "si_test",
                    "price": {"id": price},
                    "current_period_start": period_start,
                    "current_period_end": period_end,
                },
            ],
        },
    }


def invoice(
    *,
    invoice_id="in_test",
    customer="cus_test",
    sub_id="sub_test",
    metadata: dict | None = None,
) -> dict:
    """Invoice in the newer API shape, with the subscription under parent."""
    return {
        "id": invoice_id,
        "object": "invoice",
        "customer": customer,
        "parent": {
            "type": "subscription_details",
            "subscription_details": {
                "subscription": sub_id,
                "metadata": metadata or {},
            },
        },
    }


def stripe_object(data: dict) -> MagicMock:
    """Stand-in for a stripe-python object returned by a mocked API call."""
    obj = MagicMock()
    obj.to_dict.return_value = data
    obj.id = data.get("id")
    return obj
