"""
Idempotency ledger for Stripe webhook events.

Stripe delivers events at least once. Before acting on an event the
processor claims its id here; a second delivery finds the id already claimed
and does nothing.
"""

from __future__ import annotations

import logging

from dripmap.billing.models import ProcessedEvent

logger = logging.getLogger(__name__)


def is_processed(event_id: str) -> bool:
    return ProcessedEvent.objects.filter(event_id=event_id).exists()


def claim_event(
    event_id: str,
    event_type: str,
    *,
    livemode: bool = False,
    payload: dict | None = None,
) -> bool:
    """
    Record an event id as processed.

    Returns True if this call recorded it, False if it was already present.
    Uses the primary key to settle concurrent deliveries: the second insert
    waits for the first transaction and then sees the existing row.

    Commit the claim before applying the event. An attempt that crashes
    part way leaves the id claimed, so it is never applied twice.
    """
    _, created = ProcessedEvent.objects.get_or_create(
        event_id=event_id,
        defaults={
            "event_type": event_type,
            "livemode": livemode,
            "payload": payload or {},
        },
    )
    if not created:
        logger.info("Stripe event %s already processed, skipping", event_id)
    return created
