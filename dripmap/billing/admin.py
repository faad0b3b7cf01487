"""
Django admin configuration for billing models.

Provides admin interfaces for:
- DripClubMembership: view member subscriptions and their Stripe ids
- ProcessedEvent: browse the webhook idempotency ledger
"""

from django.contrib import admin

from dripmap.billing.models import DripClubMembership
from dripmap.billing.models import ProcessedEvent


@admin.register(DripClubMembership)
class DripClubMembershipAdmin(admin.ModelAdmin):
    """Admin for DripClub memberships."""

    list_display = [
        "user",
        "tier",
        "subscription_status",
        "billing_interval",
        "current_period_end",
        "cancel_at_period_end",
    ]
    list_filter = ["tier", "subscription_status", "billing_interval"]
    search_fields = [
        "user__email",
        "user__username",
        "stripe_customer_id",
        "stripe_subscription_id",
    ]
    raw_id_fields = ["user"]
    readonly_fields = ["created", "modified"]

    fieldsets = [
        (None, {"fields": ["user", "tier", "subscription_status"]}),
        (
            "Stripe",
            {"fields": ["stripe_customer_id", "stripe_subscription_id"]},
        ),
        (
            "Billing Period",
            {
                "fields": [
                    "billing_interval",
                    "current_period_start",
                    "current_period_end",
                    "cancel_at_period_end",
                    "canceled_at",
                    "past_due_since",
                ],
            },
        ),
        ("Timestamps", {"fields": ["created", "modified"]}),
    ]


@admin.register(ProcessedEvent)
class ProcessedEventAdmin(admin.ModelAdmin):
    """Read-only view of processed Stripe webhook events."""

    list_display = ["event_id", "event_type", "livemode", "received_at"]
    list_filter = ["event_type", "livemode"]
    search_fields = ["event_id"]
    readonly_fields = ["event_id", "event_type", "livemode", "payload", "received_at"]
    ordering = ["-received_at"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
