from django.contrib import admin

from dripmap.shops.models import Shop


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    """Admin for shop listings and their subscription mirror."""

    list_display = [
        "name",
        "claimed_by",
        "tier",
        "subscription_status",
        "current_period_end",
        "cancel_at_period_end",
    ]
    list_filter = ["tier", "subscription_status", "discount_enabled"]
    search_fields = ["name", "stripe_customer_id", "stripe_subscription_id"]
    raw_id_fields = ["claimed_by"]
    readonly_fields = ["created", "modified"]

    fieldsets = [
        (None, {"fields": ["name", "claimed_by"]}),
        (
            "Subscription",
            {
                "fields": [
                    "tier",
                    "subscription_status",
                    "discount_enabled",
                    "current_period_end",
                    "cancel_at_period_end",
                    "canceled_at",
                    "past_due_since",
                ],
            },
        ),
        (
            "Stripe",
            {"fields": ["stripe_customer_id", "stripe_subscription_id"]},
        ),
        ("Timestamps", {"fields": ["created", "modified"]}),
    ]
