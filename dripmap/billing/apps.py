from django.apps import AppConfig


class BillingConfig(AppConfig):
    """
    Django app configuration for the billing app.

    Handles Stripe checkout, the customer portal, cancellation and the
    webhook processor that keeps shop tiers and DripClub memberships in sync.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "dripmap.billing"
