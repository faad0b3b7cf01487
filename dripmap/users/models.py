from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import CharField
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Default custom user model for DripMap.

    Besides identity, the user row doubles as the profile record the billing
    code reads: a Stripe customer created for a DripClub membership is stored
    here as well, so a later membership checkout can reuse it.
    """

    # First and last name do not cover name patterns around the globe
    name = CharField(_("Name of User"), blank=True, max_length=255)

    stripe_customer_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Stripe Customer ID (cus_xxx) on the user's profile.",
    )

    def __str__(self) -> str:
        return self.username
