from django.contrib import admin
from django.contrib.auth import admin as auth_admin
from django.utils.translation import gettext_lazy as _

from dripmap.billing.models import DripClubMembership
from dripmap.users.models import User


class DripClubMembershipInline(admin.StackedInline):
    model = DripClubMembership
    can_delete = False
    extra = 0
    fields = ["tier", "subscription_status", "billing_interval", "current_period_end"]
    readonly_fields = fields


@admin.register(User)
class UserAdmin(auth_admin.UserAdmin):
    fieldsets = (
        *auth_admin.UserAdmin.fieldsets[:1],
        (_("Profile"), {"fields": ("name", "email", "stripe_customer_id")}),
        *auth_admin.UserAdmin.fieldsets[2:],
    )
    inlines = [DripClubMembershipInline]
    list_display = ["username", "name", "email", "stripe_customer_id", "is_staff"]
    search_fields = ["username", "name", "email", "stripe_customer_id"]
