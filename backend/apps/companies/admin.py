"""
Admin configuration for companies app.
"""

from django.contrib import admin

from apps.companies.models import Company
from apps.companies.seats import get_company_authorization


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    """Admin for tenants. Subscription fields are owned by Stripe sync."""

    list_display = [
        "name",
        "slug",
        "subscription_tier",
        "subscription_status",
        "effective_plan",
        "seat_limit",
        "created_at",
    ]
    list_filter = ["subscription_status", "subscription_tier"]
    search_fields = ["name", "slug", "stytch_org_id", "stripe_customer_id"]
    readonly_fields = [
        "stytch_org_id",
        "stripe_customer_id",
        "stripe_subscription_id",
        "current_period_end",
        "grace_period_ends_at",
        "trial_ends_at",
        "last_payment_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    @admin.display(description="Effective plan")
    def effective_plan(self, obj: Company) -> str:
        return get_company_authorization(obj).effective_plan_key
