"""
Admin configuration for billing app.
"""

from django.contrib import admin

from apps.billing.models import BillingEvent


@admin.register(BillingEvent)
class BillingEventAdmin(admin.ModelAdmin):
    """Read-only view of Stripe webhook deliveries."""

    list_display = [
        "stripe_event_id",
        "event_type",
        "customer_id",
        "status",
        "delivery_count",
        "created_at",
        "processed_at",
    ]
    list_filter = ["status", "event_type"]
    search_fields = ["stripe_event_id", "customer_id"]
    readonly_fields = [
        "stripe_event_id",
        "event_type",
        "customer_id",
        "payload",
        "status",
        "error_message",
        "delivery_count",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False
