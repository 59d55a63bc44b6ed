"""
Billing models - Stripe event log.

Subscription state itself lives on Company; this app only records the
deliveries it reconciled.
"""

from django.db import models

from apps.core.models import TimestampedModel


class BillingEvent(TimestampedModel):
    """
    Audit record of a Stripe webhook delivery.

    One row per Stripe event id, refreshed on every redelivery. This is not a
    deduplication table: redelivered events are applied again, which is safe
    because every reconciliation is a full-state overwrite.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSED = "processed", "Processed"
        IGNORED = "ignored", "Ignored"
        FAILED = "failed", "Failed"

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stripe event ID, e.g. 'evt_xxx'",
    )
    event_type = models.CharField(max_length=255, db_index=True)
    customer_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Stripe customer the event refers to, if any",
    )
    payload = models.JSONField(default=dict)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    error_message = models.TextField(blank=True)
    delivery_count = models.PositiveIntegerField(default=1)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.event_type} ({self.stripe_event_id}) - {self.status}"
