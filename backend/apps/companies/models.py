"""
Companies models - multi-tenancy foundation.

A Company is a tenant ("environment"). It carries the subscription fields the
authorization resolver consumes and the billing synchronizer writes.
"""

from django.db import models

from apps.access.plans import DEMO_PLAN
from apps.access.resolver import SubscriptionState
from apps.billing.constants import SubscriptionStatus
from apps.core.models import TimestampedModel


class Company(TimestampedModel):
    """
    Tenant record.

    Never hard-deleted: deactivation is subscription_status = canceled.
    Stytch is the source of truth for org identity; Stripe is the source of
    truth for subscription state, synced via webhooks.
    """

    # Stytch sync
    stytch_org_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stytch organization_id, e.g. 'organization-xxx'",
    )

    name = models.CharField(max_length=255)
    slug = models.SlugField(
        max_length=255,
        unique=True,
        help_text="URL-safe identifier, e.g. 'acme-corp'",
    )

    # Subscription
    subscription_status = models.CharField(
        max_length=50,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.TRIALING,
        db_index=True,
    )
    subscription_tier = models.CharField(
        max_length=50,
        default=DEMO_PLAN,
        help_text="Stored plan key. The effective plan may be lower.",
    )
    seat_limit = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Seat limit override. Empty means the plan default applies.",
    )
    current_period_end = models.DateTimeField(null=True, blank=True)
    grace_period_ends_at = models.DateTimeField(null=True, blank=True)
    last_payment_at = models.DateTimeField(null=True, blank=True)
    cancel_at_period_end = models.BooleanField(default=False)
    trial_ends_at = models.DateTimeField(null=True, blank=True)

    # Stripe integration
    stripe_customer_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Stripe customer ID, e.g. 'cus_xxx'",
    )
    stripe_subscription_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Stripe subscription ID, e.g. 'sub_xxx'",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "companies"
        constraints = [
            # One tenant per Stripe customer; unbound companies share ""
            models.UniqueConstraint(
                fields=["stripe_customer_id"],
                condition=~models.Q(stripe_customer_id=""),
                name="unique_company_stripe_customer",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def seat_count(self) -> int:
        """Number of active memberships."""
        return self.memberships.filter(is_active=True).count()

    @property
    def subscription_state(self) -> SubscriptionState:
        return SubscriptionState(
            status=str(self.subscription_status),
            tier=str(self.subscription_tier),
            seat_limit_override=self.seat_limit,
        )
