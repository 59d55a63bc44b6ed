"""
Billing constants.

Subscription lifecycle states as persisted on the company, plus the
Stripe statuses the billing synchronizer folds onto them.
"""

from django.db import models


class SubscriptionStatus(models.TextChoices):
    """
    Subscription status of a company.

    Only ACTIVE and TRIALING unlock the stored plan; every other state
    degrades the effective plan to demo.
    """

    ACTIVE = "active", "Active"
    TRIALING = "trialing", "Trialing"
    PAST_DUE = "past_due", "Past Due"
    CANCELED = "canceled", "Canceled"
    INCOMPLETE = "incomplete", "Incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired", "Incomplete Expired"
    UNPAID = "unpaid", "Unpaid"


# Stripe statuses without a local counterpart
STRIPE_STATUS_ALIASES = {
    "paused": SubscriptionStatus.PAST_DUE,
}
