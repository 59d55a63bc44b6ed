"""
Billing API schemas - request/response types for billing endpoints.
"""

from datetime import datetime

from ninja import Schema


class CheckoutSessionRequest(Schema):
    """Request to create a Stripe Checkout session."""

    plan_key: str
    success_url: str
    cancel_url: str


class CheckoutSessionResponse(Schema):
    """Response with Checkout session URL."""

    checkout_url: str


class PortalSessionRequest(Schema):
    """Request to create a Stripe Customer Portal session."""

    return_url: str


class PortalSessionResponse(Schema):
    """Response with Customer Portal URL."""

    portal_url: str


class SubscriptionResponse(Schema):
    """Subscription summary of the current company."""

    status: str  # 'active', 'trialing', 'past_due', 'canceled', ...
    plan_key: str  # stored tier
    plan_label: str
    effective_plan_key: str  # 'demo' while the subscription is not active
    suspension_level: str  # 'none', 'read_only', 'blocked'
    seat_limit: int
    seat_count: int
    current_period_end: datetime | None
    grace_period_ends_at: datetime | None
    trial_ends_at: datetime | None
    cancel_at_period_end: bool
    has_billing_account: bool
