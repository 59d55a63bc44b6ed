"""
Exceptions for billing app.

Raised by the synchronizer and surfaced by the webhook view as 400
responses, so Stripe retries the delivery.
"""


class BillingError(Exception):
    """Base exception for billing errors."""

    pass


class InvalidEventError(BillingError):
    """A recognised event kind is missing fields the handler needs."""

    pass


class CompanyNotFoundError(BillingError):
    """No company is bound to the event's Stripe customer."""

    def __init__(self, customer_id: str):
        super().__init__(f"No company found for Stripe customer {customer_id}")
        self.customer_id = customer_id


class BillingNotConfiguredError(BillingError):
    """Stripe credentials or a plan price are missing from settings."""

    pass
