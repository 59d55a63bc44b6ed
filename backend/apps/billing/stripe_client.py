"""
Stripe client configuration.

Outbound calls go through ``get_stripe()``; inbound webhooks are verified
with ``verify_webhook()``. Both refuse to run without their secret.
"""

from types import ModuleType

import stripe
from django.conf import settings

from apps.billing.exceptions import BillingNotConfiguredError

STRIPE_API_VERSION = "2025-06-30.basil"

# Safe because the SDK sends idempotency keys on retried POSTs
STRIPE_MAX_NETWORK_RETRIES = 2


def configure_stripe() -> None:
    """
    Point the Stripe module at our account.

    Raises:
        BillingNotConfiguredError: STRIPE_SECRET_KEY is empty
    """
    if not settings.STRIPE_SECRET_KEY:
        raise BillingNotConfiguredError("STRIPE_SECRET_KEY is not set")
    stripe.api_key = settings.STRIPE_SECRET_KEY
    stripe.api_version = STRIPE_API_VERSION
    stripe.max_network_retries = STRIPE_MAX_NETWORK_RETRIES


def get_stripe() -> ModuleType:
    """Configured Stripe module for outbound API calls."""
    configure_stripe()
    return stripe


def verify_webhook(payload: bytes, signature: str) -> None:
    """
    Check a webhook body against its Stripe-Signature header.

    Needs only the webhook secret, not the API key.

    Raises:
        BillingNotConfiguredError: STRIPE_WEBHOOK_SECRET is empty
        ValueError: Body is not valid JSON
        stripe.SignatureVerificationError: Signature or timestamp check failed
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise BillingNotConfiguredError("STRIPE_WEBHOOK_SECRET is not set")
    stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
