"""
Stripe webhook handler.

Handles incoming webhooks from Stripe and reconciles company subscription
state. This is a separate view (not Django Ninja) for raw request handling
needed to verify Stripe signatures.

Every failure answers 400 with ``{"error": ...}`` so Stripe retries the
delivery; success answers 200 with the event type and id.
"""

import json

import stripe
from django.db import transaction
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from apps.billing.events import decode_event
from apps.billing.exceptions import BillingNotConfiguredError
from apps.billing.models import BillingEvent
from apps.billing.services import apply_event, mark_delivery, record_delivery
from apps.billing.stripe_client import verify_webhook
from apps.core.logging import get_logger

logger = get_logger(__name__)


def _error(message: str) -> JsonResponse:
    return JsonResponse({"error": message}, status=400)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Handle Stripe webhook events.

    Verifies the signature before reading the payload, then decodes the
    event and applies it in one transaction.
    """
    payload = request.body
    sig_header = request.headers.get("Stripe-Signature")

    if not sig_header:
        logger.warning("stripe_webhook_missing_signature")
        return _error("Missing Stripe-Signature header")

    try:
        verify_webhook(payload, sig_header)
    except BillingNotConfiguredError:
        logger.error("stripe_webhook_secret_not_configured")
        return _error("Webhook secret not configured")
    except ValueError as e:
        logger.warning("stripe_webhook_invalid_payload", error=str(e))
        return _error("Invalid payload")
    except stripe.SignatureVerificationError as e:
        logger.warning("stripe_webhook_invalid_signature", error=str(e))
        return _error("Invalid signature")

    # Signature verified; work on the plain JSON document from here on
    event = json.loads(payload)
    event_id = event.get("id") or ""
    event_type = event.get("type") or ""
    if not event_id:
        return _error("Event has no id")

    logger.info("stripe_webhook_received", event_type=event_type, event_id=event_id)

    record = None
    try:
        record = record_delivery(event_id, event_type, event)
        decoded = decode_event(event)
        with transaction.atomic():
            handled = apply_event(decoded)
    except Exception as e:
        logger.exception("stripe_webhook_handler_error", event_type=event_type, event_id=event_id)
        if record is not None:
            mark_delivery(record, BillingEvent.Status.FAILED, error_message=str(e))
        return _error(str(e))

    mark_delivery(
        record,
        BillingEvent.Status.PROCESSED if handled else BillingEvent.Status.IGNORED,
        customer_id=getattr(decoded, "customer_id", ""),
    )
    return JsonResponse({"received": True, "event_type": event_type, "event_id": event_id})
