"""
Stripe event decoding.

Turns a verified Stripe event (plain dict) into one of a closed set of
frozen dataclasses. Event kinds this system does not act on decode to
``UnknownEvent`` so the handler can acknowledge them explicitly.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from apps.billing.exceptions import InvalidEventError


@dataclass(frozen=True)
class DecodedEvent:
    event_id: str
    event_type: str


@dataclass(frozen=True)
class SubscriptionChanged(DecodedEvent):
    """customer.subscription.created / customer.subscription.updated"""

    customer_id: str
    subscription_id: str
    status: str
    plan_key: str | None = None
    price_id: str | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False
    trial_end: datetime | None = None


@dataclass(frozen=True)
class SubscriptionDeleted(DecodedEvent):
    customer_id: str
    subscription_id: str


@dataclass(frozen=True)
class SubscriptionPaused(DecodedEvent):
    customer_id: str
    subscription_id: str


@dataclass(frozen=True)
class SubscriptionResumed(DecodedEvent):
    customer_id: str
    subscription_id: str


@dataclass(frozen=True)
class PaymentFailed(DecodedEvent):
    customer_id: str
    invoice_id: str


@dataclass(frozen=True)
class PaymentSucceeded(DecodedEvent):
    customer_id: str
    invoice_id: str


@dataclass(frozen=True)
class CustomerDeleted(DecodedEvent):
    customer_id: str


@dataclass(frozen=True)
class CheckoutCompleted(DecodedEvent):
    """checkout.session.completed - binds a Stripe customer to a company."""

    customer_id: str
    company_id: str | None = None
    subscription_id: str | None = None


@dataclass(frozen=True)
class UnknownEvent(DecodedEvent):
    """An event kind outside the allowlist."""


StripeEvent = (
    SubscriptionChanged
    | SubscriptionDeleted
    | SubscriptionPaused
    | SubscriptionResumed
    | PaymentFailed
    | PaymentSucceeded
    | CustomerDeleted
    | CheckoutCompleted
    | UnknownEvent
)


def _ref_id(value: Any) -> str:
    """Stripe references are either an id string or an expanded object."""
    if isinstance(value, dict):
        value = value.get("id")
    return value or ""


def _require(value: str, field: str, event_type: str) -> str:
    if not value:
        raise InvalidEventError(f"{event_type} is missing {field}")
    return value


def _timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)


def _first_item(subscription: dict) -> dict:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _period_end(subscription: dict) -> datetime | None:
    # Newer API versions moved the period onto the subscription item
    current_period = subscription.get("current_period") or {}
    return _timestamp(
        current_period.get("end")
        or subscription.get("current_period_end")
        or _first_item(subscription).get("current_period_end")
    )


def _decode_subscription(event_id: str, event_type: str, obj: dict) -> StripeEvent:
    customer_id = _require(_ref_id(obj.get("customer")), "customer", event_type)
    subscription_id = obj.get("id") or ""

    match event_type:
        case "customer.subscription.created" | "customer.subscription.updated":
            price = _first_item(obj).get("price") or {}
            metadata = obj.get("metadata") or {}
            return SubscriptionChanged(
                event_id=event_id,
                event_type=event_type,
                customer_id=customer_id,
                subscription_id=_require(subscription_id, "id", event_type),
                status=_require(obj.get("status") or "", "status", event_type),
                plan_key=metadata.get("plan_key") or None,
                price_id=price.get("id") or None,
                current_period_end=_period_end(obj),
                cancel_at_period_end=bool(obj.get("cancel_at_period_end", False)),
                trial_end=_timestamp(obj.get("trial_end")),
            )
        case "customer.subscription.deleted":
            return SubscriptionDeleted(event_id, event_type, customer_id, subscription_id)
        case "customer.subscription.paused":
            return SubscriptionPaused(event_id, event_type, customer_id, subscription_id)
        case _:
            return SubscriptionResumed(event_id, event_type, customer_id, subscription_id)


def decode_event(event: dict) -> StripeEvent:
    """
    Decode a verified Stripe event.

    Args:
        event: Event as a plain dict ({"id", "type", "data": {"object": ...}}).

    Returns:
        The matching event variant, or UnknownEvent for kinds outside the allowlist.

    Raises:
        InvalidEventError: A known kind lacks the fields needed to reconcile it.
    """
    event_id = event.get("id") or ""
    event_type = event.get("type") or ""
    obj = (event.get("data") or {}).get("object") or {}

    match event_type:
        case (
            "customer.subscription.created"
            | "customer.subscription.updated"
            | "customer.subscription.deleted"
            | "customer.subscription.paused"
            | "customer.subscription.resumed"
        ):
            return _decode_subscription(event_id, event_type, obj)

        case "invoice.payment_failed":
            customer_id = _require(_ref_id(obj.get("customer")), "customer", event_type)
            return PaymentFailed(event_id, event_type, customer_id, obj.get("id") or "")

        case "invoice.payment_succeeded" | "invoice.paid":
            customer_id = _require(_ref_id(obj.get("customer")), "customer", event_type)
            return PaymentSucceeded(event_id, event_type, customer_id, obj.get("id") or "")

        case "customer.deleted":
            customer_id = _require(obj.get("id") or "", "id", event_type)
            return CustomerDeleted(event_id, event_type, customer_id)

        case "checkout.session.completed":
            customer_id = _require(_ref_id(obj.get("customer")), "customer", event_type)
            metadata = obj.get("metadata") or {}
            return CheckoutCompleted(
                event_id=event_id,
                event_type=event_type,
                customer_id=customer_id,
                company_id=obj.get("client_reference_id") or metadata.get("company_id") or None,
                subscription_id=_ref_id(obj.get("subscription")) or None,
            )

        case _:
            return UnknownEvent(event_id, event_type)
