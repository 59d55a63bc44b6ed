"""
Billing services - Stripe integration logic.

Two halves:
- Outbound Stripe calls (customer, checkout, portal). External calls must
  NOT be inside database transactions.
- The billing state synchronizer: applies decoded webhook events to the
  company as single full-state updates keyed by Stripe customer id.
  Replaying an event writes the same state again, so redeliveries are safe.
"""

from datetime import timedelta

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from apps.access.plans import DEMO_PLAN, get_plan_catalog
from apps.billing.constants import STRIPE_STATUS_ALIASES, SubscriptionStatus
from apps.billing.events import (
    CheckoutCompleted,
    CustomerDeleted,
    PaymentFailed,
    PaymentSucceeded,
    StripeEvent,
    SubscriptionChanged,
    SubscriptionDeleted,
    SubscriptionPaused,
    SubscriptionResumed,
    UnknownEvent,
)
from apps.billing.exceptions import (
    BillingNotConfiguredError,
    CompanyNotFoundError,
    InvalidEventError,
)
from apps.billing.models import BillingEvent
from apps.billing.stripe_client import get_stripe
from apps.companies.models import Company
from apps.core.logging import get_logger

logger = get_logger(__name__)


# --- Outbound Stripe calls ---


def get_or_create_stripe_customer(company: Company) -> str:
    """
    Get or create a Stripe Customer for the company.

    Returns the Stripe customer ID.
    """
    if company.stripe_customer_id:
        return company.stripe_customer_id

    stripe = get_stripe()

    owner = (
        company.memberships.filter(is_active=True)
        .select_related("user")
        .order_by("created_at")
        .first()
    )
    customer_data: dict = {
        "name": company.name,
        "metadata": {
            "company_id": str(company.id),
            "stytch_org_id": company.stytch_org_id,
        },
    }
    if owner:
        customer_data["email"] = owner.user.email

    customer = stripe.Customer.create(**customer_data)

    company.stripe_customer_id = customer.id
    company.save(update_fields=["stripe_customer_id", "updated_at"])

    logger.info("stripe_customer_created", customer_id=customer.id, company_id=company.id)
    return customer.id


def get_price_id(plan_key: str) -> str:
    """
    Stripe price configured for a plan.

    Raises:
        BillingNotConfiguredError: No price configured for plan_key
    """
    price_id = settings.STRIPE_PRICE_IDS.get(plan_key)
    if not price_id:
        raise BillingNotConfiguredError(f"No Stripe price configured for plan '{plan_key}'")
    return price_id


def create_checkout_session(
    company: Company,
    plan_key: str,
    success_url: str,
    cancel_url: str,
) -> str:
    """
    Create a Stripe Checkout session for subscribing to a plan.

    The plan key travels in the subscription metadata so the webhook can
    resolve the tier without a price lookup.

    Returns the checkout URL.
    """
    price_id = get_price_id(plan_key)
    customer_id = get_or_create_stripe_customer(company)

    stripe = get_stripe()
    session = stripe.checkout.Session.create(
        customer=customer_id,
        client_reference_id=str(company.id),
        mode="subscription",
        line_items=[{"price": price_id, "quantity": 1}],
        success_url=success_url,
        cancel_url=cancel_url,
        metadata={"company_id": str(company.id), "plan_key": plan_key},
        subscription_data={"metadata": {"company_id": str(company.id), "plan_key": plan_key}},
    )

    logger.info("checkout_session_created", company_id=company.id, plan_key=plan_key)
    return session.url


def create_customer_portal_session(company: Company, return_url: str) -> str:
    """
    Create a Stripe Customer Portal session.

    Returns the portal URL.
    """
    if not company.stripe_customer_id:
        raise ValueError("Company has no Stripe customer")

    stripe = get_stripe()

    session = stripe.billing_portal.Session.create(
        customer=company.stripe_customer_id,
        return_url=return_url,
    )

    return session.url


# --- Billing state synchronizer ---


def normalize_status(status: str) -> str:
    """Map a Stripe subscription status onto SubscriptionStatus."""
    if status in SubscriptionStatus.values:
        return status
    return STRIPE_STATUS_ALIASES.get(status, SubscriptionStatus.INCOMPLETE)


def resolve_tier(plan_key: str | None, price_id: str | None) -> str:
    """
    Plan key for a subscription.

    Metadata plan_key wins when it names a known plan, then the configured
    price -> plan mapping, then BILLING_DEFAULT_TIER.
    """
    if plan_key and plan_key in get_plan_catalog():
        return plan_key
    if price_id:
        for key, configured_price in settings.STRIPE_PRICE_IDS.items():
            if configured_price == price_id:
                return key
    return settings.BILLING_DEFAULT_TIER


def _customer_was_deleted(customer_id: str) -> bool:
    """Whether a customer.deleted for this customer has already been applied."""
    return BillingEvent.objects.filter(
        event_type="customer.deleted",
        customer_id=customer_id,
        status=BillingEvent.Status.PROCESSED,
    ).exists()


def _update_company_by_customer(customer_id: str, **fields) -> int:
    """
    Overwrite subscription fields on the company bound to a Stripe customer.

    Events that arrive after the customer was deleted find no company; they
    are acknowledged without writes.

    Raises:
        CompanyNotFoundError: No company has this stripe_customer_id
    """
    fields["updated_at"] = timezone.now()
    updated = Company.objects.filter(stripe_customer_id=customer_id).update(**fields)
    if updated == 0:
        if _customer_was_deleted(customer_id):
            logger.info("billing_customer_already_unbound", customer_id=customer_id)
            return 0
        raise CompanyNotFoundError(customer_id)
    return updated


def handle_subscription_changed(event: SubscriptionChanged) -> None:
    status = normalize_status(event.status)
    tier = resolve_tier(event.plan_key, event.price_id)
    _update_company_by_customer(
        event.customer_id,
        subscription_status=status,
        subscription_tier=tier,
        stripe_subscription_id=event.subscription_id,
        current_period_end=event.current_period_end,
        cancel_at_period_end=event.cancel_at_period_end,
        trial_ends_at=event.trial_end,
    )
    logger.info(
        "billing_subscription_synced",
        customer_id=event.customer_id,
        status=status,
        tier=tier,
    )


def handle_subscription_deleted(event: SubscriptionDeleted) -> None:
    _update_company_by_customer(
        event.customer_id,
        subscription_status=SubscriptionStatus.CANCELED,
        subscription_tier=DEMO_PLAN,
        stripe_subscription_id="",
        cancel_at_period_end=False,
    )
    logger.info("billing_subscription_canceled", customer_id=event.customer_id)


def handle_subscription_paused(event: SubscriptionPaused) -> None:
    _update_company_by_customer(event.customer_id, subscription_status=SubscriptionStatus.PAST_DUE)
    logger.info("billing_subscription_paused", customer_id=event.customer_id)


def handle_subscription_resumed(event: SubscriptionResumed) -> None:
    _update_company_by_customer(event.customer_id, subscription_status=SubscriptionStatus.ACTIVE)
    logger.info("billing_subscription_resumed", customer_id=event.customer_id)


def handle_payment_failed(event: PaymentFailed) -> None:
    grace_period_ends_at = timezone.now() + timedelta(days=settings.BILLING_GRACE_PERIOD_DAYS)
    _update_company_by_customer(
        event.customer_id,
        subscription_status=SubscriptionStatus.PAST_DUE,
        grace_period_ends_at=grace_period_ends_at,
    )
    logger.warning(
        "billing_payment_failed",
        customer_id=event.customer_id,
        invoice_id=event.invoice_id,
        grace_period_ends_at=grace_period_ends_at.isoformat(),
    )


def handle_payment_succeeded(event: PaymentSucceeded) -> None:
    _update_company_by_customer(
        event.customer_id,
        subscription_status=SubscriptionStatus.ACTIVE,
        grace_period_ends_at=None,
        last_payment_at=timezone.now(),
    )
    logger.info("billing_payment_succeeded", customer_id=event.customer_id, invoice_id=event.invoice_id)


def handle_customer_deleted(event: CustomerDeleted) -> None:
    """
    Unbind the customer and cancel the company.

    No bound company means the unbind already happened (or the customer was
    never bound), so there is nothing left to reconcile.
    """
    updated = Company.objects.filter(stripe_customer_id=event.customer_id).update(
        stripe_customer_id="",
        stripe_subscription_id="",
        subscription_status=SubscriptionStatus.CANCELED,
        updated_at=timezone.now(),
    )
    if updated == 0:
        logger.info("billing_customer_already_unbound", customer_id=event.customer_id)
        return
    logger.info("billing_customer_deleted", customer_id=event.customer_id)


def handle_checkout_completed(event: CheckoutCompleted) -> None:
    """
    Bind the Stripe customer to the company that started checkout.

    Without a company reference the customer must already be bound.
    """
    if event.company_id is None:
        _update_company_by_customer(event.customer_id)
        return

    if not event.company_id.isdigit():
        raise InvalidEventError(f"Invalid company reference '{event.company_id}'")

    company_id = int(event.company_id)
    if Company.objects.filter(stripe_customer_id=event.customer_id).exclude(id=company_id).exists():
        raise InvalidEventError(f"Stripe customer {event.customer_id} is bound to another company")

    fields: dict = {"stripe_customer_id": event.customer_id, "updated_at": timezone.now()}
    if event.subscription_id:
        fields["stripe_subscription_id"] = event.subscription_id
    if Company.objects.filter(id=company_id).update(**fields) == 0:
        raise CompanyNotFoundError(event.customer_id)

    logger.info(
        "billing_checkout_completed",
        customer_id=event.customer_id,
        company_id=event.company_id,
    )


def apply_event(event: StripeEvent) -> bool:
    """
    Reconcile local state with a decoded Stripe event.

    Returns:
        True if the event changed state, False for event kinds that are
        acknowledged without action.

    Raises:
        CompanyNotFoundError: No company is bound to the event's customer
        InvalidEventError: The event carries an unusable reference
    """
    match event:
        case SubscriptionChanged():
            handle_subscription_changed(event)
        case SubscriptionDeleted():
            handle_subscription_deleted(event)
        case SubscriptionPaused():
            handle_subscription_paused(event)
        case SubscriptionResumed():
            handle_subscription_resumed(event)
        case PaymentFailed():
            handle_payment_failed(event)
        case PaymentSucceeded():
            handle_payment_succeeded(event)
        case CustomerDeleted():
            handle_customer_deleted(event)
        case CheckoutCompleted():
            handle_checkout_completed(event)
        case UnknownEvent(event_type=event_type):
            logger.debug("stripe_webhook_unhandled_event", event_type=event_type)
            return False
    return True


# --- Delivery log ---


def record_delivery(event_id: str, event_type: str, payload: dict) -> BillingEvent:
    """
    Record a webhook delivery, or refresh the row of a redelivered event.

    The row is reset to pending; it does not stop the event being applied.
    """
    record, created = BillingEvent.objects.get_or_create(
        stripe_event_id=event_id,
        defaults={"event_type": event_type, "payload": payload},
    )
    if not created:
        BillingEvent.objects.filter(pk=record.pk).update(
            delivery_count=F("delivery_count") + 1,
            status=BillingEvent.Status.PENDING,
            error_message="",
            payload=payload,
            updated_at=timezone.now(),
        )
        record.refresh_from_db()
    return record


def mark_delivery(
    record: BillingEvent,
    status: str,
    customer_id: str = "",
    error_message: str = "",
) -> None:
    """Store the outcome of processing a delivery."""
    record.status = status
    record.error_message = error_message
    if customer_id:
        record.customer_id = customer_id
    if status != BillingEvent.Status.FAILED:
        record.processed_at = timezone.now()
    record.save(update_fields=["status", "error_message", "customer_id", "processed_at", "updated_at"])
