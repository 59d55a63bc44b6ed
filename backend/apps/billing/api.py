"""
Billing API endpoints.

Subscription summary, Stripe checkout and customer portal for the
company the request operates in.
"""

from django.http import HttpRequest
from django.utils import timezone
from ninja import Router
from ninja.errors import HttpError
from stripe import StripeError

from apps.access.capabilities import Capability
from apps.access.suspension import get_suspension_level
from apps.billing.exceptions import BillingNotConfiguredError
from apps.billing.schemas import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PortalSessionRequest,
    PortalSessionResponse,
    SubscriptionResponse,
)
from apps.billing.services import create_checkout_session, create_customer_portal_session
from apps.companies.seats import get_company_authorization
from apps.core.logging import get_logger
from apps.core.schemas import ErrorResponse
from apps.core.security import BearerAuth, get_auth_context, require_capability

logger = get_logger(__name__)

router = Router(tags=["billing"])
bearer_auth = BearerAuth()


@router.get(
    "/subscription",
    response={200: SubscriptionResponse, 400: ErrorResponse, 401: ErrorResponse},
    auth=bearer_auth,
    operation_id="getSubscription",
    summary="Get current subscription status",
)
def get_subscription(request: HttpRequest) -> SubscriptionResponse:
    """
    Subscription summary of the current company.

    The effective plan and seat limit are those of the company itself,
    whoever is asking.
    """
    _, company = get_auth_context(request).require_company()
    authorization = get_company_authorization(company)

    return SubscriptionResponse(
        status=company.subscription_status,
        plan_key=company.subscription_tier,
        plan_label=authorization.plan_label,
        effective_plan_key=authorization.effective_plan_key,
        suspension_level=get_suspension_level(
            str(company.subscription_status),
            company.grace_period_ends_at,
            timezone.now(),
        ),
        seat_limit=authorization.seat_limit,
        seat_count=company.seat_count,
        current_period_end=company.current_period_end,
        grace_period_ends_at=company.grace_period_ends_at,
        trial_ends_at=company.trial_ends_at,
        cancel_at_period_end=company.cancel_at_period_end,
        has_billing_account=bool(company.stripe_customer_id),
    )


@router.post(
    "/checkout",
    response={200: CheckoutSessionResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="createCheckoutSession",
    summary="Create Stripe Checkout session",
)
@require_capability(Capability.CONFIGURE_SYSTEM)
def create_checkout(request: HttpRequest, payload: CheckoutSessionRequest) -> CheckoutSessionResponse:
    """
    Create a Stripe Checkout session for a plan.

    Returns URL to redirect user to Stripe Checkout.
    """
    _, company = get_auth_context(request).require_company()

    try:
        checkout_url = create_checkout_session(
            company=company,
            plan_key=payload.plan_key,
            success_url=payload.success_url,
            cancel_url=payload.cancel_url,
        )
    except BillingNotConfiguredError as e:
        raise HttpError(400, str(e)) from e
    except StripeError:
        logger.exception("checkout_session_creation_failed", company_id=company.id)
        raise HttpError(500, "Failed to create checkout session")

    return CheckoutSessionResponse(checkout_url=checkout_url)


@router.post(
    "/portal",
    response={200: PortalSessionResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="createPortalSession",
    summary="Create Stripe Customer Portal session",
)
@require_capability(Capability.CONFIGURE_SYSTEM)
def create_portal(request: HttpRequest, payload: PortalSessionRequest) -> PortalSessionResponse:
    """
    Create a Stripe Customer Portal session.

    Returns URL to redirect user to manage their subscription.
    """
    _, company = get_auth_context(request).require_company()

    if not company.stripe_customer_id:
        raise HttpError(400, "No billing account set up")

    try:
        portal_url = create_customer_portal_session(
            company=company,
            return_url=payload.return_url,
        )
    except BillingNotConfiguredError as e:
        raise HttpError(400, str(e)) from e
    except StripeError:
        logger.exception("portal_session_creation_failed", company_id=company.id)
        raise HttpError(500, "Failed to create portal session")

    return PortalSessionResponse(portal_url=portal_url)
