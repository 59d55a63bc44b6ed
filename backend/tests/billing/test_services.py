"""
Tests for billing services.

Covers the billing state synchronizer (event handlers keyed by Stripe
customer id) and the outbound Stripe calls.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone

from apps.billing.events import (
    CheckoutCompleted,
    CustomerDeleted,
    PaymentFailed,
    PaymentSucceeded,
    SubscriptionChanged,
    SubscriptionDeleted,
    SubscriptionPaused,
    SubscriptionResumed,
    UnknownEvent,
)
from apps.billing.exceptions import BillingNotConfiguredError, CompanyNotFoundError, InvalidEventError
from apps.billing.models import BillingEvent
from apps.billing.services import (
    apply_event,
    create_checkout_session,
    create_customer_portal_session,
    get_or_create_stripe_customer,
    mark_delivery,
    normalize_status,
    record_delivery,
    resolve_tier,
)
from apps.companies.models import Company
from tests.accounts.factories import MembershipFactory
from tests.billing.factories import BillingEventFactory
from tests.companies.factories import CompanyFactory

SUBSCRIPTION_FIELDS = (
    "subscription_status",
    "subscription_tier",
    "stripe_customer_id",
    "stripe_subscription_id",
    "current_period_end",
    "cancel_at_period_end",
    "grace_period_ends_at",
    "trial_ends_at",
)


def subscription_changed(**overrides) -> SubscriptionChanged:
    values = {
        "event_id": "evt_1",
        "event_type": "customer.subscription.updated",
        "customer_id": "cus_123",
        "subscription_id": "sub_123",
        "status": "active",
        "plan_key": "growth",
        "price_id": "price_growth",
        "current_period_end": datetime(2026, 1, 1, tzinfo=UTC),
        "cancel_at_period_end": False,
    }
    values.update(overrides)
    return SubscriptionChanged(**values)


def snapshot(company: Company) -> dict:
    company.refresh_from_db()
    return {field: getattr(company, field) for field in SUBSCRIPTION_FIELDS}


@pytest.fixture
def company(db) -> Company:
    return CompanyFactory.create(
        stripe_customer_id="cus_123",
        subscription_status="trialing",
        subscription_tier="demo",
    )


class TestNormalizeStatus:
    @pytest.mark.parametrize("status", ["active", "trialing", "past_due", "canceled", "unpaid"])
    def test_known_statuses_pass_through(self, status: str) -> None:
        assert normalize_status(status) == status

    def test_paused_maps_to_past_due(self) -> None:
        assert normalize_status("paused") == "past_due"

    def test_unrecognised_maps_to_incomplete(self) -> None:
        assert normalize_status("something_new") == "incomplete"


class TestResolveTier:
    def test_metadata_plan_key_wins(self) -> None:
        assert resolve_tier("scale", "price_growth") == "scale"

    def test_unknown_metadata_falls_back_to_price(self) -> None:
        assert resolve_tier("platinum", "price_growth") == "growth"

    def test_price_mapping(self) -> None:
        assert resolve_tier(None, "price_enterprise") == "enterprise"

    def test_default_tier(self, settings) -> None:
        settings.BILLING_DEFAULT_TIER = "starter"

        assert resolve_tier(None, "price_unknown") == "starter"
        assert resolve_tier(None, None) == "starter"


@pytest.mark.django_db
class TestSubscriptionChanged:
    def test_writes_full_subscription_state(self, company: Company) -> None:
        assert apply_event(subscription_changed()) is True

        company.refresh_from_db()
        assert company.subscription_status == "active"
        assert company.subscription_tier == "growth"
        assert company.stripe_subscription_id == "sub_123"
        assert company.current_period_end == datetime(2026, 1, 1, tzinfo=UTC)
        assert company.cancel_at_period_end is False

    def test_stores_trial_end(self, company: Company) -> None:
        trial_end = datetime(2025, 12, 15, tzinfo=UTC)

        apply_event(subscription_changed(status="trialing", trial_end=trial_end))

        company.refresh_from_db()
        assert company.subscription_status == "trialing"
        assert company.trial_ends_at == trial_end

    def test_trial_end_cleared_when_trial_ends(self, company: Company) -> None:
        apply_event(subscription_changed(status="trialing", trial_end=datetime(2025, 12, 15, tzinfo=UTC)))

        apply_event(subscription_changed(event_id="evt_2", status="active", trial_end=None))

        company.refresh_from_db()
        assert company.trial_ends_at is None

    def test_applying_twice_is_idempotent(self, company: Company) -> None:
        """Redelivery of the same event leaves the subscription fields identical."""
        event = subscription_changed(cancel_at_period_end=True)

        apply_event(event)
        first = snapshot(company)
        apply_event(event)

        assert snapshot(company) == first

    def test_refreshes_updated_at(self, company: Company) -> None:
        before = company.updated_at

        apply_event(subscription_changed())

        company.refresh_from_db()
        assert company.updated_at > before

    def test_paused_stripe_status_is_past_due(self, company: Company) -> None:
        apply_event(subscription_changed(status="paused"))

        company.refresh_from_db()
        assert company.subscription_status == "past_due"

    def test_only_the_matching_company_changes(self, company: Company) -> None:
        other = CompanyFactory.create(stripe_customer_id="cus_other", subscription_tier="starter")

        apply_event(subscription_changed())

        other.refresh_from_db()
        assert other.subscription_tier == "starter"

    def test_keyed_by_customer_not_subscription(self, company: Company) -> None:
        """A new subscription id for the same customer still updates the company."""
        company.stripe_subscription_id = "sub_old"
        company.save()

        apply_event(subscription_changed(subscription_id="sub_new"))

        company.refresh_from_db()
        assert company.stripe_subscription_id == "sub_new"

    def test_unknown_customer_raises(self, db) -> None:
        with pytest.raises(CompanyNotFoundError) as exc_info:
            apply_event(subscription_changed(customer_id="cus_missing"))

        assert exc_info.value.customer_id == "cus_missing"


@pytest.mark.django_db
class TestSubscriptionLifecycle:
    def test_deleted_cancels_and_drops_to_demo(self, company: Company) -> None:
        apply_event(subscription_changed())

        apply_event(SubscriptionDeleted("evt_2", "customer.subscription.deleted", "cus_123", "sub_123"))

        company.refresh_from_db()
        assert company.subscription_status == "canceled"
        assert company.subscription_tier == "demo"
        assert company.stripe_subscription_id == ""
        assert company.stripe_customer_id == "cus_123"

    def test_stale_event_is_last_processed_wins(self, company: Company) -> None:
        """
        Events are applied in processing order, not creation order: a stale
        deletion processed after a newer creation leaves the company canceled.
        """
        apply_event(subscription_changed(subscription_id="sub_new"))
        apply_event(SubscriptionDeleted("evt_old", "customer.subscription.deleted", "cus_123", "sub_old"))

        company.refresh_from_db()
        assert company.subscription_status == "canceled"

    def test_paused(self, company: Company) -> None:
        apply_event(SubscriptionPaused("evt_3", "customer.subscription.paused", "cus_123", "sub_123"))

        company.refresh_from_db()
        assert company.subscription_status == "past_due"

    def test_resumed(self, company: Company) -> None:
        apply_event(SubscriptionResumed("evt_4", "customer.subscription.resumed", "cus_123", "sub_123"))

        company.refresh_from_db()
        assert company.subscription_status == "active"


@pytest.mark.django_db
class TestPayments:
    def test_payment_failed_opens_grace_period(self, company: Company) -> None:
        """payment_failed sets past_due with a grace period ending about 7 days from now."""
        apply_event(PaymentFailed("evt_5", "invoice.payment_failed", "cus_123", "in_1"))

        company.refresh_from_db()
        expected = timezone.now() + timedelta(days=7)
        assert company.subscription_status == "past_due"
        assert abs(company.grace_period_ends_at - expected) < timedelta(seconds=30)

    def test_grace_period_length_from_settings(self, company: Company, settings) -> None:
        settings.BILLING_GRACE_PERIOD_DAYS = 3

        apply_event(PaymentFailed("evt_5", "invoice.payment_failed", "cus_123", "in_1"))

        company.refresh_from_db()
        expected = timezone.now() + timedelta(days=3)
        assert abs(company.grace_period_ends_at - expected) < timedelta(seconds=30)

    def test_payment_succeeded_reactivates(self, company: Company) -> None:
        apply_event(PaymentFailed("evt_5", "invoice.payment_failed", "cus_123", "in_1"))

        apply_event(PaymentSucceeded("evt_6", "invoice.payment_succeeded", "cus_123", "in_2"))

        company.refresh_from_db()
        assert company.subscription_status == "active"
        assert company.grace_period_ends_at is None
        assert company.last_payment_at is not None

    def test_payment_failed_for_unknown_customer(self, db) -> None:
        with pytest.raises(CompanyNotFoundError):
            apply_event(PaymentFailed("evt_5", "invoice.payment_failed", "cus_nobody", "in_1"))


@pytest.mark.django_db
class TestCustomerDeleted:
    def test_unbinds_and_cancels(self, company: Company) -> None:
        apply_event(subscription_changed())

        apply_event(CustomerDeleted("evt_7", "customer.deleted", "cus_123"))

        company.refresh_from_db()
        assert company.stripe_customer_id == ""
        assert company.stripe_subscription_id == ""
        assert company.subscription_status == "canceled"

    def test_already_unbound_customer_is_a_no_op(self, company: Company) -> None:
        apply_event(CustomerDeleted("evt_7", "customer.deleted", "cus_123"))
        before = snapshot(company)

        assert apply_event(CustomerDeleted("evt_7", "customer.deleted", "cus_123")) is True

        assert snapshot(company) == before

    def test_never_bound_customer_is_a_no_op(self, company: Company) -> None:
        before = snapshot(company)

        apply_event(CustomerDeleted("evt_7", "customer.deleted", "cus_missing"))

        assert snapshot(company) == before

    def test_later_events_for_deleted_customer_are_acknowledged(self, company: Company) -> None:
        apply_event(CustomerDeleted("evt_7", "customer.deleted", "cus_123"))
        BillingEventFactory.create(
            stripe_event_id="evt_7",
            event_type="customer.deleted",
            customer_id="cus_123",
            status=BillingEvent.Status.PROCESSED,
        )
        before = snapshot(company)

        apply_event(SubscriptionDeleted("evt_8", "customer.subscription.deleted", "cus_123", "sub_123"))
        apply_event(PaymentFailed("evt_9", "invoice.payment_failed", "cus_123", "in_1"))

        assert snapshot(company) == before

    def test_unprocessed_deletion_does_not_hide_missing_customer(self, company: Company) -> None:
        BillingEventFactory.create(
            stripe_event_id="evt_7",
            event_type="customer.deleted",
            customer_id="cus_gone",
            status=BillingEvent.Status.FAILED,
        )

        with pytest.raises(CompanyNotFoundError):
            apply_event(SubscriptionDeleted("evt_8", "customer.subscription.deleted", "cus_gone", "sub_1"))


@pytest.mark.django_db
class TestCheckoutCompleted:
    def test_binds_customer_to_company(self) -> None:
        company = CompanyFactory.create(stripe_customer_id="")

        apply_event(
            CheckoutCompleted(
                "evt_8",
                "checkout.session.completed",
                customer_id="cus_new",
                company_id=str(company.id),
                subscription_id="sub_new",
            )
        )

        company.refresh_from_db()
        assert company.stripe_customer_id == "cus_new"
        assert company.stripe_subscription_id == "sub_new"

    def test_without_reference_requires_bound_customer(self, company: Company) -> None:
        assert apply_event(CheckoutCompleted("evt_8", "checkout.session.completed", "cus_123")) is True

        with pytest.raises(CompanyNotFoundError):
            apply_event(CheckoutCompleted("evt_9", "checkout.session.completed", "cus_unbound"))

    def test_customer_held_by_another_company_is_rejected(self, company: Company) -> None:
        other = CompanyFactory.create(stripe_customer_id="")

        with pytest.raises(InvalidEventError, match="bound to another company"):
            apply_event(
                CheckoutCompleted("evt_8", "checkout.session.completed", "cus_123", company_id=str(other.id))
            )

        other.refresh_from_db()
        assert other.stripe_customer_id == ""

    def test_rebinding_the_same_company_is_allowed(self, company: Company) -> None:
        apply_event(
            CheckoutCompleted(
                "evt_8",
                "checkout.session.completed",
                "cus_123",
                company_id=str(company.id),
                subscription_id="sub_again",
            )
        )

        company.refresh_from_db()
        assert company.stripe_subscription_id == "sub_again"

    def test_invalid_reference(self, db) -> None:
        with pytest.raises(InvalidEventError):
            apply_event(CheckoutCompleted("evt_8", "checkout.session.completed", "cus_1", company_id="abc"))

    def test_missing_company(self, db) -> None:
        with pytest.raises(CompanyNotFoundError):
            apply_event(CheckoutCompleted("evt_8", "checkout.session.completed", "cus_1", company_id="999999"))


@pytest.mark.django_db
class TestUnknownEvent:
    def test_acknowledged_without_writes(self, company: Company) -> None:
        before = snapshot(company)

        assert apply_event(UnknownEvent("evt_10", "charge.refunded")) is False

        assert snapshot(company) == before


@pytest.mark.django_db
class TestDeliveryLog:
    def test_first_delivery_creates_row(self) -> None:
        record = record_delivery("evt_1", "invoice.paid", {"id": "evt_1"})

        assert record.status == BillingEvent.Status.PENDING
        assert record.delivery_count == 1

    def test_redelivery_increments_count_and_resets_status(self) -> None:
        BillingEventFactory.create(stripe_event_id="evt_1", status=BillingEvent.Status.FAILED, error_message="boom")

        record = record_delivery("evt_1", "invoice.paid", {"id": "evt_1"})

        assert record.delivery_count == 2
        assert record.status == BillingEvent.Status.PENDING
        assert record.error_message == ""
        assert BillingEvent.objects.filter(stripe_event_id="evt_1").count() == 1

    def test_mark_processed(self) -> None:
        record = record_delivery("evt_1", "invoice.paid", {"id": "evt_1"})

        mark_delivery(record, BillingEvent.Status.PROCESSED, customer_id="cus_123")

        record.refresh_from_db()
        assert record.status == BillingEvent.Status.PROCESSED
        assert record.customer_id == "cus_123"
        assert record.processed_at is not None

    def test_mark_failed_keeps_processed_at_empty(self) -> None:
        record = record_delivery("evt_1", "invoice.paid", {"id": "evt_1"})

        mark_delivery(record, BillingEvent.Status.FAILED, error_message="No company")

        record.refresh_from_db()
        assert record.error_message == "No company"
        assert record.processed_at is None


@pytest.mark.django_db
class TestStripeCustomer:
    def test_existing_customer_is_reused(self) -> None:
        company = CompanyFactory.create(stripe_customer_id="cus_existing")

        with patch("apps.billing.services.get_stripe") as mock_get_stripe:
            assert get_or_create_stripe_customer(company) == "cus_existing"
            mock_get_stripe.assert_not_called()

    @patch("apps.billing.services.get_stripe")
    def test_creates_customer_with_company_metadata(self, mock_get_stripe: MagicMock) -> None:
        company = CompanyFactory.create(stripe_customer_id="")
        owner = MembershipFactory.create(company=company, role="owner")
        mock_stripe = MagicMock()
        mock_stripe.Customer.create.return_value = MagicMock(id="cus_new")
        mock_get_stripe.return_value = mock_stripe

        customer_id = get_or_create_stripe_customer(company)

        assert customer_id == "cus_new"
        kwargs = mock_stripe.Customer.create.call_args.kwargs
        assert kwargs["metadata"]["company_id"] == str(company.id)
        assert kwargs["email"] == owner.user.email
        company.refresh_from_db()
        assert company.stripe_customer_id == "cus_new"


@pytest.mark.django_db
class TestCheckoutSession:
    @patch("apps.billing.services.get_stripe")
    def test_checkout_carries_plan_key(self, mock_get_stripe: MagicMock) -> None:
        company = CompanyFactory.create(stripe_customer_id="cus_123")
        mock_stripe = MagicMock()
        mock_stripe.checkout.Session.create.return_value = MagicMock(url="https://checkout.stripe.com/c/1")
        mock_get_stripe.return_value = mock_stripe

        url = create_checkout_session(company, "growth", "https://app/ok", "https://app/cancel")

        assert url == "https://checkout.stripe.com/c/1"
        kwargs = mock_stripe.checkout.Session.create.call_args.kwargs
        assert kwargs["customer"] == "cus_123"
        assert kwargs["client_reference_id"] == str(company.id)
        assert kwargs["line_items"] == [{"price": "price_growth", "quantity": 1}]
        assert kwargs["subscription_data"]["metadata"]["plan_key"] == "growth"

    def test_plan_without_price(self, db) -> None:
        company = CompanyFactory.create()

        with pytest.raises(BillingNotConfiguredError):
            create_checkout_session(company, "demo", "https://app/ok", "https://app/cancel")

    @patch("apps.billing.services.get_stripe")
    def test_portal_session(self, mock_get_stripe: MagicMock) -> None:
        company = CompanyFactory.create(stripe_customer_id="cus_123")
        mock_get_stripe.return_value.billing_portal.Session.create.return_value = MagicMock(
            url="https://billing.stripe.com/p/1"
        )

        assert create_customer_portal_session(company, "https://app/billing") == "https://billing.stripe.com/p/1"

    def test_portal_requires_customer(self, db) -> None:
        company = CompanyFactory.create(stripe_customer_id="")

        with pytest.raises(ValueError):
            create_customer_portal_session(company, "https://app/billing")
