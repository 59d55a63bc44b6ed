"""
Management command to set up Stripe products and prices.

Creates one product and monthly price per paid plan in the plan catalog
and prints the STRIPE_PRICE_IDS value to configure.
Usage: python manage.py setup_stripe --amount starter=2900 --amount growth=7900
"""

import json

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.access.plans import DEMO_PLAN, get_plan_catalog
from apps.billing.stripe_client import get_stripe

PRODUCT_APP_TAG = "beto-console"


class Command(BaseCommand):
    help = "Set up Stripe products and prices for the paid plans"

    def add_arguments(self, parser):
        parser.add_argument(
            "--amount",
            action="append",
            default=[],
            metavar="PLAN=CENTS",
            help="Monthly price of a plan in cents, e.g. starter=2900 (repeatable)",
        )
        parser.add_argument(
            "--currency",
            type=str,
            default="usd",
            help="Currency code (default: usd)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Create new prices even if one exists",
        )

    def _parse_amounts(self, values: list[str]) -> dict[str, int]:
        catalog = get_plan_catalog()
        amounts = {}
        for value in values:
            plan_key, _, cents = value.partition("=")
            if plan_key not in catalog or plan_key == DEMO_PLAN:
                raise CommandError(f"Unknown paid plan '{plan_key}'")
            if not cents.isdigit():
                raise CommandError(f"Invalid amount for '{plan_key}': {cents!r}")
            amounts[plan_key] = int(cents)
        return amounts

    def handle(self, *args, **options):
        if not settings.STRIPE_SECRET_KEY:
            raise CommandError("STRIPE_SECRET_KEY not set. Add it to your .env file first.")

        amounts = self._parse_amounts(options["amount"])
        if not amounts:
            raise CommandError("Pass at least one --amount PLAN=CENTS")

        stripe = get_stripe()
        catalog = get_plan_catalog()
        currency = options["currency"]
        price_ids = dict(settings.STRIPE_PRICE_IDS)

        for plan_key, cents in amounts.items():
            plan = catalog.get(plan_key)

            if not options["force"]:
                products = stripe.Product.search(
                    query=f"metadata['app']:'{PRODUCT_APP_TAG}' AND metadata['plan_key']:'{plan_key}' AND active:'true'"
                )
                if products.data:
                    prices = stripe.Price.list(product=products.data[0].id, active=True, type="recurring")
                    if prices.data:
                        price_ids[plan_key] = prices.data[0].id
                        self.stdout.write(
                            self.style.WARNING(f"Found existing price for {plan_key}: {prices.data[0].id}")
                        )
                        continue

            product = stripe.Product.create(
                name=plan.label,
                description=f"{plan.label} plan, up to {plan.seat_limit} seats",
                metadata={"app": PRODUCT_APP_TAG, "plan_key": plan_key},
            )
            price = stripe.Price.create(
                product=product.id,
                unit_amount=cents,
                currency=currency,
                recurring={"interval": "month"},
                metadata={"app": PRODUCT_APP_TAG, "plan_key": plan_key},
            )
            price_ids[plan_key] = price.id
            self.stdout.write(f"Created price for {plan_key}: {price.id}")

        self.stdout.write(
            self.style.SUCCESS(
                f"\nStripe setup complete!\nAdd this to your .env:\n\nSTRIPE_PRICE_IDS='{json.dumps(price_ids)}'\n"
            )
        )
        self.stdout.write(
            self.style.NOTICE(
                "\nDon't forget to set up your webhook endpoint:\n"
                "   URL: https://your-domain.com/webhooks/stripe/\n"
                "   Events: checkout.session.completed, customer.subscription.*, "
                "customer.deleted, invoice.payment_failed, invoice.payment_succeeded\n"
            )
        )
