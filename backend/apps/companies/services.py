"""
Companies services - tenant provisioning and administration.

Stytch calls happen before the local transaction; a failed local write
after a successful Stytch call leaves an orphan Stytch org that the next
session sync adopts.
"""

from django.db import IntegrityError, transaction
from stytch.core.response_base import StytchError

from apps.access.plans import get_plan_catalog
from apps.accounts import stytch_client
from apps.accounts.models import Membership
from apps.accounts.services import get_or_create_user_from_stytch
from apps.billing.constants import SubscriptionStatus
from apps.companies.exceptions import CompanyProvisioningError, InvalidPlanError
from apps.companies.models import Company
from apps.core.logging import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = ("name", "slug", "subscription_status", "subscription_tier", "seat_limit")


def provision_company(
    name: str,
    slug: str,
    admin_email: str,
    admin_name: str = "",
) -> tuple[Company, Membership]:
    """
    Create a company with its first (owner) member.

    Creates the Stytch organization and member, then the local Company,
    User and Membership in one transaction. New companies start trialing
    on the demo plan.

    Raises:
        CompanyProvisioningError: Slug taken, or Stytch rejected the request
    """
    if Company.objects.filter(slug=slug).exists():
        raise CompanyProvisioningError(f"Slug '{slug}' is already taken")

    client = stytch_client.get_stytch_client()
    try:
        org_response = client.organizations.create(
            organization_name=name,
            organization_slug=slug,
        )
        stytch_org_id = org_response.organization.organization_id
        member_response = client.organizations.members.create(
            organization_id=stytch_org_id,
            email_address=admin_email,
            name=admin_name or f"Admin {name}",
        )
    except StytchError as e:
        logger.warning("company_provision_stytch_failed", slug=slug, error=e.details.error_message)
        raise CompanyProvisioningError(e.details.error_message) from e

    try:
        with transaction.atomic():
            company = Company.objects.create(
                stytch_org_id=stytch_org_id,
                name=name,
                slug=slug,
            )
            user = get_or_create_user_from_stytch(email=admin_email, name=admin_name)
            membership = Membership.objects.create(
                stytch_member_id=member_response.member.member_id,
                user=user,
                company=company,
                role=Membership.Role.OWNER,
            )
    except IntegrityError as e:
        raise CompanyProvisioningError(f"Could not provision '{slug}'") from e

    logger.info("company_provisioned", company_id=company.id, slug=slug)
    return company, membership


def update_company(company: Company, **changes) -> Company:
    """
    Apply tenant admin edits.

    Accepts name, slug, subscription_status, subscription_tier and
    seat_limit (None clears the override). Unknown keys are rejected.

    Raises:
        InvalidPlanError: subscription_tier is not in the plan catalog
        ValueError: Unknown field or invalid status
        CompanyProvisioningError: Slug already taken
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot edit: {', '.join(sorted(unknown))}")

    nulled = [field for field, value in changes.items() if value is None and field != "seat_limit"]
    if nulled:
        raise ValueError(f"Cannot clear: {', '.join(sorted(nulled))}")

    tier = changes.get("subscription_tier")
    if tier is not None and tier not in get_plan_catalog():
        raise InvalidPlanError(f"Unknown plan '{tier}'")

    status = changes.get("subscription_status")
    if status is not None and status not in SubscriptionStatus.values:
        raise ValueError(f"Unknown subscription status '{status}'")

    slug = changes.get("slug")
    if slug is not None and Company.objects.filter(slug=slug).exclude(id=company.id).exists():
        raise CompanyProvisioningError(f"Slug '{slug}' is already taken")

    for field, value in changes.items():
        setattr(company, field, value)
    company.save(update_fields=[*changes.keys(), "updated_at"])

    logger.info("company_updated", company_id=company.id, fields=sorted(changes))
    return company
