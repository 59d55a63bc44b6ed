"""
Accounts services - identity sync and team management.

Stytch holds identities; local User/Membership rows mirror them.
Stytch calls happen outside database transactions.
"""

from typing import Any

from django.db import IntegrityError, transaction
from stytch.core.response_base import StytchError

from apps.accounts import stytch_client
from apps.accounts.constants import local_role_for
from apps.accounts.exceptions import AlreadyMemberError, IdentityProviderError
from apps.accounts.models import Membership, User
from apps.companies.models import Company
from apps.companies.seats import enforce_seat_limit
from apps.core.logging import get_logger

logger = get_logger(__name__)


def get_or_create_user_from_stytch(
    email: str,
    name: str = "",
) -> User:
    """
    Get or create a User from Stytch data.

    Email is the cross-org identifier in Stytch B2B.
    Uses select_for_update for explicit row locking under concurrent requests.
    """
    try:
        user = User.objects.select_for_update().get(email=email)
        if name and user.name != name:
            user.name = name
            user.save(update_fields=["name", "updated_at"])
        return user
    except User.DoesNotExist:
        try:
            return User.objects.create(email=email, name=name)
        except IntegrityError:
            # Concurrent insert won the race, fetch the winner
            return User.objects.get(email=email)


def get_or_create_company_from_stytch(
    stytch_org_id: str,
    name: str,
    slug: str,
) -> Company:
    """
    Get or create a Company from Stytch organization data.

    Subscription fields are never touched here; they belong to billing.
    """
    try:
        company = Company.objects.select_for_update().get(stytch_org_id=stytch_org_id)
        company.name = name
        company.slug = slug
        company.save(update_fields=["name", "slug", "updated_at"])
        return company
    except Company.DoesNotExist:
        try:
            return Company.objects.create(
                stytch_org_id=stytch_org_id,
                name=name,
                slug=slug,
            )
        except IntegrityError:
            return Company.objects.get(stytch_org_id=stytch_org_id)


def get_or_create_membership_from_stytch(
    user: User,
    company: Company,
    stytch_member_id: str,
    role: str = Membership.Role.OPERATOR,
) -> Membership:
    """
    Get or create a Membership linking User to Company.

    An existing membership keeps its local role and active flag; those are
    managed through the team endpoints.
    """
    try:
        return Membership.objects.select_for_update().get(stytch_member_id=stytch_member_id)
    except Membership.DoesNotExist:
        try:
            return Membership.objects.create(
                stytch_member_id=stytch_member_id,
                user=user,
                company=company,
                role=role,
            )
        except IntegrityError:
            return Membership.objects.get(stytch_member_id=stytch_member_id)


def _role_from_stytch(stytch_member: Any) -> str:
    """Map Stytch RBAC roles to a local role (stytch_admin -> admin)."""
    role_ids = []
    for r in getattr(stytch_member, "roles", None) or []:
        if isinstance(r, str):
            role_ids.append(r)
        elif isinstance(r, dict):
            role_ids.append(r.get("role_id"))
        else:
            role_ids.append(getattr(r, "role_id", None))
    return local_role_for(role_ids)


def sync_session_to_local(
    stytch_member: Any,
    stytch_organization: Any,
) -> tuple[User, Membership, Company]:
    """
    Sync Stytch session data to local models.

    Idempotent and concurrency-safe: runs in one transaction with row locks
    and falls back to IntegrityError handling for insert races.

    Returns:
        Tuple of (user, membership, company)
    """
    with transaction.atomic():
        company = get_or_create_company_from_stytch(
            stytch_org_id=stytch_organization.organization_id,
            name=stytch_organization.organization_name,
            slug=stytch_organization.organization_slug,
        )
        user = get_or_create_user_from_stytch(
            email=stytch_member.email_address,
            name=stytch_member.name or "",
        )
        membership = get_or_create_membership_from_stytch(
            user=user,
            company=company,
            stytch_member_id=stytch_member.member_id,
            role=_role_from_stytch(stytch_member),
        )

    logger.info(
        "auth_member_synced",
        stytch_member_id=stytch_member.member_id,
        company_id=company.id,
    )
    return user, membership, company


# --- Team management ---


def list_team(company: Company, include_archived: bool = False) -> list[Membership]:
    """Memberships of a company, newest first."""
    queryset = Membership.objects.filter(company=company).select_related("user")
    if not include_archived:
        queryset = queryset.filter(is_active=True)
    return list(queryset)


def add_team_member(
    company: Company,
    email: str,
    role: str,
    name: str = "",
) -> Membership:
    """
    Invite a user into a company.

    Checks the seat limit first, then creates the Stytch member, then the
    local rows.

    Raises:
        SeatLimitExceededError: No free seat
        AlreadyMemberError: Email already has a membership in this company
        IdentityProviderError: Stytch rejected the member
    """
    enforce_seat_limit(company)

    if Membership.objects.filter(company=company, user__email__iexact=email).exists():
        raise AlreadyMemberError(f"{email} is already a member of {company.name}")

    client = stytch_client.get_stytch_client()
    try:
        response = client.organizations.members.create(
            organization_id=company.stytch_org_id,
            email_address=email,
            name=name or email.split("@")[0],
        )
    except StytchError as e:
        logger.warning(
            "team_member_create_failed",
            company_id=company.id,
            error=e.details.error_message,
        )
        raise IdentityProviderError(e.details.error_message) from e

    with transaction.atomic():
        user = get_or_create_user_from_stytch(email=email, name=name)
        membership = Membership.objects.create(
            stytch_member_id=response.member.member_id,
            user=user,
            company=company,
            role=role,
        )

    logger.info("team_member_added", company_id=company.id, membership_id=membership.id, role=role)
    return membership


def update_member(membership: Membership, role: str | None = None, name: str | None = None) -> Membership:
    """Change a member's role and/or display name."""
    if role is not None:
        membership.role = role
        membership.save(update_fields=["role", "updated_at"])
    if name is not None:
        membership.user.name = name
        membership.user.save(update_fields=["name", "updated_at"])

    logger.info("team_member_updated", membership_id=membership.id, role=membership.role)
    return membership


def archive_member(membership: Membership) -> Membership:
    """Deactivate a membership, freeing its seat. The row is kept."""
    if membership.is_active:
        membership.is_active = False
        membership.save(update_fields=["is_active", "updated_at"])
        logger.info("team_member_archived", membership_id=membership.id)
    return membership


def restore_member(membership: Membership) -> Membership:
    """
    Reactivate an archived membership.

    Raises:
        SeatLimitExceededError: No free seat
    """
    if not membership.is_active:
        enforce_seat_limit(membership.company)
        membership.is_active = True
        membership.save(update_fields=["is_active", "updated_at"])
        logger.info("team_member_restored", membership_id=membership.id)
    return membership


def remove_member(membership: Membership) -> None:
    """
    Delete a membership, here and in Stytch.

    Raises:
        IdentityProviderError: Stytch rejected the deletion
    """
    client = stytch_client.get_stytch_client()
    try:
        client.organizations.members.delete(
            organization_id=membership.company.stytch_org_id,
            member_id=membership.stytch_member_id,
        )
    except StytchError as e:
        if e.details.status_code != 404:
            raise IdentityProviderError(e.details.error_message) from e

    membership_id = membership.id
    membership.delete()
    logger.info("team_member_removed", membership_id=membership_id)
