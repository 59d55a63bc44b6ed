"""
Accounts API endpoints.

Handles Stytch B2B authentication flows and team management:
- Magic link send/authenticate
- Discovery exchange into a company
- Session management and the current caller's authorization
- Team listing, invites, role changes, archive/restore, removal
"""

from django.http import HttpRequest
from ninja import Router
from ninja.errors import HttpError
from stytch.core.response_base import StytchError

from apps.access.capabilities import Capability
from apps.accounts import services
from apps.accounts.exceptions import AlreadyMemberError, IdentityProviderError
from apps.accounts.models import Membership
from apps.accounts.schemas import (
    AddMemberRequest,
    AuthorizationInfo,
    CompanyInfo,
    DiscoveredOrganization,
    DiscoveryExchangeRequest,
    MagicLinkAuthenticateRequest,
    MagicLinkAuthenticateResponse,
    MagicLinkSendRequest,
    MemberResponse,
    MeResponse,
    SessionResponse,
    TeamResponse,
    UpdateMemberRequest,
    UserInfo,
)
from apps.accounts.stytch_client import get_stytch_client
from apps.companies.exceptions import SeatLimitExceededError
from apps.companies.seats import get_effective_seat_limit
from apps.core.logging import get_logger
from apps.core.schemas import ErrorResponse, MessageResponse
from apps.core.security import BearerAuth, get_auth_context, require_capability

logger = get_logger(__name__)

router = Router(tags=["auth"])
team_router = Router(tags=["team"])
bearer_auth = BearerAuth()


@router.post(
    "/magic-link/send",
    response={200: MessageResponse, 400: ErrorResponse},
    operation_id="sendMagicLink",
    summary="Send magic link email",
)
def send_magic_link(request: HttpRequest, payload: MagicLinkSendRequest) -> MessageResponse:
    """
    Send a magic link email for discovery authentication.

    The user authenticates first, then picks one of their companies.
    """
    client = get_stytch_client()

    try:
        client.magic_links.email.discovery.send(
            email_address=payload.email,
        )
    except StytchError as e:
        logger.warning("magic_link_send_failed", error=e.details.error_message)
        raise HttpError(400, "Failed to send magic link. Please check the email address.") from e

    return MessageResponse(message="Magic link sent. Check your email.")


@router.post(
    "/magic-link/authenticate",
    response={200: MagicLinkAuthenticateResponse, 400: ErrorResponse},
    operation_id="authenticateMagicLink",
    summary="Authenticate magic link token",
)
def authenticate_magic_link(
    request: HttpRequest,
    payload: MagicLinkAuthenticateRequest,
) -> MagicLinkAuthenticateResponse:
    """
    Authenticate a magic link token.

    Returns an intermediate session token (IST) and the companies the
    user belongs to.
    """
    client = get_stytch_client()

    try:
        response = client.magic_links.discovery.authenticate(
            discovery_magic_links_token=payload.token,
        )
    except StytchError as e:
        logger.warning("magic_link_authenticate_failed", error=e.details.error_message)
        raise HttpError(400, "Invalid or expired token.") from e

    discovered = [
        DiscoveredOrganization(
            organization_id=org.organization.organization_id,
            organization_name=org.organization.organization_name,
            organization_slug=org.organization.organization_slug,
        )
        for org in response.discovered_organizations
    ]

    return MagicLinkAuthenticateResponse(
        intermediate_session_token=response.intermediate_session_token,
        email=response.email_address,
        discovered_organizations=discovered,
    )


@router.post(
    "/discovery/exchange",
    response={200: SessionResponse, 400: ErrorResponse},
    operation_id="exchangeSession",
    summary="Exchange IST for session",
)
def exchange_session(
    request: HttpRequest,
    payload: DiscoveryExchangeRequest,
) -> SessionResponse:
    """
    Exchange IST for a session in one of the user's companies.
    """
    client = get_stytch_client()

    try:
        response = client.discovery.intermediate_sessions.exchange(
            intermediate_session_token=payload.intermediate_session_token,
            organization_id=payload.organization_id,
        )
    except StytchError as e:
        logger.warning("session_exchange_failed", error=e.details.error_message)
        raise HttpError(400, "Failed to enter company.") from e

    services.sync_session_to_local(
        stytch_member=response.member,
        stytch_organization=response.organization,
    )

    return SessionResponse(
        session_token=response.session_token,
        session_jwt=response.session_jwt,
        member_id=response.member.member_id,
        organization_id=response.organization.organization_id,
    )


@router.post(
    "/logout",
    response={200: MessageResponse, 401: ErrorResponse},
    auth=bearer_auth,
    operation_id="logout",
    summary="Revoke current session",
)
def logout(request: HttpRequest) -> MessageResponse:
    """
    Revoke the current session.

    Expects session JWT in Authorization header (Bearer <session_jwt>).
    """
    session_jwt = request.headers.get("Authorization", "").removeprefix("Bearer ")
    client = get_stytch_client()

    try:
        response = client.sessions.authenticate_jwt(session_jwt=session_jwt)
        client.sessions.revoke(member_session_id=response.member_session.member_session_id)
    except StytchError:
        # Session already invalid/expired - still return success
        pass

    return MessageResponse(message="Logged out successfully")


@router.get(
    "/me",
    response={200: MeResponse, 401: ErrorResponse},
    auth=bearer_auth,
    operation_id="getCurrentUser",
    summary="Get current user and authorization",
)
def get_current_user(request: HttpRequest) -> MeResponse:
    """
    Get the current user, the company the request operates in, and the
    capabilities and modules resolved for this execution context.
    """
    auth = get_auth_context(request)
    user = auth.require_auth()
    authorization = auth.authorization
    company = auth.company

    return MeResponse(
        user=UserInfo(
            id=user.id,
            email=user.email,
            name=user.name,
            is_super_admin=user.is_super_admin,
        ),
        role=auth.membership.role if auth.membership else None,
        company=CompanyInfo(
            id=company.id,
            name=company.name,
            slug=company.slug,
            subscription_status=company.subscription_status,
            subscription_tier=company.subscription_tier,
        )
        if company
        else None,
        is_impersonating=auth.is_impersonating,
        authorization=AuthorizationInfo(
            mode=auth.mode,
            plan_key=authorization.plan_key,
            plan_label=authorization.plan_label,
            effective_plan_key=authorization.effective_plan_key,
            is_active=authorization.is_active,
            is_restricted=authorization.is_restricted,
            capabilities=sorted(authorization.capabilities),
            modules=sorted(authorization.modules),
            seat_limit=authorization.seat_limit,
        ),
    )


# --- Team management ---


def _member_response(membership: Membership) -> MemberResponse:
    return MemberResponse(
        id=membership.id,
        user_id=membership.user_id,
        email=membership.user.email,
        name=membership.user.name,
        role=membership.role,
        is_active=membership.is_active,
        created_at=membership.created_at,
    )


def _get_company_membership(request: HttpRequest, membership_id: int) -> Membership:
    """Membership of the request's company, or 404."""
    _, company = get_auth_context(request).require_company()
    try:
        return Membership.objects.select_related("user", "company").get(id=membership_id, company=company)
    except Membership.DoesNotExist:
        raise HttpError(404, "Member not found") from None


def _reject_self(request: HttpRequest, membership: Membership, action: str) -> None:
    if membership.user_id == get_auth_context(request).require_auth().id:
        raise HttpError(400, f"You cannot {action} yourself")


@team_router.get(
    "/",
    response={200: TeamResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="listTeam",
    summary="List team members",
)
@require_capability(Capability.VIEW_TEAM)
def list_team(request: HttpRequest, include_archived: bool = False) -> TeamResponse:
    """List members of the current company with seat usage."""
    _, company = get_auth_context(request).require_company()
    members = services.list_team(company, include_archived=include_archived)

    return TeamResponse(
        members=[_member_response(m) for m in members],
        seat_limit=get_effective_seat_limit(company),
        seat_count=company.seat_count,
    )


@team_router.post(
    "/",
    response={
        201: MemberResponse,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        409: ErrorResponse,
    },
    auth=bearer_auth,
    operation_id="addTeamMember",
    summary="Add a team member",
)
@require_capability(Capability.MANAGE_TEAM)
def add_member(request: HttpRequest, payload: AddMemberRequest) -> tuple[int, MemberResponse]:
    """
    Add a member to the current company.

    Refused with 403 when the company has no free seat.
    """
    _, company = get_auth_context(request).require_company()

    try:
        membership = services.add_team_member(
            company=company,
            email=payload.email,
            role=payload.role,
            name=payload.name,
        )
    except SeatLimitExceededError as e:
        raise HttpError(403, str(e)) from e
    except AlreadyMemberError as e:
        raise HttpError(409, str(e)) from e
    except IdentityProviderError as e:
        raise HttpError(400, str(e)) from e

    return 201, _member_response(membership)


@team_router.patch(
    "/{membership_id}",
    response={200: MemberResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="updateTeamMember",
    summary="Update a team member",
)
@require_capability(Capability.MANAGE_TEAM)
def update_member(request: HttpRequest, membership_id: int, payload: UpdateMemberRequest) -> MemberResponse:
    """Change a member's role or display name."""
    membership = _get_company_membership(request, membership_id)
    membership = services.update_member(membership, role=payload.role, name=payload.name)
    return _member_response(membership)


@team_router.post(
    "/{membership_id}/archive",
    response={200: MemberResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="archiveTeamMember",
    summary="Archive a team member",
)
@require_capability(Capability.MANAGE_TEAM)
def archive_member(request: HttpRequest, membership_id: int) -> MemberResponse:
    """Deactivate a member. Archived members do not use a seat."""
    membership = _get_company_membership(request, membership_id)
    _reject_self(request, membership, "archive")
    return _member_response(services.archive_member(membership))


@team_router.post(
    "/{membership_id}/restore",
    response={200: MemberResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="restoreTeamMember",
    summary="Restore an archived team member",
)
@require_capability(Capability.MANAGE_TEAM)
def restore_member(request: HttpRequest, membership_id: int) -> MemberResponse:
    """Reactivate an archived member, if a seat is free."""
    membership = _get_company_membership(request, membership_id)
    try:
        membership = services.restore_member(membership)
    except SeatLimitExceededError as e:
        raise HttpError(403, str(e)) from e
    return _member_response(membership)


@team_router.delete(
    "/{membership_id}",
    response={200: MessageResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="removeTeamMember",
    summary="Remove a team member",
)
@require_capability(Capability.MANAGE_TEAM)
def remove_member(request: HttpRequest, membership_id: int) -> MessageResponse:
    """Delete a member from the company and from Stytch."""
    membership = _get_company_membership(request, membership_id)
    _reject_self(request, membership, "remove")

    try:
        services.remove_member(membership)
    except IdentityProviderError as e:
        raise HttpError(400, str(e)) from e

    return MessageResponse(message="Member removed")
