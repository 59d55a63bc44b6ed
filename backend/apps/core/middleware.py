"""
Core middleware.

StytchAuthMiddleware validates the session JWT and establishes the
execution context (user, company, mode) for the rest of the request.
"""

from collections.abc import Callable

from django.http import HttpRequest, HttpResponse
from stytch.core.response_base import StytchError

from apps.access.resolver import MODE_COMPANY, MODE_PLATFORM
from apps.accounts import stytch_client
from apps.accounts.models import Membership, User
from apps.accounts.services import sync_session_to_local
from apps.companies.models import Company
from apps.core.auth import AuthContext
from apps.core.logging import bind_contextvars, clear_contextvars, get_logger

logger = get_logger(__name__)

PUBLIC_PATH_PREFIXES = (
    "/api/v1/health",
    "/api/v1/docs",
    "/api/v1/openapi.json",
    "/admin/",
    "/webhooks/",
)

# Lets a super-admin enter a company from the control center
ENVIRONMENT_HEADER = "X-Environment-Id"


class StytchAuthMiddleware:
    """
    Authenticate Stytch session JWTs and attach ``request.auth_context``.

    - Regular members operate in "company" mode inside their membership's company.
      Archived memberships are rejected.
    - Super-admins operate in "platform" mode, or in "company" mode for the
      company named by the X-Environment-Id header.
    - Unknown members are synced just-in-time from Stytch.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request.auth_context = AuthContext()  # type: ignore[attr-defined]

        if not request.path.startswith(PUBLIC_PATH_PREFIXES):
            token = self._get_bearer_token(request)
            if token:
                self._authenticate_jwt(request, token)

        try:
            return self.get_response(request)
        finally:
            clear_contextvars()

    @staticmethod
    def _get_bearer_token(request: HttpRequest) -> str | None:
        header = request.META.get("HTTP_AUTHORIZATION", "")
        if not header.startswith("Bearer "):
            return None
        return header.removeprefix("Bearer ").strip() or None

    def _authenticate_jwt(self, request: HttpRequest, token: str) -> None:
        client = stytch_client.get_stytch_client()

        try:
            response = client.sessions.authenticate_jwt(session_jwt=token)
            member_id = response.member_session.member_id

            membership = (
                Membership.objects.select_related("user", "company")
                .filter(stytch_member_id=member_id)
                .first()
            )
            if membership is None:
                # Member exists in Stytch but not locally yet
                full = client.sessions.authenticate(session_jwt=token)
                _, membership, _ = sync_session_to_local(full.member, full.organization)
        except StytchError as e:
            logger.info("auth_jwt_rejected", error=e.details.error_message)
            request.auth_context = AuthContext(failed=True)  # type: ignore[attr-defined]
            return

        request.auth_context = self._build_context(request, membership)  # type: ignore[attr-defined]

    def _build_context(self, request: HttpRequest, membership: Membership) -> AuthContext:
        user: User = membership.user

        if user.is_super_admin:
            company = self._get_requested_company(request)
            if company is None:
                context = AuthContext(user=user, mode=MODE_PLATFORM)
            else:
                own = membership if membership.company_id == company.id else None
                context = AuthContext(user=user, membership=own, company=company, mode=MODE_COMPANY)
        elif not membership.is_active:
            logger.info("auth_membership_archived", membership_id=membership.id)
            return AuthContext(failed=True)
        else:
            context = AuthContext(
                user=user,
                membership=membership,
                company=membership.company,
                mode=MODE_COMPANY,
            )

        bind_contextvars(
            mode=context.mode,
            **{
                "usr.id": str(user.id),
                "company.id": str(context.company.id) if context.company else None,
            },
        )
        return context

    @staticmethod
    def _get_requested_company(request: HttpRequest) -> Company | None:
        raw = request.headers.get(ENVIRONMENT_HEADER, "").strip()
        if not raw.isdigit():
            return None
        return Company.objects.filter(id=int(raw)).first()
