"""
Authentication context for request lifecycle.

Provides a typed container for the caller's identity and execution mode,
populated by StytchAuthMiddleware and consumed by endpoints.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ninja.errors import HttpError

from apps.access.resolver import (
    MODE_COMPANY,
    Authorization,
    ExecutionContext,
    Mode,
    resolve,
)

if TYPE_CHECKING:
    from apps.accounts.models import Membership, User
    from apps.companies.models import Company


@dataclass
class AuthContext:
    """
    Authentication state of a request.

    Attributes:
        user: The authenticated User, or None if not authenticated
        membership: The caller's Membership in ``company``. None for a
            super-admin entering a company they do not belong to.
        company: The Company the request operates in, or None in platform mode
        mode: "platform", "company", or None when unauthenticated
        failed: True if auth was attempted but failed (vs just not present)
    """

    user: "User | None" = None
    membership: "Membership | None" = None
    company: "Company | None" = None
    mode: Mode | None = None
    failed: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_impersonating(self) -> bool:
        """Super-admin operating inside a company without a membership."""
        return (
            self.user is not None
            and self.user.is_super_admin
            and self.mode == MODE_COMPANY
            and self.membership is None
        )

    @property
    def execution_context(self) -> ExecutionContext:
        return ExecutionContext(
            is_super_admin=bool(self.user and self.user.is_super_admin),
            mode=self.mode,
            company_id=str(self.company.id) if self.company is not None else None,
        )

    @property
    def authorization(self) -> Authorization:
        """Capabilities, modules and seat limit for this caller."""
        subscription = self.company.subscription_state if self.company is not None else None
        return resolve(self.execution_context, subscription)

    def can(self, capability: str) -> bool:
        return self.authorization.can(capability)

    def require_auth(self) -> "User":
        """
        Get the authenticated user or raise 401.

        Raises:
            HttpError 401: If not authenticated
        """
        if self.user is None:
            raise HttpError(401, "Not authenticated")
        return self.user

    def require_company(self) -> tuple["User", "Company"]:
        """
        Get the user and the company the request operates in.

        Raises:
            HttpError 401: If not authenticated
            HttpError 400: If no company is bound (platform mode)
        """
        user = self.require_auth()
        if self.company is None:
            raise HttpError(400, "No company selected")
        return user, self.company

    def require_capability(self, capability: str) -> "User":
        """
        Get the authenticated user after checking a capability.

        Raises:
            HttpError 401: If not authenticated
            HttpError 403: If the capability is not granted
        """
        user = self.require_auth()
        if not self.can(capability):
            raise HttpError(403, f"Missing capability: {capability}")
        return user
