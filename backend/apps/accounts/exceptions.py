"""
Exceptions for accounts app.
"""


class MembershipError(Exception):
    """Base exception for team membership operations."""

    pass


class AlreadyMemberError(MembershipError):
    """User is already a member of the company."""

    pass


class IdentityProviderError(MembershipError):
    """Stytch rejected the member operation."""

    pass
