"""
Accounts API schemas - Pydantic models for request/response.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from apps.accounts.models import Membership

# --- Request Schemas ---


class MagicLinkSendRequest(BaseModel):
    """Request to send a magic link email."""

    email: EmailStr = Field(
        ...,
        description="User's email address for magic link delivery",
        examples=["user@company.com"],
    )


class MagicLinkAuthenticateRequest(BaseModel):
    """Request to authenticate a magic link token."""

    token: str = Field(
        ...,
        description="Magic link token from the email URL query parameter",
        examples=["DOYoip3rvIMMW2A7LRLI4M3EjcxZ..."],
    )


class DiscoveryExchangeRequest(BaseModel):
    """Request to exchange IST for a session in one of the user's companies."""

    intermediate_session_token: str = Field(
        ...,
        description="Intermediate session token from magic link authentication",
        examples=["ist_xxx..."],
    )
    organization_id: str = Field(
        ...,
        description="Stytch organization ID of the company to enter",
        examples=["organization-live-abc123..."],
    )


class AddMemberRequest(BaseModel):
    """Request to add a member to the current company."""

    email: EmailStr
    name: str = Field("", max_length=255)
    role: Membership.Role = Membership.Role.OPERATOR


class UpdateMemberRequest(BaseModel):
    """Request to change a member's role or display name."""

    role: Membership.Role | None = None
    name: str | None = Field(None, max_length=255)


# --- Response Schemas ---


class DiscoveredOrganization(BaseModel):
    """A company the user can enter."""

    organization_id: str = Field(..., description="Stytch organization ID")
    organization_name: str = Field(..., description="Company display name")
    organization_slug: str = Field(..., description="URL-safe company identifier")


class MagicLinkAuthenticateResponse(BaseModel):
    """Response after magic link authentication."""

    intermediate_session_token: str = Field(
        ...,
        description="Token to exchange for a session once a company is chosen",
    )
    email: str
    discovered_organizations: list[DiscoveredOrganization]


class SessionResponse(BaseModel):
    """Session tokens after entering a company."""

    session_token: str
    session_jwt: str = Field(..., description="JWT to send as Bearer token")
    member_id: str
    organization_id: str


class UserInfo(BaseModel):
    id: int
    email: str
    name: str
    is_super_admin: bool


class CompanyInfo(BaseModel):
    id: int
    name: str
    slug: str
    subscription_status: str
    subscription_tier: str


class AuthorizationInfo(BaseModel):
    """What the caller may do in the current execution context."""

    mode: str | None
    plan_key: str
    plan_label: str
    effective_plan_key: str
    is_active: bool
    is_restricted: bool
    capabilities: list[str]
    modules: list[str]
    seat_limit: int


class MeResponse(BaseModel):
    """Current user, company and resolved authorization."""

    user: UserInfo
    role: str | None = Field(None, description="Role in the current company, if a member")
    company: CompanyInfo | None
    is_impersonating: bool
    authorization: AuthorizationInfo


class MemberResponse(BaseModel):
    """A membership in the current company."""

    id: int
    user_id: int
    email: str
    name: str
    role: str
    is_active: bool
    created_at: datetime


class TeamResponse(BaseModel):
    """Team listing with seat usage."""

    members: list[MemberResponse]
    seat_limit: int
    seat_count: int
