"""
Companies API schemas - platform tenant administration.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class CreateCompanyRequest(BaseModel):
    """Provision a company with its owner."""

    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=2, max_length=128, pattern=r"^[a-z0-9][a-z0-9-]*$")
    admin_email: EmailStr
    admin_name: str = Field("", max_length=255)


class UpdateCompanyRequest(BaseModel):
    """Tenant admin edits. Omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, min_length=2, max_length=128, pattern=r"^[a-z0-9][a-z0-9-]*$")
    subscription_status: str | None = None
    subscription_tier: str | None = None
    seat_limit: int | None = Field(None, ge=1, description="Seat limit override; null restores the plan default")


class CompanyResponse(BaseModel):
    id: int
    name: str
    slug: str
    stytch_org_id: str
    subscription_status: str
    subscription_tier: str
    effective_plan_key: str
    seat_limit: int
    seat_limit_override: int | None
    seat_count: int
    stripe_customer_id: str
    current_period_end: datetime | None
    grace_period_ends_at: datetime | None
    created_at: datetime


class CompanyListResponse(BaseModel):
    companies: list[CompanyResponse]
