"""
Platform API endpoints - tenant administration for super-admins.

Every endpoint requires the manage_tenants capability, which only an
operating super-admin resolves to.
"""

from django.http import HttpRequest
from ninja import Router
from ninja.errors import HttpError

from apps.access.capabilities import Capability
from apps.companies.exceptions import CompanyProvisioningError, InvalidPlanError
from apps.companies.models import Company
from apps.companies.schemas import (
    CompanyListResponse,
    CompanyResponse,
    CreateCompanyRequest,
    UpdateCompanyRequest,
)
from apps.companies.seats import get_company_authorization
from apps.companies.services import provision_company, update_company
from apps.core.schemas import ErrorResponse
from apps.core.security import BearerAuth, require_capability

router = Router(tags=["platform"])
bearer_auth = BearerAuth()


def _company_response(company: Company) -> CompanyResponse:
    authorization = get_company_authorization(company)
    return CompanyResponse(
        id=company.id,
        name=company.name,
        slug=company.slug,
        stytch_org_id=company.stytch_org_id,
        subscription_status=company.subscription_status,
        subscription_tier=company.subscription_tier,
        effective_plan_key=authorization.effective_plan_key,
        seat_limit=authorization.seat_limit,
        seat_limit_override=company.seat_limit,
        seat_count=company.seat_count,
        stripe_customer_id=company.stripe_customer_id,
        current_period_end=company.current_period_end,
        grace_period_ends_at=company.grace_period_ends_at,
        created_at=company.created_at,
    )


def _get_company(company_id: int) -> Company:
    try:
        return Company.objects.get(id=company_id)
    except Company.DoesNotExist:
        raise HttpError(404, "Company not found") from None


@router.get(
    "/companies",
    response={200: CompanyListResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="listCompanies",
    summary="List all companies",
)
@require_capability(Capability.MANAGE_TENANTS)
def list_companies(request: HttpRequest) -> CompanyListResponse:
    return CompanyListResponse(companies=[_company_response(c) for c in Company.objects.all()])


@router.post(
    "/companies",
    response={201: CompanyResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="createCompany",
    summary="Provision a company",
)
@require_capability(Capability.MANAGE_TENANTS)
def create_company(request: HttpRequest, payload: CreateCompanyRequest) -> tuple[int, CompanyResponse]:
    """
    Provision a company and its owner in Stytch and locally.

    The company starts trialing on the demo plan.
    """
    try:
        company, _ = provision_company(
            name=payload.name,
            slug=payload.slug,
            admin_email=payload.admin_email,
            admin_name=payload.admin_name,
        )
    except CompanyProvisioningError as e:
        raise HttpError(400, str(e)) from e

    return 201, _company_response(company)


@router.get(
    "/companies/{company_id}",
    response={200: CompanyResponse, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="getCompany",
    summary="Get a company",
)
@require_capability(Capability.MANAGE_TENANTS)
def get_company(request: HttpRequest, company_id: int) -> CompanyResponse:
    return _company_response(_get_company(company_id))


@router.patch(
    "/companies/{company_id}",
    response={200: CompanyResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="updateCompany",
    summary="Edit a company",
)
@require_capability(Capability.MANAGE_TENANTS)
def edit_company(request: HttpRequest, company_id: int, payload: UpdateCompanyRequest) -> CompanyResponse:
    """
    Edit name, slug, plan, status or seat limit override.

    Sending ``seat_limit: null`` clears the override.
    """
    company = _get_company(company_id)

    try:
        company = update_company(company, **payload.model_dump(exclude_unset=True))
    except (InvalidPlanError, CompanyProvisioningError, ValueError) as e:
        raise HttpError(400, str(e)) from e

    return _company_response(company)
