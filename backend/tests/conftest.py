"""
Shared pytest fixtures for all tests.

This module provides common fixtures used across multiple test modules.
Individual test modules can override these fixtures if needed.

Factories
---------
Import factories directly from their modules:

    from tests.accounts.factories import MembershipFactory, UserFactory
    from tests.companies.factories import CompanyFactory
    from tests.billing.factories import BillingEventFactory

Example usage:

    @pytest.mark.django_db
    def test_something():
        company = CompanyFactory.create(subscription_tier="growth")
        membership = MembershipFactory.create(company=company, role="manager")
"""

from collections.abc import Callable
from typing import Any, cast

import pytest
from django.test import Client, RequestFactory
from django.test.client import WSGIRequest  # type: ignore[attr-defined]
from stytch.core.response_base import StytchError, StytchErrorDetails

from apps.access.plans import get_plan_catalog
from apps.access.resolver import MODE_COMPANY, MODE_PLATFORM
from apps.core.auth import AuthContext
from apps.core.types import AuthenticatedHttpRequest


@pytest.fixture(autouse=True)
def _fresh_plan_catalog():
    """The catalog is cached per process; rebuild it around every test."""
    get_plan_catalog.cache_clear()
    yield
    get_plan_catalog.cache_clear()


def make_request_with_auth(request: "WSGIRequest", auth: AuthContext) -> AuthenticatedHttpRequest:
    """
    Set the auth context on a request and return it typed as AuthenticatedHttpRequest.

    Example:
        request = request_factory.get("/api/v1/endpoint")
        request = make_request_with_auth(request, AuthContext(user=user, membership=m, company=c, mode="company"))
    """
    request.auth_context = auth  # type: ignore[attr-defined]
    return cast(AuthenticatedHttpRequest, request)


def company_context(membership: Any) -> AuthContext:
    """Auth context of a member operating inside their own company."""
    return AuthContext(
        user=membership.user,
        membership=membership,
        company=membership.company,
        mode=MODE_COMPANY,
    )


def platform_context(user: Any, company: Any = None) -> AuthContext:
    """Auth context of a super-admin, in platform mode or inside ``company``."""
    if company is None:
        return AuthContext(user=user, mode=MODE_PLATFORM)
    return AuthContext(user=user, company=company, mode=MODE_COMPANY)


@pytest.fixture
def request_factory() -> RequestFactory:
    """
    Django request factory for unit testing views.

    Use this when you need to test view functions directly without going through
    the full HTTP stack. Useful for testing Django Ninja endpoints.
    """
    return RequestFactory()


@pytest.fixture
def api_client() -> Client:
    """
    Django test client for full HTTP request/response cycle tests.

    Example:
        def test_api_returns_200(api_client):
            response = api_client.get("/api/v1/health")
            assert response.status_code == 200
    """
    return Client()


@pytest.fixture
def authenticated_request(
    request_factory: RequestFactory,
) -> Callable[..., AuthenticatedHttpRequest]:
    """
    Factory fixture for creating requests authenticated as a company member.

    Example:
        def test_endpoint(authenticated_request):
            membership = MembershipFactory.create(role="admin")
            request = authenticated_request(membership, method="post", path="/api/v1/team/")
            result = add_member(request, payload)
    """
    from tests.accounts.factories import MembershipFactory

    def _make_request(
        membership: Any = None,
        method: str = "get",
        path: str = "/",
        data: dict | None = None,
        content_type: str = "application/json",
        auth: AuthContext | None = None,
    ) -> AuthenticatedHttpRequest:
        if auth is None:
            if membership is None:
                membership = MembershipFactory.create()
            auth = company_context(membership)

        method_func = getattr(request_factory, method.lower())
        kwargs: dict[str, Any] = {}
        if data is not None:
            kwargs["data"] = data
            kwargs["content_type"] = content_type

        return make_request_with_auth(method_func(path, **kwargs), auth)

    return _make_request


@pytest.fixture
def member(db):
    """
    Create an operator in an active starter company.

    Example:
        def test_member_action(member):
            assert member.role == "operator"
    """
    from tests.accounts.factories import MembershipFactory

    return MembershipFactory.create()


@pytest.fixture
def super_admin(db):
    """Create a platform super-admin without any membership."""
    from tests.accounts.factories import UserFactory

    return UserFactory.create(is_super_admin=True)


def stytch_error(status_code: int = 400, message: str = "Stytch error", error_type: str = "bad_request") -> StytchError:
    """Build a StytchError as the client raises it."""
    return StytchError(
        StytchErrorDetails(
            status_code=status_code,
            request_id="test-request-id",
            error_type=error_type,
            error_message=message,
        )
    )
