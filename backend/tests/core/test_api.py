"""
End-to-end tests through the URL configuration.

Requests go through StytchAuthMiddleware and the ninja routers, with the
Stytch client mocked.
"""

from dataclasses import dataclass
from unittest.mock import MagicMock, patch

import pytest
from django.test import Client

from tests.accounts.factories import MembershipFactory
from tests.companies.factories import CompanyFactory


@dataclass
class MockMemberSession:
    member_id: str


@dataclass
class MockJWTAuthResponse:
    member_session: MockMemberSession


@pytest.fixture
def stytch_session():
    """Make every bearer token resolve to the given Stytch member id."""
    with patch("apps.accounts.stytch_client.get_stytch_client") as mock_get_client:
        client = MagicMock()
        mock_get_client.return_value = client

        def _as(member_id: str) -> None:
            client.sessions.authenticate_jwt.return_value = MockJWTAuthResponse(
                member_session=MockMemberSession(member_id=member_id)
            )

        yield _as


class TestHealth:
    def test_health_is_public(self, api_client: Client) -> None:
        response = api_client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


@pytest.mark.django_db
class TestAuthenticatedRoutes:
    def test_me_requires_token(self, api_client: Client) -> None:
        assert api_client.get("/api/v1/auth/me").status_code == 401

    def test_me_with_session(self, api_client: Client, stytch_session) -> None:
        membership = MembershipFactory.create(stytch_member_id="member-1", role="manager")
        stytch_session("member-1")

        response = api_client.get("/api/v1/auth/me", HTTP_AUTHORIZATION="Bearer jwt")

        assert response.status_code == 200
        body = response.json()
        assert body["company"]["id"] == membership.company.id
        assert body["authorization"]["mode"] == "company"
        assert "view_team" in body["authorization"]["capabilities"]

    def test_capability_gate_returns_403(self, api_client: Client, stytch_session) -> None:
        company = CompanyFactory.create(subscription_tier="demo")
        MembershipFactory.create(stytch_member_id="member-1", company=company, role="owner")
        stytch_session("member-1")

        response = api_client.get("/api/v1/team/", HTTP_AUTHORIZATION="Bearer jwt")

        assert response.status_code == 403
        assert response.json() == {"detail": "Missing capability: view_team"}

    def test_platform_routes_need_super_admin(self, api_client: Client, stytch_session) -> None:
        MembershipFactory.create(stytch_member_id="member-1", role="owner")
        stytch_session("member-1")

        response = api_client.get("/api/v1/platform/companies", HTTP_AUTHORIZATION="Bearer jwt")

        assert response.status_code == 403

    def test_super_admin_lists_companies(self, api_client: Client, stytch_session) -> None:
        MembershipFactory.create(stytch_member_id="member-root", user__is_super_admin=True)
        CompanyFactory.create()
        stytch_session("member-root")

        response = api_client.get("/api/v1/platform/companies", HTTP_AUTHORIZATION="Bearer jwt")

        assert response.status_code == 200
        assert len(response.json()["companies"]) == 2


@pytest.mark.django_db
class TestAdmin:
    def test_admin_login_page(self, api_client: Client) -> None:
        assert api_client.get("/admin/login/").status_code == 200

    def test_admin_changelists(self, api_client: Client) -> None:
        from apps.accounts.models import User

        admin_user = User.objects.create_superuser(email="root@example.com")
        api_client.force_login(admin_user)
        MembershipFactory.create()

        for path in (
            "/admin/companies/company/",
            "/admin/accounts/user/",
            "/admin/accounts/membership/",
            "/admin/billing/billingevent/",
        ):
            assert api_client.get(path).status_code == 200, path
