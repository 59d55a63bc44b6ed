"""
Tests for the authorization resolver.
"""

import pytest

from apps.access.capabilities import ALL_CAPABILITIES, ALL_MODULES, READ_ONLY_CAPABILITIES, Capability, Module
from apps.access.plans import DEFAULT_PLANS, build_plan_catalog
from apps.access.resolver import (
    MODE_COMPANY,
    MODE_PLATFORM,
    ExecutionContext,
    SubscriptionState,
    resolve,
)

TENANT = ExecutionContext(mode=MODE_COMPANY, company_id="42")


def active(tier: str, seat_limit_override: int | None = None) -> SubscriptionState:
    return SubscriptionState(status="active", tier=tier, seat_limit_override=seat_limit_override)


class TestPlanResolution:
    """Tier to plan, with demo as the fallback."""

    def test_known_tier_resolves_to_plan(self) -> None:
        """An active starter tenant gets the starter plan."""
        result = resolve(TENANT, active("starter"))

        assert result.plan_key == "starter"
        assert result.effective_plan_key == "starter"
        assert result.can(Capability.MANAGE_TEAM)
        assert not result.can(Capability.DELETE_COSTS)

    @pytest.mark.parametrize("tier", ["platinum", "", None])
    def test_unknown_tier_resolves_to_demo(self, tier: str | None) -> None:
        """Unknown or missing tiers degrade to demo instead of failing."""
        result = resolve(TENANT, SubscriptionState(status="active", tier=tier))

        assert result.plan_key == "demo"
        assert result.effective_plan_key == "demo"
        assert result.capabilities == frozenset({"view_costs"})
        assert result.modules == frozenset({"dashboard"})


class TestStatusEnforcement:
    """Only active and trialing subscriptions unlock the stored plan."""

    @pytest.mark.parametrize("status", ["active", "trialing"])
    def test_good_standing_keeps_plan(self, status: str) -> None:
        result = resolve(TENANT, SubscriptionState(status=status, tier="growth"))

        assert result.is_active is True
        assert result.effective_plan_key == "growth"
        assert result.capabilities == ALL_CAPABILITIES

    @pytest.mark.parametrize(
        "status",
        ["past_due", "canceled", "unpaid", "incomplete", "incomplete_expired", "bogus", None],
    )
    def test_other_statuses_degrade_to_demo(self, status: str | None) -> None:
        """An enterprise tenant that is not in good standing is treated as demo."""
        result = resolve(TENANT, SubscriptionState(status=status, tier="enterprise"))

        assert result.is_active is False
        assert result.is_restricted is True
        assert result.effective_plan_key == "demo"
        assert result.capabilities == frozenset({"view_costs"})
        assert result.seat_limit == 3

    def test_stored_tier_is_preserved_for_display(self) -> None:
        """The nominal plan is still reported while the effective plan is demo."""
        result = resolve(TENANT, SubscriptionState(status="past_due", tier="enterprise"))

        assert result.plan_key == "enterprise"
        assert result.plan_label == "Enterprise"
        assert result.effective_plan_key == "demo"


class TestSuperAdmin:
    """Platform operators."""

    def test_platform_mode_grants_full_universe(self) -> None:
        """A super-admin in platform mode can do everything, regardless of subscription."""
        context = ExecutionContext(is_super_admin=True, mode=MODE_PLATFORM)

        result = resolve(context, SubscriptionState(status="canceled", tier="demo"))

        assert result.capabilities == ALL_CAPABILITIES
        assert result.modules == ALL_MODULES
        assert result.can(Capability.MANAGE_TENANTS)

    def test_platform_mode_without_subscription(self) -> None:
        result = resolve(ExecutionContext(is_super_admin=True, mode=MODE_PLATFORM))

        assert result.capabilities == ALL_CAPABILITIES

    def test_super_admin_inside_company_gets_company_plan(self) -> None:
        """Impersonating a company shows exactly what its members see."""
        context = ExecutionContext(is_super_admin=True, mode=MODE_COMPANY, company_id="7")

        result = resolve(context, active("starter"))

        assert result.capabilities == resolve(TENANT, active("starter")).capabilities
        assert not result.can(Capability.MANAGE_TENANTS)

    def test_non_admin_platform_mode_is_read_only(self) -> None:
        context = ExecutionContext(is_super_admin=False, mode=MODE_PLATFORM)

        result = resolve(context, active("enterprise"))

        assert result.capabilities == READ_ONLY_CAPABILITIES


class TestNoTenant:
    """Callers without a bound tenant."""

    def test_no_mode_gets_read_only_subset(self) -> None:
        """Mode unset and not a super-admin: exactly the read-only capabilities."""
        result = resolve(ExecutionContext(), active("enterprise"))

        assert result.capabilities == READ_ONLY_CAPABILITIES
        assert result.capabilities == frozenset(
            {"view_costs", "view_products", "view_raw_materials", "view_team"}
        )
        assert result.effective_plan_key == "demo"

    def test_company_mode_without_company_id_is_read_only(self) -> None:
        result = resolve(ExecutionContext(mode=MODE_COMPANY), active("growth"))

        assert result.capabilities == READ_ONLY_CAPABILITIES
        assert result.is_restricted is True


class TestWildcardExpansion:
    """AllGrants expands to the universe the catalog is built with."""

    def test_wildcard_plan_picks_up_new_capability(self) -> None:
        """A synthetic capability added to the universe is granted by a wildcard plan."""
        universe = ALL_CAPABILITIES | {"export_reports"}
        catalog = build_plan_catalog(DEFAULT_PLANS, capability_universe=universe)

        growth = resolve(TENANT, active("growth"), catalog)
        starter = resolve(TENANT, active("starter"), catalog)

        assert "export_reports" in growth.capabilities
        assert growth.capabilities == universe
        assert "export_reports" not in starter.capabilities

    def test_wildcard_modules_expand(self) -> None:
        result = resolve(TENANT, active("scale"))

        assert result.modules == ALL_MODULES
        assert result.has_module(Module.FINISHED_GOODS)


class TestSeatLimit:
    """Override wins over the plan default."""

    def test_override_wins(self) -> None:
        """Seat override 7 on a 3-seat plan yields 7."""
        result = resolve(TENANT, SubscriptionState(status="active", tier="demo", seat_limit_override=7))

        assert result.seat_limit == 7
        assert result.seat_limit_from_plan == 3

    def test_plan_default_without_override(self) -> None:
        """Growth with no override yields 10."""
        assert resolve(TENANT, active("growth")).seat_limit == 10

    def test_restricted_tenant_uses_demo_default(self) -> None:
        result = resolve(TENANT, SubscriptionState(status="canceled", tier="scale"))

        assert result.seat_limit == 3

    def test_override_survives_restriction(self) -> None:
        result = resolve(TENANT, SubscriptionState(status="unpaid", tier="scale", seat_limit_override=12))

        assert result.seat_limit == 12


class TestResolverIsPure:
    def test_same_inputs_same_result(self) -> None:
        assert resolve(TENANT, active("starter")) == resolve(TENANT, active("starter"))

    def test_missing_subscription_is_demo(self) -> None:
        result = resolve(TENANT)

        assert result.effective_plan_key == "demo"
        assert result.is_active is False
