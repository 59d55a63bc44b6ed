"""
Authorization resolver.

Maps an execution context and a tenant's persisted subscription fields to the
effective plan, the allowed capability set, the visible modules and the
effective seat limit.

``resolve()`` is a total, pure function: unknown tiers, unknown statuses and
missing tenants all degrade to the most restrictive safe result instead of
raising. ``Authorization.can()`` is the only permission predicate the rest of
the codebase uses; nothing inspects role strings.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from apps.access.capabilities import READ_ONLY_CAPABILITIES
from apps.access.plans import PlanCatalog, get_plan_catalog

Mode = Literal["platform", "company"]

MODE_PLATFORM: Mode = "platform"
MODE_COMPANY: Mode = "company"

ACTIVE_STATUSES = frozenset({"active", "trialing"})


@dataclass(frozen=True)
class ExecutionContext:
    """
    Who is asking, and in which operating mode.

    Attributes:
        is_super_admin: Caller is a platform operator.
        mode: "platform" (control center), "company" (inside an environment)
            or None when no mode has been established.
        company_id: Tenant the caller is operating in, if any.
    """

    is_super_admin: bool = False
    mode: Mode | None = None
    company_id: str | None = None

    @property
    def is_operating_platform(self) -> bool:
        return self.is_super_admin and self.mode == MODE_PLATFORM

    @property
    def has_tenant(self) -> bool:
        return self.mode == MODE_COMPANY and self.company_id is not None


@dataclass(frozen=True)
class SubscriptionState:
    """Subscription fields of the bound tenant, as persisted."""

    status: str | None = None
    tier: str | None = None
    seat_limit_override: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


@dataclass(frozen=True)
class Authorization:
    """Result of resolving an execution context against a subscription."""

    plan_key: str
    plan_label: str
    effective_plan_key: str
    capabilities: frozenset[str]
    modules: frozenset[str]
    seat_limit: int
    seat_limit_from_plan: int
    is_active: bool
    is_restricted: bool

    def can(self, capability: str) -> bool:
        """Check whether ``capability`` is in the resolved set."""
        return str(capability) in self.capabilities

    def has_module(self, module: str) -> bool:
        return str(module) in self.modules


@lru_cache(maxsize=1024)
def _resolve(
    context: ExecutionContext,
    subscription: SubscriptionState,
    catalog: PlanCatalog,
) -> Authorization:
    # Nominal plan: unknown or missing tier silently degrades to demo
    nominal = catalog.get(subscription.tier)

    # Status enforcement: the stored tier is kept for display only
    is_active = subscription.is_active
    is_restricted = not is_active or not context.has_tenant
    effective = catalog.demo if is_restricted else nominal

    seat_limit_from_plan = effective.seat_limit
    if subscription.seat_limit_override is not None:
        seat_limit = subscription.seat_limit_override
    else:
        seat_limit = seat_limit_from_plan

    if context.is_operating_platform:
        capabilities = catalog.capability_universe
        modules = catalog.module_universe
    elif context.has_tenant:
        capabilities = catalog.capabilities_for(effective)
        modules = catalog.modules_for(effective)
    else:
        capabilities = READ_ONLY_CAPABILITIES & catalog.capability_universe
        modules = catalog.modules_for(effective)

    return Authorization(
        plan_key=nominal.key,
        plan_label=nominal.label,
        effective_plan_key=effective.key,
        capabilities=frozenset(capabilities),
        modules=frozenset(modules),
        seat_limit=seat_limit,
        seat_limit_from_plan=seat_limit_from_plan,
        is_active=is_active,
        is_restricted=is_restricted,
    )


def resolve(
    context: ExecutionContext,
    subscription: SubscriptionState | None = None,
    catalog: PlanCatalog | None = None,
) -> Authorization:
    """
    Resolve the authorization for a caller.

    Args:
        context: Execution context of the caller.
        subscription: Persisted subscription fields of the bound tenant.
            None when no tenant is bound.
        catalog: Plan catalog to resolve against. Defaults to the
            process-wide catalog.

    Returns:
        Authorization with the effective plan, capabilities, modules and
        seat limit. Never raises for any combination of inputs.
    """
    return _resolve(
        context,
        subscription if subscription is not None else SubscriptionState(),
        catalog if catalog is not None else get_plan_catalog(),
    )
