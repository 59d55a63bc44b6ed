"""
Plan catalog.

A plan bundles a default seat limit, the modules it makes visible and the
capabilities it allows. Grants are tagged values: ``AllGrants`` means "the
whole universe, as enumerated at resolution time", ``ExplicitGrants`` is a
fixed token set. The ``"*"`` wildcard only exists in serialized config and is
decoded here.

The catalog is immutable. ``get_plan_catalog()`` builds it once per process
from settings; the resolver receives it as an argument.
"""

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from django.conf import settings

from apps.access.capabilities import ALL_CAPABILITIES, ALL_MODULES, Capability, Module

WILDCARD = "*"
DEMO_PLAN = "demo"


@dataclass(frozen=True)
class AllGrants:
    """Grant every token in the current universe."""


@dataclass(frozen=True)
class ExplicitGrants:
    """Grant exactly these tokens."""

    tokens: frozenset[str] = frozenset()


Grants = AllGrants | ExplicitGrants


def expand_grants(grants: Grants, universe: frozenset[str]) -> frozenset[str]:
    """Expand a grant against the universe of known tokens."""
    match grants:
        case AllGrants():
            return universe
        case ExplicitGrants(tokens=tokens):
            return tokens


def decode_grants(value: Iterable[str] | str) -> Grants:
    """
    Decode a serialized grant list.

    ``["*"]`` (or a bare ``"*"``) becomes ``AllGrants``; anything else becomes
    ``ExplicitGrants`` with the listed tokens.
    """
    if isinstance(value, str):
        value = [value]
    tokens = frozenset(str(v) for v in value)
    if WILDCARD in tokens:
        return AllGrants()
    return ExplicitGrants(tokens)


@dataclass(frozen=True)
class Plan:
    """A named bundle of seat limit, modules and capabilities."""

    key: str
    label: str
    seat_limit: int
    modules: Grants = field(default_factory=ExplicitGrants)
    capabilities: Grants = field(default_factory=ExplicitGrants)


@dataclass(frozen=True)
class PlanCatalog:
    """
    Immutable set of plans plus the token universes wildcards expand to.

    Must contain a ``demo`` plan; it is the fallback for unknown tiers and
    for tenants whose subscription is not in good standing.
    """

    plans: tuple[Plan, ...]
    capability_universe: frozenset[str] = ALL_CAPABILITIES
    module_universe: frozenset[str] = ALL_MODULES

    def __post_init__(self) -> None:
        if not any(p.key == DEMO_PLAN for p in self.plans):
            raise ValueError("Plan catalog must define a 'demo' plan")

    def __contains__(self, key: object) -> bool:
        return any(p.key == key for p in self.plans)

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(p.key for p in self.plans)

    @property
    def demo(self) -> Plan:
        return self.get(DEMO_PLAN)

    def get(self, key: str | None) -> Plan:
        """Return the plan for ``key``, or demo when the key is unknown or empty."""
        for plan in self.plans:
            if plan.key == key:
                return plan
        for plan in self.plans:
            if plan.key == DEMO_PLAN:
                return plan
        raise LookupError(DEMO_PLAN)  # unreachable, enforced in __post_init__

    def capabilities_for(self, plan: Plan) -> frozenset[str]:
        return expand_grants(plan.capabilities, self.capability_universe)

    def modules_for(self, plan: Plan) -> frozenset[str]:
        return expand_grants(plan.modules, self.module_universe)


DEFAULT_PLANS: dict[str, dict[str, Any]] = {
    "demo": {
        "label": "Demo",
        "seat_limit": 3,
        "enabled_modules": [Module.DASHBOARD],
        "allowed_capabilities": [Capability.VIEW_COSTS],
    },
    "starter": {
        "label": "Starter",
        "seat_limit": 4,
        "enabled_modules": [
            Module.DASHBOARD,
            Module.PRODUCTS,
            Module.FINISHED_GOODS,
            Module.RAW_MATERIALS,
            Module.TEAM,
            Module.SETTINGS,
        ],
        "allowed_capabilities": [
            Capability.VIEW_COSTS,
            Capability.EDIT_COSTS,
            Capability.VIEW_PRODUCTS,
            Capability.EDIT_PRODUCTS,
            Capability.VIEW_RAW_MATERIALS,
            Capability.EDIT_RAW_MATERIALS,
            Capability.VIEW_TEAM,
            Capability.MANAGE_TEAM,
            Capability.CONFIGURE_SYSTEM,
        ],
    },
    "growth": {
        "label": "Growth",
        "seat_limit": 10,
        "enabled_modules": [WILDCARD],
        "allowed_capabilities": [WILDCARD],
    },
    "scale": {
        "label": "Scale",
        "seat_limit": 25,
        "enabled_modules": [WILDCARD],
        "allowed_capabilities": [WILDCARD],
    },
    "enterprise": {
        "label": "Enterprise",
        "seat_limit": 999,
        "enabled_modules": [WILDCARD],
        "allowed_capabilities": [WILDCARD],
    },
}


def build_plan_catalog(
    config: Mapping[str, Mapping[str, Any]],
    capability_universe: frozenset[str] = ALL_CAPABILITIES,
    module_universe: frozenset[str] = ALL_MODULES,
) -> PlanCatalog:
    """
    Decode a plan mapping into a catalog.

    Config format (same as the ``PLAN_CATALOG`` setting)::

        {"growth": {"label": "Growth", "seat_limit": 10,
                    "enabled_modules": ["*"], "allowed_capabilities": ["*"]}}
    """
    plans = tuple(
        Plan(
            key=key,
            label=str(entry.get("label") or key.title()),
            seat_limit=int(entry["seat_limit"]),
            modules=decode_grants(entry.get("enabled_modules", [])),
            capabilities=decode_grants(entry.get("allowed_capabilities", [])),
        )
        for key, entry in config.items()
    )
    return PlanCatalog(
        plans=plans,
        capability_universe=capability_universe,
        module_universe=module_universe,
    )


@lru_cache(maxsize=1)
def get_plan_catalog() -> PlanCatalog:
    """
    Process-wide plan catalog.

    Uses the ``PLAN_CATALOG`` setting (a JSON string or mapping) when set,
    otherwise the built-in defaults.
    """
    override = getattr(settings, "PLAN_CATALOG", None)
    if isinstance(override, str):
        override = json.loads(override) if override.strip() else None
    return build_plan_catalog(override or DEFAULT_PLANS)
