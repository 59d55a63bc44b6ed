"""
Capability and module enumerations.

Capabilities are atomic permission tokens. A token is either in a resolved
set or it is not; there is no parameterisation and no hierarchy.
Adding a capability means adding it here and to every plan that grants it
explicitly. Plans granting everything pick it up automatically.
"""

from enum import StrEnum


class Capability(StrEnum):
    """Closed set of permission tokens."""

    # Cost management
    VIEW_COSTS = "view_costs"
    EDIT_COSTS = "edit_costs"
    DELETE_COSTS = "delete_costs"

    # Products
    VIEW_PRODUCTS = "view_products"
    EDIT_PRODUCTS = "edit_products"
    DELETE_PRODUCTS = "delete_products"

    # Raw materials
    VIEW_RAW_MATERIALS = "view_raw_materials"
    EDIT_RAW_MATERIALS = "edit_raw_materials"

    # Team
    VIEW_TEAM = "view_team"
    MANAGE_TEAM = "manage_team"

    # System
    CONFIGURE_SYSTEM = "configure_system"
    MANAGE_TENANTS = "manage_tenants"


class Module(StrEnum):
    """Feature modules a plan can make visible."""

    DASHBOARD = "dashboard"
    PRODUCTS = "products"
    FINISHED_GOODS = "finished_goods"
    RAW_MATERIALS = "raw_materials"
    TEAM = "team"
    SETTINGS = "settings"


ALL_CAPABILITIES: frozenset[str] = frozenset(c.value for c in Capability)
ALL_MODULES: frozenset[str] = frozenset(m.value for m in Module)

# Granted when no tenant is bound and the caller is not an operating super-admin.
READ_ONLY_CAPABILITIES: frozenset[str] = frozenset(
    c.value
    for c in (
        Capability.VIEW_COSTS,
        Capability.VIEW_PRODUCTS,
        Capability.VIEW_RAW_MATERIALS,
        Capability.VIEW_TEAM,
    )
)
