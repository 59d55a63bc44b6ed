"""
Suspension level derived from subscription status and grace period.

Informational: it drives banners and read-only hints, while the resolver
alone decides which capabilities a caller has.
"""

from datetime import datetime
from enum import StrEnum

from apps.access.resolver import ACTIVE_STATUSES


class SuspensionLevel(StrEnum):
    NONE = "none"
    READ_ONLY = "read_only"
    BLOCKED = "blocked"


def in_grace_period(status: str | None, grace_period_ends_at: datetime | None, now: datetime) -> bool:
    """True while a past_due tenant's grace period has not expired."""
    return status == "past_due" and grace_period_ends_at is not None and grace_period_ends_at > now


def get_suspension_level(
    status: str | None,
    grace_period_ends_at: datetime | None,
    now: datetime,
) -> SuspensionLevel:
    """
    Determine the access level for a tenant.

    - active / trialing: none
    - past_due inside the grace period: none
    - past_due after the grace period: read_only
    - anything else (canceled, unpaid, incomplete, unknown): blocked
    """
    if status in ACTIVE_STATUSES:
        return SuspensionLevel.NONE

    if status == "past_due":
        if in_grace_period(status, grace_period_ends_at, now):
            return SuspensionLevel.NONE
        return SuspensionLevel.READ_ONLY

    return SuspensionLevel.BLOCKED
