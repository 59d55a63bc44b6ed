"""
Stytch role mapping.

Stytch RBAC roles only seed the local membership role when a member is first
synced. After that the local role is edited through the team endpoints, and
neither role ever grants a capability.
"""


class StytchRoles:
    """Stytch RBAC role identifiers, as configured in the Stytch Dashboard."""

    ADMIN = "stytch_admin"
    MEMBER = "stytch_member"


# Checked in order; the first match wins
LOCAL_ROLE_BY_STYTCH_ROLE: tuple[tuple[str, str], ...] = (
    (StytchRoles.ADMIN, "admin"),
    (StytchRoles.MEMBER, "operator"),
)

DEFAULT_LOCAL_ROLE = "operator"


def local_role_for(stytch_role_ids: list[str]) -> str:
    """Initial local role for a member holding ``stytch_role_ids``."""
    for stytch_role, local_role in LOCAL_ROLE_BY_STYTCH_ROLE:
        if stytch_role in stytch_role_ids:
            return local_role
    return DEFAULT_LOCAL_ROLE
