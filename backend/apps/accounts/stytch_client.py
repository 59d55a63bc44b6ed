"""
Stytch B2B client wrapper.

Stytch issues and validates sessions; this backend never mints tokens.
"""

from functools import lru_cache

import stytch
from django.conf import settings


@lru_cache(maxsize=1)
def get_stytch_client() -> stytch.B2BClient:
    """Get configured Stytch B2B client (singleton)."""
    return stytch.B2BClient(
        project_id=settings.STYTCH_PROJECT_ID,
        secret=settings.STYTCH_SECRET,
    )
