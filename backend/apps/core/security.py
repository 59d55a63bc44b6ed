"""
Core security - API authentication and capability checks.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any

from django.http import HttpRequest
from ninja.security import HttpBearer

from apps.core.auth import AuthContext


def get_auth_context(request: HttpRequest) -> AuthContext:
    """Return the request's auth context, or an empty one if middleware did not run."""
    context = getattr(request, "auth_context", None)
    if isinstance(context, AuthContext):
        return context
    return AuthContext()


class BearerAuth(HttpBearer):
    """
    Bearer token authentication for API endpoints.

    The JWT itself is validated by StytchAuthMiddleware. This class
    rejects requests the middleware could not authenticate and provides
    the OpenAPI security scheme.
    """

    def authenticate(self, request, token: str) -> str | None:
        """Return the token when the middleware authenticated the request, None otherwise (triggers 401)."""
        if not token:
            return None
        return token if get_auth_context(request).is_authenticated else None


def require_capability(capability: str) -> Callable:
    """
    Decorator for endpoints gated by a capability.

    Raises HttpError 401 when unauthenticated and 403 when the resolved
    authorization does not include ``capability``.

    Usage:
        @router.post("/team", auth=bearer_auth)
        @require_capability(Capability.MANAGE_TEAM)
        def add_member(request, payload): ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> Any:
            get_auth_context(request).require_capability(capability)
            return func(request, *args, **kwargs)

        return wrapper

    return decorator
