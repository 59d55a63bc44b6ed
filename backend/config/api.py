"""
Django Ninja API configuration.
"""

from django.http import HttpRequest
from ninja import NinjaAPI

from apps.accounts.api import router as auth_router
from apps.accounts.api import team_router
from apps.billing.api import router as billing_router
from apps.companies.api import router as platform_router

api = NinjaAPI(
    title="Beto Console API",
    version="1.0.0",
    description="Multi-tenant console API with Stytch authentication and Stripe billing.",
    openapi_extra={
        "info": {
            "contact": {"name": "API Support"},
        },
        "tags": [
            {
                "name": "auth",
                "description": "Magic link authentication, sessions and the caller's authorization",
            },
            {
                "name": "team",
                "description": "Members of the current company",
            },
            {
                "name": "billing",
                "description": "Subscription summary, checkout and customer portal",
            },
            {
                "name": "platform",
                "description": "Tenant administration for super-admins",
            },
            {
                "name": "health",
                "description": "Service health and readiness checks",
            },
        ],
        "components": {
            "securitySchemes": {
                "bearerAuth": {
                    "type": "http",
                    "scheme": "bearer",
                    "bearerFormat": "JWT",
                    "description": "Stytch session JWT obtained from /auth/discovery/exchange. Include as: Authorization: Bearer <session_jwt>. Super-admins may add X-Environment-Id: <company id> to operate inside a company.",
                }
            }
        },
    },
)

# Register routers
api.add_router("/auth", auth_router)
api.add_router("/team", team_router)
api.add_router("/billing", billing_router)
api.add_router("/platform", platform_router)


@api.get("/health", tags=["health"], operation_id="healthCheck", summary="Health check")
def health_check(request: HttpRequest) -> dict:
    """Health check endpoint for load balancer."""
    return {"status": "ok"}
