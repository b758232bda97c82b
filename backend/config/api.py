"""
Django Ninja API configuration.

Each route builds a fresh ``ServiceContext`` from the environment and hands
it to the matching handler.
"""

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from ninja import NinjaAPI

from apps.service import handlers
from apps.service.context import get_service_context

api = NinjaAPI(
    title="Backend Payload Service",
    version="1.0.0",
    description="Demo backend served behind a TLS-terminating load balancer.",
    # The root path belongs to the service; docs only in development.
    docs_url="/docs" if settings.DEBUG else None,
    openapi_extra={
        "tags": [
            {"name": "health", "description": "Service health checks"},
            {"name": "diagnostics", "description": "Deployment diagnostics (echo injected secrets)"},
        ],
    },
)


@api.get("/", include_in_schema=False)
def index(request: HttpRequest) -> HttpResponse:
    return handlers.index(get_service_context())


@api.get("/health", tags=["health"], operation_id="healthCheck", summary="Health check")
def health(request: HttpRequest) -> HttpResponse:
    """Health check endpoint for load balancer."""
    return handlers.health(get_service_context())


@api.get("/secret", tags=["diagnostics"], summary="Show the application secret")
def secret(request: HttpRequest) -> HttpResponse:
    return handlers.secret(get_service_context())


@api.get("/secrets", tags=["diagnostics"], summary="Show all injected secrets")
def secrets(request: HttpRequest) -> HttpResponse:
    return handlers.secrets(get_service_context())


@api.get("/dbconnect", tags=["diagnostics"], summary="Database round trip")
def dbconnect(request: HttpRequest) -> HttpResponse:
    """Insert a random value into the database and read it back."""
    return handlers.dbconnect(get_service_context())
