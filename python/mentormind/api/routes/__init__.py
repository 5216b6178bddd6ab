"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from mentormind.api.routes.chat import router as chat_router
from mentormind.api.routes.health import router as health_router
from mentormind.api.routes.keys import router as keys_router
from mentormind.api.routes.ledger import router as ledger_router
from mentormind.api.routes.models import router as models_router


def create_api_router() -> APIRouter:
    """Create the API router with every route group registered."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(chat_router)
    api_router.include_router(models_router)
    api_router.include_router(keys_router)
    api_router.include_router(ledger_router)
    return api_router


__all__ = ["create_api_router"]
