"""Health check endpoint."""

from fastapi import APIRouter

from mentormind.responses import success_response

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Liveness check; does not touch the database or vendors."""
    return success_response({"status": "ok"})
