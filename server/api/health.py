from datetime import datetime, timezone

from core.config import settings
from fastapi import APIRouter
from providers import list_supported_providers


def create_health_router() -> APIRouter:
    """
    Creates the REST API router for runtime health. Never exposes secrets.
    """
    router = APIRouter(
        prefix="/api/health",
    )

    @router.get("/runtime")
    async def runtime():
        return {
            "frontendUrl": settings.FRONTEND_URL or None,
            "googleRedirectUri": settings.google_redirect_uri or None,
            "outlookRedirectUri": settings.outlook_redirect_uri or None,
            "providers": list_supported_providers(),
            "time": datetime.now(timezone.utc).isoformat(),
        }

    return router
