import logging

from core.authentication import (
    AUTH_COOKIE_NAME,
    decode_jwt_token,
    get_current_user_payload,
    TokenPayload,
)
from core.db import get_db_session
from core.errors import AuthenticationError, UnsupportedProviderError
from core.logging_setup import log_step
from fastapi import APIRouter, Depends, Request, Response
from integrations import google, outlook
from providers import is_provider_supported, list_supported_providers
from services.sessions import delete_session, load_session
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

LOGIN_FLOWS = {
    "google": google,
    "outlook": outlook,
}


def create_auth_router() -> APIRouter:
    """
    Creates the REST API router for auth.
    """
    router = APIRouter(
        prefix="/api/auth",
    )
    LOG_STEP = "API-AUTH"

    @router.get("/providers")
    async def get_providers():
        """
        Lists the providers a user can log in with: supported and configured.
        """
        providers = [
            name for name in list_supported_providers() if LOGIN_FLOWS[name].is_configured()
        ]
        return {"providers": providers}

    @router.get("/status")
    async def auth_status(request: Request, db: AsyncSession = Depends(get_db_session)):
        """
        Reports whether the browser holds a live session, and for which provider.
        """
        token = request.cookies.get(AUTH_COOKIE_NAME)
        if not token:
            return {"isAuthenticated": False, "provider": None}

        try:
            payload = decode_jwt_token(token)
            context = await load_session(db, payload.resource, int(payload.sub))
        except (AuthenticationError, ValueError):
            return {"isAuthenticated": False, "provider": None}

        return {"isAuthenticated": True, "provider": context.provider}

    @router.get("/callback")
    async def google_callback(request: Request, db: AsyncSession = Depends(get_db_session)):
        """
        Handles the OAuth redirect from Google.
        Exchanges code for tokens, stores the session and sets an auth cookie.
        """
        with log_step(LOG_STEP):
            logger.debug("Handling Google OAuth callback.")
            return await google.handle_callback(request, db)

    @router.get("/outlook/callback")
    async def outlook_callback(request: Request, db: AsyncSession = Depends(get_db_session)):
        """
        Handles the OAuth redirect from Microsoft.
        """
        with log_step(LOG_STEP):
            logger.debug("Handling Outlook OAuth callback.")
            return await outlook.handle_callback(request, db)

    @router.post("/logout")
    async def logout(
        response: Response,
        payload: TokenPayload = Depends(get_current_user_payload),
        db: AsyncSession = Depends(get_db_session),
    ):
        """
        Deletes the server-side session and clears the auth cookie.
        """
        with log_step(LOG_STEP):
            logger.info(f"Handling logout for user: {payload.sub}")
            await delete_session(db, payload.resource)
            response.delete_cookie(AUTH_COOKIE_NAME)
            return {"success": True}

    @router.get("/{provider}")
    async def login(provider: str, response: Response):
        """
        Starts the OAuth flow for a provider and returns the URL to redirect to.
        """
        with log_step(LOG_STEP):
            if not is_provider_supported(provider):
                logger.warning(f"Login requested for unsupported provider: {provider}")
                raise UnsupportedProviderError(provider)
            logger.debug(f"Handling {provider} login request.")
            return await LOGIN_FLOWS[provider.lower()].handle_login(response)

    return router
