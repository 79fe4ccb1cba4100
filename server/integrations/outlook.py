import asyncio
import logging
import time

from core.config import settings
from core.logging_setup import log_step
from core.errors import AppError, LoginError
from fastapi import Request, Response, status
from fastapi.responses import RedirectResponse
from integrations.common import complete_login, issue_login_state, read_callback_code
from providers.outlook import SCOPE, build_msal_app
from providers.schemas import OAuthTokens
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

LOG_STEP = "INT-OUTLOOK"

STATE_COOKIE = "outlook_auth_state"


def is_configured() -> bool:
    return bool(settings.MICROSOFT_CLIENT_ID and settings.MICROSOFT_CLIENT_SECRET)


def _build_msal_app():
    return build_msal_app(
        settings.MICROSOFT_CLIENT_ID,
        settings.MICROSOFT_CLIENT_SECRET,
        settings.MICROSOFT_TENANT,
    )


def _build_auth_url(state: str) -> str:
    return _build_msal_app().get_authorization_request_url(
        SCOPE, state=state, redirect_uri=settings.outlook_redirect_uri, prompt="select_account"
    )


def _get_token_from_code(code: str) -> dict:
    return _build_msal_app().acquire_token_by_authorization_code(
        code, scopes=SCOPE, redirect_uri=settings.outlook_redirect_uri
    )


async def handle_login(response: Response) -> dict:
    with log_step(LOG_STEP):
        if not is_configured():
            logger.error("Outlook login requested but Microsoft OAuth is not configured.")
            raise AppError(
                "Outlook login is not configured.",
                error="Provider not configured",
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        state = issue_login_state(response, STATE_COOKIE)

        # MSAL does authority discovery over blocking HTTP.
        auth_url = await asyncio.to_thread(_build_auth_url, state)
        logger.debug("Returning Microsoft auth URL.")
        return {"authUrl": auth_url}


async def handle_callback(request: Request, db: AsyncSession) -> RedirectResponse:
    with log_step(LOG_STEP):
        code = read_callback_code(request, STATE_COOKIE)
        token_response = await asyncio.to_thread(_get_token_from_code, code)

        if "error" in token_response:
            logger.warning(f"MSAL error: {token_response.get('error_description')}")
            raise LoginError("Could not sign in with Microsoft.")

        claims = token_response.get("id_token_claims", {})
        outlook_id = claims.get("oid")
        email = claims.get("preferred_username") or claims.get("email")
        name = claims.get("name") or ""

        if not outlook_id or not email:
            logger.error("Could not find 'oid' or username in token claims.")
            raise LoginError("Could not sign in with Microsoft.")

        tokens = OAuthTokens(
            access_token=token_response["access_token"],
            refresh_token=token_response.get("refresh_token"),
            expires_at=int(time.time()) + int(token_response.get("expires_in", 3600)),
        )

        return await complete_login(db, "outlook", outlook_id, email, name, tokens, STATE_COOKIE)
