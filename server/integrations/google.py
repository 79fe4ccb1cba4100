import logging
import time
import urllib.parse

from core.config import settings
from core.http_client import get_http_client
from core.logging_setup import log_step
from core.errors import AppError, BadRequestError, LoginError
from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from integrations.common import complete_login, issue_login_state, read_callback_code
from providers.google import GOOGLE_TOKEN_URL
from providers.schemas import OAuthTokens
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

LOG_STEP = "INT-GOOGLE"

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
SCOPE = "openid email profile https://www.googleapis.com/auth/calendar"
STATE_COOKIE = "google_auth_state"


def is_configured() -> bool:
    return bool(settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET)


async def handle_login(response: Response) -> dict:
    with log_step(LOG_STEP):
        if not is_configured():
            logger.error("Google login requested but Google OAuth is not configured.")
            raise AppError(
                "Google login is not configured.",
                error="Provider not configured",
                status_code=503,
            )

        state = issue_login_state(response, STATE_COOKIE)

        # Offline access plus a forced consent prompt so Google returns a refresh token.
        params = {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "redirect_uri": settings.google_redirect_uri,
            "response_type": "code",
            "scope": SCOPE,
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
        }
        return {"authUrl": f"{GOOGLE_AUTH_URL}?{urllib.parse.urlencode(params)}"}


async def _exchange_code(code: str) -> OAuthTokens:
    token_resp = await get_http_client().post(
        GOOGLE_TOKEN_URL,
        data={
            "code": code,
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "redirect_uri": settings.google_redirect_uri,
            "grant_type": "authorization_code",
        },
    )
    if token_resp.status_code != 200:
        logger.error(f"Failed to exchange Google auth code: {token_resp.status_code}")
        raise LoginError("Could not sign in with Google.")

    token_json = token_resp.json()
    return OAuthTokens(
        access_token=token_json["access_token"],
        refresh_token=token_json.get("refresh_token"),
        expires_at=int(time.time()) + token_json.get("expires_in", 3600),
    )


async def _fetch_profile(tokens: OAuthTokens) -> dict:
    user_resp = await get_http_client().get(
        GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {tokens.access_token}"}
    )
    if user_resp.status_code != 200:
        logger.error(f"Failed to fetch Google user profile: {user_resp.status_code}")
        raise LoginError("Could not sign in with Google.")
    return user_resp.json()


async def handle_callback(request: Request, db: AsyncSession) -> RedirectResponse:
    with log_step(LOG_STEP):
        if error := request.query_params.get("error"):
            logger.warning(f"Google returned an OAuth error: {error}")
            raise BadRequestError(f"Google Auth Error: {error}")

        code = read_callback_code(request, STATE_COOKIE)
        tokens = await _exchange_code(code)
        logger.debug(
            f"OAuth tokens received. Has refresh token: {tokens.refresh_token is not None}"
        )

        profile = await _fetch_profile(tokens)
        google_id = profile.get("sub")
        email = profile.get("email")
        name = profile.get("name") or profile.get("given_name") or ""

        if not google_id or not email:
            logger.error("Failed to retrieve user identity from Google.")
            raise LoginError("Could not sign in with Google.")

        return await complete_login(db, "google", google_id, email, name, tokens, STATE_COOKIE)
