import json
import logging
import uuid

from core.authentication import AUTH_COOKIE_NAME, generate_jwt_token
from core.config import settings
from core.errors import BadRequestError
from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from providers.schemas import OAuthTokens
from services.sessions import create_session, session_max_age_seconds
from services.users import find_or_create_user
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

STATE_MAX_AGE_SECONDS = 600


def _is_ssl() -> bool:
    return settings.APP_BASE_URL.startswith("https")


def issue_login_state(response: Response, cookie_name: str) -> str:
    """Creates the CSRF state for an OAuth redirect and stores it in a short-lived cookie."""
    state = uuid.uuid4().hex
    response.set_cookie(
        key=cookie_name,
        value=json.dumps({"state": state}),
        max_age=STATE_MAX_AGE_SECONDS,
        httponly=True,
        secure=_is_ssl(),
        samesite="lax",
    )
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return state


def read_callback_code(request: Request, cookie_name: str) -> str:
    """Checks the callback's state against the cookie and returns the auth code."""
    url_state = request.query_params.get("state")
    code = request.query_params.get("code")
    cookie_data_str = request.cookies.get(cookie_name)

    if not url_state or not code or not cookie_data_str:
        logger.warning("Callback missing auth data (state, code, or cookie).")
        raise BadRequestError("Missing auth data.")
    try:
        cookie_data = json.loads(cookie_data_str)
    except json.JSONDecodeError:
        logger.warning("Invalid auth state cookie (JSON decode error).")
        raise BadRequestError("Invalid auth state.")
    if cookie_data.get("state") != url_state:
        logger.warning("Auth state mismatch.")
        raise BadRequestError("Invalid state parameter")

    return code


async def complete_login(
    db: AsyncSession,
    provider: str,
    provider_user_id: str,
    email: str,
    name: str,
    tokens: OAuthTokens,
    state_cookie: str,
) -> RedirectResponse:
    """
    Upserts the user, opens a server-side session for the token set and
    redirects back to the frontend with the session cookie set.
    """
    user = await find_or_create_user(db, provider, provider_user_id, email, name)
    session_id = await create_session(db, user.id, provider, tokens)

    redirect_response = RedirectResponse(url=settings.FRONTEND_URL)
    redirect_response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=generate_jwt_token(user_id=user.id, session_id=session_id),
        max_age=session_max_age_seconds(),
        httponly=True,
        secure=_is_ssl(),
        samesite="lax",
    )
    redirect_response.delete_cookie(state_cookie)

    logger.info(f"Successfully authenticated {provider} user {email} ({user.id}).")
    return redirect_response
