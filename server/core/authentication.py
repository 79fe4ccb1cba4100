import logging
from datetime import datetime, timedelta, timezone

import jwt
from core.config import settings
from core.db import get_db_session
from core.errors import AuthenticationError
from core.logging_setup import bind_request_context, log_step
from fastapi import Depends, Request
from pydantic import BaseModel, ValidationError
from services.sessions import SessionContext, load_session
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = "app_auth_token"
TOKEN_ISSUER = "ai-calendar-assistant"
TOKEN_AUDIENCE = "web-client"


class TokenPayload(BaseModel):
    """Pydantic model for the session JWT payload"""

    iss: str
    iat: int
    exp: int
    sub: str
    resource: str
    aud: str


def generate_jwt_token(
    user_id: int, session_id: str, expires_delta: timedelta | None = None
) -> str:
    """
    Generates the browser session JWT (HS256).
    `sub` is the user id, `resource` names the server-side auth session.
    """
    now = datetime.now(timezone.utc)
    expires_delta = expires_delta or timedelta(days=settings.SESSION_MAX_AGE_DAYS)

    payload = {
        "iss": TOKEN_ISSUER,
        "iat": now,
        "exp": now + expires_delta,
        "sub": str(user_id),
        "resource": session_id,
        "aud": TOKEN_AUDIENCE,
    }

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm="HS256")


def decode_jwt_token(token: str) -> TokenPayload:
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=["HS256"],
            issuer=TOKEN_ISSUER,
            audience=TOKEN_AUDIENCE,
        )
        return TokenPayload(**payload)
    except jwt.ExpiredSignatureError:
        with log_step("SESSION"):
            logger.warning("Auth failed: Token has expired.")
        raise AuthenticationError("Token has expired")
    except (jwt.InvalidTokenError, ValidationError) as e:
        with log_step("SESSION"):
            logger.warning(f"Auth failed: Invalid token. {e}")
        raise AuthenticationError("Invalid token")


async def get_token_from_cookie(request: Request) -> str:
    """Extracts the auth token from the 'app_auth_token' cookie."""
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        with log_step("SESSION"):
            logger.debug("Auth failed: No 'app_auth_token' cookie.")
        raise AuthenticationError("Not authenticated")
    return token


def get_current_user_payload(
    token: str = Depends(get_token_from_cookie),
) -> TokenPayload:
    return decode_jwt_token(token)


async def get_current_session(
    payload: TokenPayload = Depends(get_current_user_payload),
    db: AsyncSession = Depends(get_db_session),
) -> SessionContext:
    """Resolves the cookie to the server-side session holding the OAuth tokens."""
    try:
        user_id = int(payload.sub)
    except ValueError:
        raise AuthenticationError("Invalid token")

    context = await load_session(db, payload.resource, user_id)
    bind_request_context(context.user_id, context.provider)
    return context
