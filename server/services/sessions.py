"""
Server-side auth sessions.

The OAuth token set for a login lives only here (encrypted), never on the
user record. The browser holds a JWT naming the session row.
"""

import logging
import time
import uuid
from dataclasses import dataclass

from core.config import settings
from core.encryption import decrypt, encrypt
from core.errors import AuthenticationError, CredentialError
from core.logging_setup import log_step
from models.auth_sessions import AuthSession
from providers.schemas import OAuthTokens
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

LOG_STEP = "SESSION"


@dataclass
class SessionContext:
    session_id: str
    user_id: int
    provider: str
    tokens: OAuthTokens


def session_max_age_seconds() -> int:
    return settings.SESSION_MAX_AGE_DAYS * 24 * 60 * 60


async def create_session(
    db: AsyncSession, user_id: int, provider: str, tokens: OAuthTokens
) -> str:
    tokens_encrypted, tokens_iv = encrypt(tokens.model_dump_json())
    session_id = str(uuid.uuid4())

    db.add(
        AuthSession(
            id=session_id,
            user_id=user_id,
            provider=provider,
            tokens_encrypted=tokens_encrypted,
            tokens_iv=tokens_iv,
            expires_at=int(time.time()) + session_max_age_seconds(),
        )
    )
    await db.commit()

    with log_step(LOG_STEP):
        logger.debug(f"Created {provider} session for user {user_id}.")
    return session_id


async def load_session(db: AsyncSession, session_id: str, user_id: int) -> SessionContext:
    result = await db.execute(select(AuthSession).where(AuthSession.id == session_id))
    row = result.scalar_one_or_none()

    if row is None or row.user_id != user_id:
        with log_step(LOG_STEP):
            logger.warning("Auth failed: session not found.")
        raise AuthenticationError("Session not found. Please log in again.")

    if row.expires_at < time.time():
        with log_step(LOG_STEP):
            logger.info(f"Session for user {user_id} has expired.")
        await delete_session(db, session_id)
        raise AuthenticationError("Session has expired. Please log in again.")

    try:
        tokens = OAuthTokens.model_validate_json(decrypt(row.tokens_encrypted, row.tokens_iv))
    except CredentialError:
        raise AuthenticationError("Session is no longer valid. Please log in again.")

    return SessionContext(
        session_id=row.id,
        user_id=row.user_id,
        provider=row.provider,
        tokens=tokens,
    )


async def update_session_tokens(db: AsyncSession, session_id: str, tokens: OAuthTokens) -> None:
    tokens_encrypted, tokens_iv = encrypt(tokens.model_dump_json())
    await db.execute(
        update(AuthSession)
        .where(AuthSession.id == session_id)
        .values(tokens_encrypted=tokens_encrypted, tokens_iv=tokens_iv)
    )
    await db.commit()


async def delete_session(db: AsyncSession, session_id: str) -> None:
    await db.execute(delete(AuthSession).where(AuthSession.id == session_id))
    await db.commit()
