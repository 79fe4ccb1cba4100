import logging

from core.authentication import get_current_session
from core.config import settings
from core.db import get_db_session
from core.logging_setup import log_step
from fastapi import Depends
from providers import CalendarProvider, create_provider
from services.sessions import SessionContext, update_session_tokens
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

LOG_STEP = "CALENDAR"


def provider_config(provider_tag: str) -> dict:
    """Application credentials for a provider tag, as taken by `create_provider`."""
    if provider_tag == "google":
        return {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
        }
    if provider_tag == "outlook":
        return {
            "client_id": settings.MICROSOFT_CLIENT_ID,
            "client_secret": settings.MICROSOFT_CLIENT_SECRET,
            "tenant": settings.MICROSOFT_TENANT,
        }
    return {}


async def open_provider(db: AsyncSession, context: SessionContext) -> CalendarProvider:
    """
    Builds the user's provider from the session tokens, refreshing them if they
    are about to expire and writing a refreshed set back to the session.
    """
    provider = create_provider(context.provider, context.tokens, provider_config(context.provider))

    tokens = await provider.refresh_token_if_needed()
    if tokens != context.tokens:
        await update_session_tokens(db, context.session_id, tokens)
        context.tokens = tokens
        with log_step(LOG_STEP):
            logger.info(f"Persisted refreshed {context.provider} tokens to session.")

    return provider


async def get_calendar_provider(
    context: SessionContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db_session),
) -> CalendarProvider:
    return await open_provider(db, context)
