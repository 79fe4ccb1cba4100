import logging

from core.authentication import get_current_session
from core.config import settings
from core.db import get_db_session
from core.encryption import decrypt
from core.errors import AppError, CredentialError
from core.logging_setup import log_step
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from providers.schemas import CalendarEvent
from services.calendar import open_provider
from services.chat import CalendarChatService, create_llm_client
from services.sessions import SessionContext
from services.users import get_user_settings
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    messages: list[dict] = Field(default_factory=list)
    events: list[CalendarEvent] = Field(default_factory=list)
    time_zone: str | None = None
    calendar_id: str | None = None


def create_chat_router() -> APIRouter:
    """
    Creates the REST API router for the calendar chat assistant.
    """
    router = APIRouter(
        prefix="/api",
    )
    LOG_STEP = "API-CHAT"

    # NOTE: Requires User Auth
    @router.post("/chat")
    async def chat(
        body: ChatRequest,
        context: SessionContext = Depends(get_current_session),
        db: AsyncSession = Depends(get_db_session),
    ):
        """
        Runs one chat turn with the user's own OpenRouter key.
        The key is checked before anything talks to the LLM or the calendar.
        """
        with log_step(LOG_STEP):
            user_settings = await get_user_settings(db, context.user_id)
            if user_settings is None or not user_settings.openrouter_api_key_encrypted:
                logger.warning(f"Chat requested by user {context.user_id} without an API key.")
                raise CredentialError(
                    "Please configure your OpenRouter API key in Settings "
                    "before using the chat feature."
                )

            api_key = decrypt(
                user_settings.openrouter_api_key_encrypted, user_settings.encryption_iv
            )
            model = user_settings.openrouter_model or settings.OPENROUTER_DEFAULT_MODEL

        provider = await open_provider(db, context)
        service = CalendarChatService(
            client=create_llm_client(api_key),
            model=model,
            provider=provider,
            calendar_id=body.calendar_id,
        )

        try:
            result = await service.respond(body.messages, body.events, body.time_zone)
        except AppError:
            raise
        except Exception as e:
            with log_step(LOG_STEP):
                logger.error(f"Chat request failed for user {context.user_id}: {e}", exc_info=True)
            raise AppError(
                "The assistant could not complete the request. Please try again.",
                error="Failed to process chat request",
                status_code=500,
            )

        return {"message": result.message, "toolCallsExecuted": result.tool_calls_executed}

    return router
