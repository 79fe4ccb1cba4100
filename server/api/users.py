import logging

from core.authentication import get_current_session
from core.db import get_db_session
from core.encryption import encrypt
from core.logging_setup import log_step
from core.errors import BadRequestError
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from services.sessions import SessionContext
from services.users import delete_user_api_key, get_user_settings, update_user_settings
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class SettingsResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    has_api_key: bool
    model: str | None
    api_key_preview: str | None = None


class SettingsUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    api_key: str | None = None
    model: str | None = None


def _api_key_preview(encrypted: str | None) -> str | None:
    # Preview is taken from the stored ciphertext, never the key itself.
    if not encrypted:
        return None
    return f"sk-...{encrypted[-4:]}"


def create_user_router() -> APIRouter:
    """
    Creates the REST API router for per-user settings.
    """
    router = APIRouter(
        prefix="/api/user",
    )
    LOG_STEP = "API-USERS"

    # NOTE: Requires User Auth
    @router.get("/settings", response_model=SettingsResponse, response_model_by_alias=True)
    async def get_settings(
        context: SessionContext = Depends(get_current_session),
        db: AsyncSession = Depends(get_db_session),
    ):
        """
        Returns whether an OpenRouter key is stored, the preferred model and a
        masked preview. The key itself is never returned.
        """
        user_settings = await get_user_settings(db, context.user_id)
        if user_settings is None:
            return SettingsResponse(has_api_key=False, model=None)

        encrypted = user_settings.openrouter_api_key_encrypted
        return SettingsResponse(
            has_api_key=bool(encrypted),
            model=user_settings.openrouter_model,
            api_key_preview=_api_key_preview(encrypted),
        )

    # NOTE: Requires User Auth
    @router.post("/settings")
    async def save_settings(
        body: SettingsUpdate,
        context: SessionContext = Depends(get_current_session),
        db: AsyncSession = Depends(get_db_session),
    ):
        with log_step(LOG_STEP):
            api_key = (body.api_key or "").strip()
            model = (body.model or "").strip()

            if not api_key:
                raise BadRequestError("API key is required")
            if not model:
                raise BadRequestError("Model name is required")

            encrypted, iv = encrypt(api_key)
            await update_user_settings(db, context.user_id, encrypted, model, iv)

            logger.info(f"Saved OpenRouter settings for user {context.user_id}. Model: {model}")
            return {"success": True, "message": "Settings saved successfully"}

    # NOTE: Requires User Auth
    @router.delete("/settings/api-key")
    async def delete_api_key(
        context: SessionContext = Depends(get_current_session),
        db: AsyncSession = Depends(get_db_session),
    ):
        with log_step(LOG_STEP):
            await delete_user_api_key(db, context.user_id)
            logger.info(f"Deleted OpenRouter API key for user {context.user_id}.")
            return {"success": True, "message": "API key deleted successfully"}

    return router
