import logging

from core.logging_setup import log_step
from models.user_settings import UserSettings
from models.users import User
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

LOG_STEP = "USERS"

PROVIDER_ID_COLUMNS = {
    "google": User.google_id,
    "outlook": User.outlook_id,
}


async def find_or_create_user(
    session: AsyncSession,
    provider: str,
    provider_user_id: str,
    email: str,
    name: str | None,
) -> User:
    """
    Looks a user up by their provider id, refreshing email and name, or creates
    the user together with an empty settings row. Runs as one transaction.
    """
    id_column = PROVIDER_ID_COLUMNS.get(provider)
    if id_column is None:
        raise ValueError(f"Unknown provider: {provider}")

    with log_step(LOG_STEP):
        try:
            result = await session.execute(select(User).where(id_column == provider_user_id))
            user = result.scalar_one_or_none()

            if user is not None:
                user.email = email
                user.name = name
                user.updated_at = func.now()
                created = False
            else:
                user = User(provider=provider, email=email, name=name)
                setattr(user, id_column.key, provider_user_id)
                session.add(user)
                await session.flush()
                session.add(UserSettings(user_id=user.id))
                created = True

            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Failed to find or create {provider} user: {e}", exc_info=True)
            raise

        await session.refresh(user)
        if created:
            logger.info(f"Created new {provider} user {user.id} ({email}).")
        else:
            logger.debug(f"Updated existing {provider} user {user.id}.")
        return user


async def get_user_settings(session: AsyncSession, user_id: int) -> UserSettings | None:
    result = await session.execute(
        select(UserSettings)
        .where(UserSettings.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def update_user_settings(
    session: AsyncSession,
    user_id: int,
    api_key_encrypted: str,
    model: str,
    iv: str,
) -> UserSettings | None:
    await session.execute(
        update(UserSettings)
        .where(UserSettings.user_id == user_id)
        .values(
            openrouter_api_key_encrypted=api_key_encrypted,
            openrouter_model=model,
            encryption_iv=iv,
            updated_at=func.now(),
        )
    )
    await session.commit()
    return await get_user_settings(session, user_id)


async def delete_user_api_key(session: AsyncSession, user_id: int) -> UserSettings | None:
    await session.execute(
        update(UserSettings)
        .where(UserSettings.user_id == user_id)
        .values(
            openrouter_api_key_encrypted=None,
            encryption_iv=None,
            updated_at=func.now(),
        )
    )
    await session.commit()
    return await get_user_settings(session, user_id)
