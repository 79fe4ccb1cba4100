import logging
from contextlib import asynccontextmanager

from core.logging_setup import setup_logging

setup_logging()

from core.config import settings

logger = logging.getLogger(__name__)

logger.info(f"Configuration loaded. Log level set to: {settings.LOGGING_LEVEL}")

from api.auth import create_auth_router
from api.calendar import create_calendar_router
from api.chat import create_chat_router
from api.health import create_health_router
from api.users import create_user_router
from core.db import close_db, init_db
from core.errors import AppError
from core.http_client import close_http_client, init_http_client
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    On startup, create the database engine and the shared HTTP client.
    Both are released again on shutdown.
    """
    app.state.database = await init_db(settings.DATABASE_URL)
    await init_http_client()
    try:
        yield
    finally:
        await close_http_client()
        await close_db(app.state.database)


app = FastAPI(
    title="AI Calendar Assistant API",
    description="Chat with an LLM that reads and edits your Google or Outlook calendar.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


auth_router = create_auth_router()
app.include_router(auth_router)

user_router = create_user_router()
app.include_router(user_router)

calendar_router = create_calendar_router()
app.include_router(calendar_router)

chat_router = create_chat_router()
app.include_router(chat_router)

health_router = create_health_router()
app.include_router(health_router)
