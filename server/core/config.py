import sys

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Defines the application's configuration settings.

    Pydantic will automatically read from the environment or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    DATABASE_URL: str

    ENCRYPTION_KEY: str

    JWT_SECRET_KEY: str

    APP_BASE_URL: str = "http://localhost:3001"

    FRONTEND_URL: str = "http://localhost:5173"

    GOOGLE_CLIENT_ID: str = ""

    GOOGLE_CLIENT_SECRET: str = ""

    GOOGLE_REDIRECT_URI: str = ""

    MICROSOFT_CLIENT_ID: str = ""

    MICROSOFT_CLIENT_SECRET: str = ""

    MICROSOFT_TENANT: str = "common"

    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"

    OPENROUTER_DEFAULT_MODEL: str = "anthropic/claude-3.5-sonnet"

    LLM_TIMEOUT_SECONDS: float = 30.0

    LLM_MAX_RETRIES: int = 2

    SESSION_MAX_AGE_DAYS: int = 30

    LOGGING_LEVEL: str = "INFO"

    @property
    def google_redirect_uri(self) -> str:
        return self.GOOGLE_REDIRECT_URI or f"{self.APP_BASE_URL}/api/auth/callback"

    @property
    def outlook_redirect_uri(self) -> str:
        return f"{self.APP_BASE_URL}/api/auth/outlook/callback"


try:
    settings = Settings()

except Exception as e:
    print(f"FATAL: Failed to load application settings: {e}", file=sys.stderr)
    sys.exit("Failed to load configuration. Exiting.")
