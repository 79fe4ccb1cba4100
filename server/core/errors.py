from fastapi import status


class AppError(Exception):
    """
    Base for errors that are turned into an `{error, message}` response
    at the request-handler boundary.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal server error"

    def __init__(self, message: str, error: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message}


class ProviderError(AppError):
    """Any failure reaching a calendar provider API. The message is fixed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error = "Calendar provider request failed"

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class UnsupportedProviderError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Unsupported calendar provider"

    def __init__(self, provider_tag: str):
        super().__init__(f"Unsupported calendar provider: {provider_tag}")
        self.provider_tag = provider_tag


class CredentialError(AppError):
    """Missing or unusable user credential (e.g. the encrypted LLM API key)."""

    status_code = status.HTTP_403_FORBIDDEN
    error = "OpenRouter API key not configured"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Not authenticated"


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid request"


class LoginError(AppError):
    """An OAuth login could not be completed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Authentication failed"


class ToolExecutionError(Exception):
    """A single tool call failed. Contained inside the chat dispatch loop."""
