from .auth_sessions import AuthSession
from .user_settings import UserSettings
from .users import User

__all__ = [
    "AuthSession",
    "User",
    "UserSettings",
]
