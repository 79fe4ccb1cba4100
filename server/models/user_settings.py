from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text, text

from core.orm import Base


class UserSettings(Base):
    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    openrouter_api_key_encrypted = Column(Text)
    openrouter_model = Column(Text)
    encryption_iv = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP"))
