from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, Text, text

from core.orm import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "(provider = 'google' AND google_id IS NOT NULL AND outlook_id IS NULL) OR "
            "(provider = 'outlook' AND outlook_id IS NOT NULL AND google_id IS NULL)",
            name="provider_id_check",
        ),
        Index("idx_users_provider", "provider"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider = Column(Text, nullable=False, server_default="google")
    google_id = Column(Text, unique=True)
    outlook_id = Column(Text, unique=True)
    email = Column(Text, nullable=False)
    name = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP"))
