from sqlalchemy import BigInteger, Column, ForeignKey, Index, Integer, Text

from core.orm import Base


class AuthSession(Base):
    __tablename__ = "auth_sessions"
    __table_args__ = (Index("idx_auth_sessions_expires_at", "expires_at"),)

    id = Column(Text, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider = Column(Text, nullable=False)
    tokens_encrypted = Column(Text, nullable=False)
    tokens_iv = Column(Text, nullable=False)
    expires_at = Column(BigInteger, nullable=False)
