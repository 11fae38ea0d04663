"""GitHub account model."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, String, Text

from stalerepos.config.database import Base, BigIntegerId


def utcnow() -> datetime:
    return datetime.now(UTC)


class Account(Base):
    """Authenticated GitHub user mapped to `accounts` table."""

    __tablename__ = "accounts"

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    access_token_expires_in = Column(String(50), nullable=True)
    refresh_token_expires_in = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Account {self.username}>"
