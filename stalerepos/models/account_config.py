"""Per-account dashboard configuration."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import backref, relationship

from stalerepos.config.database import Base, BigIntegerId
from stalerepos.models.account import utcnow


class AccountConfig(Base):
    """Configuration row mapped to `account_configs` table (one per account)."""

    __tablename__ = "account_configs"

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    account_id = Column(BigIntegerId, ForeignKey("accounts.id", ondelete="CASCADE"), unique=True, nullable=False)

    abandonment_threshold_months = Column(Integer, nullable=False, default=6)
    dashboard_public = Column(Boolean, nullable=False, default=False)
    dashboard_slug = Column(String(120), unique=True, nullable=True)
    scan_private_repos = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    account = relationship("Account", backref=backref("config", uselist=False))

    __table_args__ = (
        Index("idx_account_configs_dashboard_slug", "dashboard_slug"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "abandonment_threshold_months": self.abandonment_threshold_months,
            "dashboard_public": self.dashboard_public,
            "dashboard_slug": self.dashboard_slug,
            "scan_private_repos": self.scan_private_repos,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<AccountConfig account={self.account_id} threshold={self.abandonment_threshold_months}>"
