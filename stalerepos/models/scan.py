"""Scan ledger model."""

import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from stalerepos.config.database import Base, BigIntegerId
from stalerepos.models.account import utcnow


class ScanStatus(str, enum.Enum):
    """Lifecycle states; `running` is the only non-terminal state."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({ScanStatus.COMPLETED, ScanStatus.FAILED})


def new_scan_id() -> str:
    return str(uuid.uuid4())


class ScanRecord(Base):
    """One repository scan run mapped to `scan_history` table."""

    __tablename__ = "scan_history"

    id = Column(String(36), primary_key=True, default=new_scan_id)
    account_id = Column(BigIntegerId, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)

    scan_started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    scan_completed_at = Column(DateTime(timezone=True), nullable=True)
    repos_scanned = Column(Integer, nullable=False, default=0)
    repos_added = Column(Integer, nullable=False, default=0)
    repos_updated = Column(Integer, nullable=False, default=0)
    errors_count = Column(Integer, nullable=False, default=0)
    error_details = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    status = Column(
        Enum(ScanStatus, name="scan_status", values_callable=lambda members: [member.value for member in members]),
        nullable=False,
        default=ScanStatus.RUNNING,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    account = relationship("Account", backref="scans")

    __table_args__ = (
        Index("idx_scan_history_account_id", "account_id"),
        Index("idx_scan_history_created_at", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return ScanStatus(self.status) in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "scan_started_at": self.scan_started_at.isoformat() if self.scan_started_at else None,
            "scan_completed_at": self.scan_completed_at.isoformat() if self.scan_completed_at else None,
            "repos_scanned": self.repos_scanned,
            "repos_added": self.repos_added,
            "repos_updated": self.repos_updated,
            "errors_count": self.errors_count,
            "error_details": self.error_details,
            "status": ScanStatus(self.status).value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ScanRecord {self.id} {self.status}>"
