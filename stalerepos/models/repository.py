"""Repository snapshot model owned by one account."""

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from stalerepos.config.database import Base, BigIntegerId
from stalerepos.models.account import utcnow


class Repository(Base):
    """GitHub repository entity mapped to `repositories` table."""

    __tablename__ = "repositories"

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    account_id = Column(BigIntegerId, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    github_id = Column(BigInteger, nullable=False)

    name = Column(String(100), nullable=False)
    full_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    private = Column(Boolean, nullable=False, default=False)
    html_url = Column(String(500), nullable=False)
    clone_url = Column(String(500), nullable=True)

    last_commit_date = Column(DateTime(timezone=True), nullable=True)
    last_push_date = Column(DateTime(timezone=True), nullable=True)
    is_fork = Column(Boolean, nullable=False, default=False)
    is_archived = Column(Boolean, nullable=False, default=False)
    default_branch = Column(String(255), nullable=False, default="main")
    language = Column(String(50), nullable=True)

    stars_count = Column(Integer, nullable=False, default=0)
    forks_count = Column(Integer, nullable=False, default=0)
    open_issues_count = Column(Integer, nullable=False, default=0)
    size_kb = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    last_scanned_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    account = relationship("Account", backref="repositories")

    __table_args__ = (
        UniqueConstraint("account_id", "github_id", name="uq_repositories_account_github"),
        Index("idx_repositories_account_id", "account_id"),
        Index("idx_repositories_last_commit_date", "last_commit_date"),
        Index("idx_repositories_github_id", "github_id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "github_id": self.github_id,
            "name": self.name,
            "full_name": self.full_name,
            "description": self.description,
            "private": self.private,
            "html_url": self.html_url,
            "clone_url": self.clone_url,
            "last_commit_date": _isoformat(self.last_commit_date),
            "last_push_date": _isoformat(self.last_push_date),
            "is_fork": self.is_fork,
            "is_archived": self.is_archived,
            "default_branch": self.default_branch,
            "language": self.language,
            "stars_count": self.stars_count,
            "forks_count": self.forks_count,
            "open_issues_count": self.open_issues_count,
            "size_kb": self.size_kb,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
            "last_scanned_at": _isoformat(self.last_scanned_at),
        }

    def __repr__(self):
        return f"<Repository {self.full_name}>"


def _isoformat(value):
    return value.isoformat() if value is not None else None
