"""Database models"""

from stalerepos.models.account import Account
from stalerepos.models.account_config import AccountConfig
from stalerepos.models.repository import Repository
from stalerepos.models.scan import ScanRecord, ScanStatus

__all__ = [
    "Account",
    "AccountConfig",
    "Repository",
    "ScanRecord",
    "ScanStatus",
]
