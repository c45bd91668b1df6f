"""
Member hierarchy: fixed tier ranking, account directory with ownership-tree
visibility, block/unblock authorization and its append-only audit log.
"""

from .tiers import Tier, rank, outranks
from .models import (
    Account,
    BlockAction,
    BlockRecord,
    BulkItemResult,
    BulkItemStatus,
    InviteCode,
)
from .directory import AccountDirectory
from .history import BlockHistory
from .blocking import BlockAuthorizationService
from .auth import AuthenticationGate
from .registration import RegistrationService

__all__ = [
    "Tier",
    "rank",
    "outranks",
    "Account",
    "BlockAction",
    "BlockRecord",
    "BulkItemResult",
    "BulkItemStatus",
    "InviteCode",
    "AccountDirectory",
    "BlockHistory",
    "BlockAuthorizationService",
    "AuthenticationGate",
    "RegistrationService",
]
