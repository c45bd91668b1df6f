"""
Shared infrastructure: settings, logging, error taxonomy and the
in-memory transactional store used by every service.
"""

from .config import Settings, get_settings
from .errors import (
    MembershipError,
    UnauthorizedError,
    InvalidArgumentError,
    InsufficientBalanceError,
    AlreadyClaimedTodayError,
    BlockedAccountError,
    NotFoundError,
    ServiceUnavailableError,
)
from .storage import InMemoryStorage, TransientStoreError

__all__ = [
    "Settings",
    "get_settings",
    "MembershipError",
    "UnauthorizedError",
    "InvalidArgumentError",
    "InsufficientBalanceError",
    "AlreadyClaimedTodayError",
    "BlockedAccountError",
    "NotFoundError",
    "ServiceUnavailableError",
    "InMemoryStorage",
    "TransientStoreError",
]
