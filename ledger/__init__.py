"""
Dual-currency ledger for member accounts

This module provides:
- Points and credits balances that never go negative
- Atomic transfers with deterministic lock ordering
- Credit-to-point exchange at a caller-supplied rate
- Purchases, daily rewards with streaks, referral payouts
- Immutable, append-only transaction history
"""

from .models import (
    Currency,
    TransactionKind,
    Transaction,
    DailyRewardState,
    Balance,
)
from .service import LedgerService

__all__ = [
    "Currency",
    "TransactionKind",
    "Transaction",
    "DailyRewardState",
    "Balance",
    "LedgerService",
]
