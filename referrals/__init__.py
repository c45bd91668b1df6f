"""
Referral rewards: per-agency reward tables and the signup payout engine.
"""

from .models import ReferralRewardConfig, ReferralRewardEvent, RewardStatus
from .engine import ReferralRewardEngine

__all__ = [
    "ReferralRewardConfig",
    "ReferralRewardEvent",
    "RewardStatus",
    "ReferralRewardEngine",
]
