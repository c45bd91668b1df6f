from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hierarchy.tiers import Tier


class RewardStatus(str, Enum):
    PAID = "paid"
    FAILED = "failed"


class ReferralRewardConfig(BaseModel):
    agency_id: UUID
    reward_by_tier: dict[Tier, int] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("reward_by_tier")
    @classmethod
    def amounts_not_negative(cls, v: dict[Tier, int]) -> dict[Tier, int]:
        for tier, amount in v.items():
            if amount < 0:
                raise ValueError(f"Reward for {tier.value} must not be negative")
        return v

    def reward_for(self, tier: Tier) -> int:
        return self.reward_by_tier.get(Tier(tier), 0)


class ReferralRewardEvent(BaseModel):
    id: UUID
    agency_id: UUID
    new_account_id: UUID
    tier: Tier
    amount: int
    status: RewardStatus
    transaction_id: Optional[UUID] = None
    failure_code: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)
