from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class Currency(str, Enum):
    POINTS = "points"
    CREDITS = "credits"


class TransactionKind(str, Enum):
    TRANSFER = "transfer"
    EXCHANGE = "exchange"
    PURCHASE = "purchase"
    DAILY_REWARD = "daily_reward"
    REFERRAL_REWARD = "referral_reward"


BALANCE_FIELDS = {
    Currency.POINTS: "points_balance",
    Currency.CREDITS: "credits_balance",
}


class Transaction(BaseModel):
    id: UUID
    from_account_id: Optional[UUID] = None
    to_account_id: Optional[UUID] = None
    currency: Currency
    amount: int = Field(..., gt=0)
    kind: TransactionKind
    description: str = ""
    timestamp: datetime
    idempotency_key: Optional[str] = None
    metadata: dict = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True, frozen=True)


class DailyRewardState(BaseModel):
    account_id: UUID
    last_claim_date: Optional[date] = None
    streak: int = Field(default=0, ge=0)

    model_config = ConfigDict(from_attributes=True)


class Balance(BaseModel):
    account_id: UUID
    points_balance: int
    credits_balance: int
    total_transactions: int
    last_transaction_at: Optional[datetime] = None


class LedgerHistoryResponse(BaseModel):
    account_id: UUID
    transactions: list[Transaction]
    total_count: int
    limit: int
    offset: int


class DailyRewardResponse(BaseModel):
    state: DailyRewardState
    transaction: Transaction
    message: str


class DailyRewardStatus(BaseModel):
    can_claim: bool
    reward_amount: int
    streak: int
    last_claim_date: Optional[date] = None
    next_claim_date: Optional[date] = None
