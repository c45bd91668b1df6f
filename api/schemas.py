from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hierarchy.models import Account, BulkItemResult
from hierarchy.tiers import Tier


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(CamelModel):
    user_id: UUID


class RegisterRequest(CamelModel):
    tier: Tier = Tier.GENERAL
    invite_code: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"tier": "organization", "inviteCode": "Xy3kP0aQ", "email": "org@example.com"}
    })


class BlockRequest(CamelModel):
    user_id: UUID
    reason: str = ""


class BulkBlockRequest(CamelModel):
    user_ids: list[UUID] = Field(..., min_length=1)
    reason: str = ""


class BulkBlockResponse(BaseModel):
    results: list[BulkItemResult]
    succeeded: int
    failed: int


class TransferRequest(CamelModel):
    receiver_id: UUID
    amount: int
    description: str = ""
    idempotency_key: Optional[str] = None


class ExchangeRequest(CamelModel):
    credit_amount: int


class PurchaseRequest(CamelModel):
    points: int
    amount: Optional[Decimal] = None
    payment_method: str
    payment_ref: str = Field(..., description="Confirmation reference from the payment provider")


class RewardConfigRequest(CamelModel):
    reward_by_tier: dict[Tier, int]
    agency_id: Optional[UUID] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"rewardByTier": {"organization": 5000, "admin": 2000, "general": 1000}}
    })


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class MembersPage(BaseModel):
    members: list[Account]
    pagination: Pagination

