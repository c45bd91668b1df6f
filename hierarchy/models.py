from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .tiers import Tier


class BlockAction(str, Enum):
    BLOCK = "block"
    UNBLOCK = "unblock"


class BulkItemStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class Account(BaseModel):
    id: UUID
    tier: Tier
    parent_agency_id: Optional[UUID] = None
    parent_organization_id: Optional[UUID] = None
    is_blocked: bool = False
    points_balance: int = 0
    credits_balance: int = 0
    created_at: datetime
    email: Optional[str] = None
    display_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BlockRecord(BaseModel):
    id: UUID
    target_account_id: UUID
    actor_account_id: UUID
    action: BlockAction
    reason: str
    timestamp: datetime
    state_changed: bool = True

    model_config = ConfigDict(from_attributes=True, frozen=True)


class BulkItemResult(BaseModel):
    target_id: UUID
    status: BulkItemStatus
    code: Optional[str] = None
    reason: Optional[str] = None
    record: Optional[BlockRecord] = None

    @property
    def ok(self) -> bool:
        return self.status == BulkItemStatus.SUCCESS


class InviteCode(BaseModel):
    code: str
    issuer_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)
