from datetime import date, datetime
from typing import Optional, Union
from uuid import UUID

from common.storage import InMemoryStorage, UnitOfWork

from .directory import AccountDirectory
from .models import BlockAction, BlockRecord
from .tiers import Tier


class BlockHistory:
    """
    Append-only audit log of block and unblock calls.

    There is no update or delete path: records are written inside the blocking
    transaction and are permanent from then on.
    """

    def __init__(self, storage: InMemoryStorage, directory: AccountDirectory):
        self.storage = storage
        self.directory = directory

    def append(self, tx: UnitOfWork, record: BlockRecord) -> BlockRecord:
        tx.append("block_records", record.model_dump())
        return record

    def query(
        self,
        actor_id: Optional[UUID] = None,
        target_id: Optional[UUID] = None,
        date_from: Optional[Union[date, datetime]] = None,
        date_to: Optional[Union[date, datetime]] = None,
        status: Optional[BlockAction] = None,
    ) -> list[BlockRecord]:
        records = []
        for data in list(self.storage.block_records):
            if actor_id is not None and data["actor_account_id"] != actor_id:
                continue
            if target_id is not None and data["target_account_id"] != target_id:
                continue
            if status is not None and data["action"] != BlockAction(status):
                continue
            if not _within(data["timestamp"], date_from, date_to):
                continue
            records.append(BlockRecord(**data))
        # newest first; reversed() keeps the latest write first among equal timestamps
        return sorted(reversed(records), key=lambda r: r.timestamp, reverse=True)

    def query_visible(self, viewer_id: UUID, **filters) -> list[BlockRecord]:
        viewer = self.directory.get(viewer_id)
        records = self.query(**filters)
        if viewer.tier == Tier.ADMINISTRATOR:
            return records
        return [
            r for r in records
            if r.actor_account_id == viewer_id
            or self.directory.is_descendant_of(viewer_id, r.target_account_id)
        ]


def _within(timestamp: datetime, date_from, date_to) -> bool:
    if date_from is not None:
        if isinstance(date_from, datetime):
            if timestamp < date_from:
                return False
        elif timestamp.date() < date_from:
            return False
    if date_to is not None:
        if isinstance(date_to, datetime):
            if timestamp > date_to:
                return False
        elif timestamp.date() > date_to:
            return False
    return True
