from typing import Iterable, Optional
from uuid import UUID, uuid4

from common.config import get_settings
from common.errors import InvalidArgumentError, MembershipError, UnauthorizedError
from common.logging import get_logger
from common.storage import InMemoryStorage, UnitOfWork

from .directory import AccountDirectory
from .history import BlockHistory
from .models import Account, BlockAction, BlockRecord, BulkItemResult, BulkItemStatus
from .tiers import Tier, outranks

logger = get_logger(__name__)


class BlockAuthorizationService:
    """
    Block and unblock accounts lower in the actor's own subtree.

    Calls on an account that is already in the requested state succeed without
    touching the flag; every authorized call still leaves a BlockRecord.
    """

    def __init__(
        self,
        storage: InMemoryStorage,
        directory: AccountDirectory,
        history: BlockHistory,
        retry_attempts: Optional[int] = None,
    ):
        self.storage = storage
        self.directory = directory
        self.history = history
        self.retry_attempts = retry_attempts or get_settings().STORE_RETRY_ATTEMPTS

    def can_block(self, actor: Account, target: Account) -> bool:
        if not outranks(actor.tier, target.tier):
            return False
        return actor.tier == Tier.ADMINISTRATOR or self.directory.is_descendant_of(
            actor.id, target.id
        )

    def block(self, actor_id: UUID, target_id: UUID, reason: str) -> BlockRecord:
        return self._set_blocked(actor_id, target_id, reason, BlockAction.BLOCK)

    def unblock(self, actor_id: UUID, target_id: UUID, reason: str) -> BlockRecord:
        return self._set_blocked(actor_id, target_id, reason, BlockAction.UNBLOCK)

    def bulk_block(
        self, actor_id: UUID, target_ids: Iterable[UUID], reason: str
    ) -> list[BulkItemResult]:
        return self._bulk(actor_id, target_ids, reason, BlockAction.BLOCK)

    def bulk_unblock(
        self, actor_id: UUID, target_ids: Iterable[UUID], reason: str
    ) -> list[BulkItemResult]:
        return self._bulk(actor_id, target_ids, reason, BlockAction.UNBLOCK)

    def _bulk(self, actor_id, target_ids, reason, action) -> list[BulkItemResult]:
        results = []
        for target_id in target_ids:
            try:
                record = self._set_blocked(actor_id, target_id, reason, action)
            except MembershipError as e:
                results.append(BulkItemResult(
                    target_id=target_id,
                    status=BulkItemStatus.FAILURE,
                    code=e.code,
                    reason=e.message,
                ))
            else:
                results.append(BulkItemResult(
                    target_id=target_id, status=BulkItemStatus.SUCCESS, record=record
                ))

        failed = sum(1 for r in results if not r.ok)
        logger.info(
            "Bulk %s by %s: %d succeeded, %d failed",
            action.value, actor_id, len(results) - failed, failed,
        )
        return results

    def _set_blocked(
        self, actor_id: UUID, target_id: UUID, reason: str, action: BlockAction
    ) -> BlockRecord:
        reason = (reason or "").strip()
        if not reason:
            raise InvalidArgumentError("A reason is required")
        if actor_id == target_id:
            raise InvalidArgumentError(f"Cannot {action.value} yourself")

        actor = self.directory.get(actor_id)
        target = self.directory.get(target_id)
        if not self.can_block(actor, target):
            logger.warning(
                "Denied %s of %s (%s) by %s (%s)",
                action.value, target_id, target.tier.value, actor_id, actor.tier.value,
            )
            raise UnauthorizedError()

        blocked = action == BlockAction.BLOCK

        def work(tx: UnitOfWork) -> BlockRecord:
            row = tx.account(target_id)
            changed = row["is_blocked"] != blocked
            row["is_blocked"] = blocked
            record = BlockRecord(
                id=uuid4(),
                target_account_id=target_id,
                actor_account_id=actor_id,
                action=action,
                reason=reason,
                timestamp=self.storage.clock(),
                state_changed=changed,
            )
            return self.history.append(tx, record)

        record = self.storage.run([target_id], work, attempts=self.retry_attempts)
        if record.state_changed:
            logger.info("Account %s %sed by %s: %s", target_id, action.value, actor_id, reason)
        else:
            logger.info("Account %s already %sed, recorded only", target_id, action.value)
        return record
