from typing import Mapping, Optional
from uuid import UUID, uuid4

from common.errors import InvalidArgumentError, MembershipError
from common.logging import get_logger
from common.storage import InMemoryStorage, UnitOfWork
from hierarchy.directory import AccountDirectory
from hierarchy.models import Account
from hierarchy.tiers import Tier
from ledger.service import LedgerService

from .models import ReferralRewardConfig, ReferralRewardEvent, RewardStatus

logger = get_logger(__name__)


class ReferralRewardEngine:
    """
    Agency-funded signup rewards.

    A payout is a points transfer from the referring agency to the newcomer. If
    it cannot be made, the failure is written as a reward event and the signup
    goes ahead regardless.
    """

    def __init__(
        self,
        storage: InMemoryStorage,
        directory: AccountDirectory,
        ledger: LedgerService,
    ):
        self.storage = storage
        self.directory = directory
        self.ledger = ledger

    def set_reward_config(
        self, agency_id: UUID, reward_by_tier: Mapping[Tier, int]
    ) -> ReferralRewardConfig:
        agency = self.directory.get(agency_id)
        if agency.tier != Tier.AGENCY:
            raise InvalidArgumentError("Reward settings belong to agency accounts")

        rewards: dict[Tier, int] = {}
        for tier, amount in reward_by_tier.items():
            if amount < 0:
                raise InvalidArgumentError(f"Reward for {Tier(tier).value} must not be negative")
            rewards[Tier(tier)] = amount

        config = ReferralRewardConfig(
            agency_id=agency_id,
            reward_by_tier=rewards,
            updated_at=self.storage.clock(),
        )

        def work(tx: UnitOfWork) -> ReferralRewardConfig:
            tx.put("referral_configs", agency_id, config.model_dump())
            return config

        self.storage.run([agency_id], work, attempts=self.ledger.retry_attempts)
        logger.info("Agency %s reward config set: %s", agency_id, {t.value: a for t, a in rewards.items()})
        return config

    def get_reward_config(self, agency_id: UUID) -> ReferralRewardConfig:
        data = self.storage.referral_configs.get(agency_id)
        if data is None:
            return ReferralRewardConfig(agency_id=agency_id)
        return ReferralRewardConfig(**data)

    def on_signup(self, account: Account, referring_agency_id: Optional[UUID]) -> None:
        if referring_agency_id is not None:
            self.signup(account.id, account.tier, referring_agency_id)

    def signup(
        self, new_account_id: UUID, tier: Tier, referring_agency_id: UUID
    ) -> Optional[ReferralRewardEvent]:
        amount = self.get_reward_config(referring_agency_id).reward_for(tier)
        if amount <= 0:
            return None

        try:
            transaction = self.ledger.credit_referral_reward(
                referring_agency_id, new_account_id, amount
            )
        except MembershipError as e:
            logger.warning(
                "Skipped referral reward of %d points from agency %s to %s: %s",
                amount, referring_agency_id, new_account_id, e.message,
            )
            return self._record_event(
                referring_agency_id, new_account_id, tier, amount,
                RewardStatus.FAILED, failure_code=e.code, failure_reason=e.message,
            )

        return self._record_event(
            referring_agency_id, new_account_id, tier, amount,
            RewardStatus.PAID, transaction_id=transaction.id,
        )

    def list_reward_events(
        self,
        agency_id: Optional[UUID] = None,
        new_account_id: Optional[UUID] = None,
    ) -> list[ReferralRewardEvent]:
        events = [
            ReferralRewardEvent(**e) for e in list(self.storage.referral_events)
            if (agency_id is None or e["agency_id"] == agency_id)
            and (new_account_id is None or e["new_account_id"] == new_account_id)
        ]
        events.reverse()
        events.sort(key=lambda e: e.created_at, reverse=True)
        return events

    def _record_event(self, agency_id, new_account_id, tier, amount, status, **extra) -> ReferralRewardEvent:
        event = ReferralRewardEvent(
            id=uuid4(),
            agency_id=agency_id,
            new_account_id=new_account_id,
            tier=tier,
            amount=amount,
            status=status,
            created_at=self.storage.clock(),
            **extra,
        )
        with self.storage.write_lock:
            self.storage.referral_events.append(event.model_dump())
        return event
