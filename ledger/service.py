from datetime import timedelta
from typing import Optional
from uuid import UUID, uuid4

from common.config import get_settings
from common.datetime_utils import utc_date
from common.errors import (
    AlreadyClaimedTodayError,
    BlockedAccountError,
    InsufficientBalanceError,
    InvalidArgumentError,
    NotFoundError,
)
from common.logging import get_logger
from common.storage import InMemoryStorage, UnitOfWork

from .models import (
    BALANCE_FIELDS,
    Balance,
    Currency,
    DailyRewardResponse,
    DailyRewardState,
    DailyRewardStatus,
    LedgerHistoryResponse,
    Transaction,
    TransactionKind,
)

logger = get_logger(__name__)


class LedgerService:
    """
    Points and credits balances.

    Every mutation runs as one store transaction over the accounts it touches,
    so a debit is never applied without its credit and its Transaction row.
    """

    def __init__(
        self,
        storage: InMemoryStorage,
        max_transfer_amount: Optional[int] = None,
        retry_attempts: Optional[int] = None,
    ):
        settings = get_settings()
        self.storage = storage
        self.max_transfer_amount = max_transfer_amount or settings.MAX_TRANSFER_AMOUNT
        self.retry_attempts = retry_attempts or settings.STORE_RETRY_ATTEMPTS

    def transfer(
        self,
        from_id: UUID,
        to_id: UUID,
        currency: Currency,
        amount: int,
        description: str = "",
        idempotency_key: Optional[str] = None,
    ) -> Transaction:
        if amount > self.max_transfer_amount:
            raise InvalidArgumentError(
                f"Maximum transfer amount is {self.max_transfer_amount}"
            )
        return self._move(
            from_id, to_id, Currency(currency), amount, description,
            TransactionKind.TRANSFER, idempotency_key,
        )

    def credit_referral_reward(
        self, agency_id: UUID, new_account_id: UUID, amount: int
    ) -> Transaction:
        return self._move(
            agency_id, new_account_id, Currency.POINTS, amount, "referral reward",
            TransactionKind.REFERRAL_REWARD,
            idempotency_key=f"referral-reward:{new_account_id}",
        )

    def exchange_credits_to_points(
        self, account_id: UUID, credit_amount: int, rate: int
    ) -> Transaction:
        if credit_amount <= 0:
            raise InvalidArgumentError("Credit amount must be positive")
        if rate <= 0:
            raise InvalidArgumentError("Exchange rate must be positive")
        points = credit_amount * rate

        def work(tx: UnitOfWork) -> Transaction:
            row = _active_account(tx, account_id)
            if row["credits_balance"] < credit_amount:
                raise InsufficientBalanceError(
                    f"Insufficient credits: have {row['credits_balance']}, need {credit_amount}"
                )
            row["credits_balance"] -= credit_amount
            row["points_balance"] += points
            return self._record(
                tx,
                from_account_id=account_id,
                to_account_id=account_id,
                currency=Currency.CREDITS,
                amount=credit_amount,
                kind=TransactionKind.EXCHANGE,
                description=f"Exchange: {credit_amount} credits -> {points} points",
                metadata={"rate": rate, "points_credited": points},
            )

        transaction = self.storage.run([account_id], work, attempts=self.retry_attempts)
        logger.info(
            "Account %s exchanged %d credits for %d points (rate=%d)",
            account_id, credit_amount, points, rate,
        )
        return transaction

    def purchase_points(
        self, account_id: UUID, points_amount: int, confirmed_payment_ref: str
    ) -> Transaction:
        """
        Credit points for a payment the payment collaborator has already confirmed.

        A payment reference is applied at most once; repeating it for the same
        account and amount returns the original transaction.
        """
        if points_amount <= 0:
            raise InvalidArgumentError("Points amount must be positive")
        if not (confirmed_payment_ref or "").strip():
            raise InvalidArgumentError("A confirmed payment reference is required")

        def work(tx: UnitOfWork) -> Transaction:
            existing = self._find_transaction(tx.get("payment_index", confirmed_payment_ref))
            if existing:
                if existing.to_account_id != account_id or existing.amount != points_amount:
                    raise InvalidArgumentError(
                        f"Payment reference {confirmed_payment_ref} was already applied to another purchase"
                    )
                return existing
            row = tx.account(account_id)
            if row is None:
                raise NotFoundError(f"Account {account_id} not found")
            row["points_balance"] += points_amount
            transaction = self._record(
                tx,
                to_account_id=account_id,
                currency=Currency.POINTS,
                amount=points_amount,
                kind=TransactionKind.PURCHASE,
                description=f"Purchased {points_amount} points",
                metadata={"payment_ref": confirmed_payment_ref},
            )
            tx.put("payment_index", confirmed_payment_ref, transaction.id)
            return transaction

        # payment refs are global, so purchases on different accounts share this lock
        with self.storage.key_lock("payment_ref", confirmed_payment_ref):
            return self.storage.run([account_id], work, attempts=self.retry_attempts)

    def claim_daily_reward(self, account_id: UUID, reward_amount: int) -> DailyRewardResponse:
        if reward_amount <= 0:
            raise InvalidArgumentError("Reward amount must be positive")

        def work(tx: UnitOfWork) -> DailyRewardResponse:
            row = _active_account(tx, account_id)
            today = utc_date(self.storage.clock())
            current = tx.get("daily_rewards", account_id) or {
                "account_id": account_id, "last_claim_date": None, "streak": 0,
            }
            # compare-and-set on (account_id, last_claim_date) under the account lock
            if current["last_claim_date"] == today:
                raise AlreadyClaimedTodayError()
            if current["last_claim_date"] == today - timedelta(days=1):
                streak = current["streak"] + 1
            else:
                streak = 1

            state = DailyRewardState(account_id=account_id, last_claim_date=today, streak=streak)
            tx.put("daily_rewards", account_id, state.model_dump())
            row["points_balance"] += reward_amount
            transaction = self._record(
                tx,
                to_account_id=account_id,
                currency=Currency.POINTS,
                amount=reward_amount,
                kind=TransactionKind.DAILY_REWARD,
                description=f"Daily login reward - {today.isoformat()}",
                metadata={"streak": streak},
            )
            return DailyRewardResponse(
                state=state,
                transaction=transaction,
                message=f"Successfully claimed {reward_amount} points as your daily reward!",
            )

        response = self.storage.run([account_id], work, attempts=self.retry_attempts)
        logger.info(
            "Account %s claimed daily reward of %d points (streak=%d)",
            account_id, reward_amount, response.state.streak,
        )
        return response

    def daily_reward_status(self, account_id: UUID, reward_amount: int) -> DailyRewardStatus:
        if account_id not in self.storage.accounts:
            raise NotFoundError(f"Account {account_id} not found")
        today = utc_date(self.storage.clock())
        data = self.storage.daily_rewards.get(account_id)
        if not data:
            return DailyRewardStatus(can_claim=True, reward_amount=reward_amount, streak=0)

        last = data["last_claim_date"]
        claimed_today = last == today
        # a streak only survives if yesterday (or today) was claimed
        alive = last is not None and today - last <= timedelta(days=1)
        return DailyRewardStatus(
            can_claim=not claimed_today,
            reward_amount=reward_amount,
            streak=data["streak"] if alive else 0,
            last_claim_date=last,
            next_claim_date=today + timedelta(days=1) if claimed_today else today,
        )

    def get_balance(self, account_id: UUID) -> Balance:
        data = self.storage.accounts.get(account_id)
        if data is None:
            raise NotFoundError(f"Account {account_id} not found")
        entries = self._entries_for(account_id)
        return Balance(
            account_id=account_id,
            points_balance=data["points_balance"],
            credits_balance=data["credits_balance"],
            total_transactions=len(entries),
            last_transaction_at=max(e.timestamp for e in entries) if entries else None,
        )

    def get_history(
        self,
        account_id: UUID,
        currency: Optional[Currency] = None,
        kind: Optional[TransactionKind] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> LedgerHistoryResponse:
        entries = [
            e for e in self._entries_for(account_id)
            if (currency is None or e.currency == currency)
            and (kind is None or e.kind == kind)
        ]
        entries.reverse()
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return LedgerHistoryResponse(
            account_id=account_id,
            transactions=entries[offset:offset + limit],
            total_count=len(entries),
            limit=limit,
            offset=offset,
        )

    def _move(
        self,
        from_id: UUID,
        to_id: UUID,
        currency: Currency,
        amount: int,
        description: str,
        kind: TransactionKind,
        idempotency_key: Optional[str] = None,
    ) -> Transaction:
        if amount <= 0:
            raise InvalidArgumentError("Amount must be positive")
        if from_id == to_id:
            raise InvalidArgumentError("Cannot transfer to the same account")
        field = BALANCE_FIELDS[currency]

        # keys are scoped to the sender, whose row lock is held while checking
        index_key = (from_id, idempotency_key)

        def work(tx: UnitOfWork) -> Transaction:
            if idempotency_key:
                existing = self._find_transaction(tx.get("idempotency_index", index_key))
                if existing:
                    if (existing.to_account_id, existing.currency, existing.amount) != (
                        to_id, currency, amount
                    ):
                        raise InvalidArgumentError(
                            f"Idempotency key {idempotency_key} was already used for a different transfer"
                        )
                    return existing
            sender = _active_account(tx, from_id)
            receiver = _active_account(tx, to_id)
            if sender[field] < amount:
                raise InsufficientBalanceError(
                    f"Insufficient {currency.value}: have {sender[field]}, need {amount}"
                )
            sender[field] -= amount
            receiver[field] += amount
            transaction = self._record(
                tx,
                from_account_id=from_id,
                to_account_id=to_id,
                currency=currency,
                amount=amount,
                kind=kind,
                description=description or "",
                idempotency_key=idempotency_key,
            )
            if idempotency_key:
                tx.put("idempotency_index", index_key, transaction.id)
            return transaction

        transaction = self.storage.run([from_id, to_id], work, attempts=self.retry_attempts)
        logger.info(
            "%s %d %s from %s to %s (%s)",
            kind.value, amount, currency.value, from_id, to_id, transaction.id,
        )
        return transaction

    def _record(self, tx: UnitOfWork, **fields) -> Transaction:
        transaction = Transaction(id=uuid4(), timestamp=self.storage.clock(), **fields)
        tx.append("transactions", transaction.model_dump())
        return transaction

    def _entries_for(self, account_id: UUID) -> list[Transaction]:
        return [
            Transaction(**e) for e in list(self.storage.transactions)
            if account_id in (e["from_account_id"], e["to_account_id"])
        ]

    def _find_transaction(self, transaction_id: Optional[UUID]) -> Optional[Transaction]:
        if transaction_id is None:
            return None
        for entry in self.storage.transactions:
            if entry["id"] == transaction_id:
                return Transaction(**entry)
        return None


def _active_account(tx: UnitOfWork, account_id: UUID) -> dict:
    row = tx.account(account_id)
    if row is None:
        raise NotFoundError(f"Account {account_id} not found")
    if row["is_blocked"]:
        raise BlockedAccountError(f"Account {account_id} is blocked")
    return row
