from typing import Iterable, Optional
from uuid import UUID, uuid4

from common.errors import NotFoundError
from common.logging import get_logger
from common.storage import InMemoryStorage

from .models import Account
from .tiers import Tier, rank

logger = get_logger(__name__)

# Five fixed levels, so a chain can never be longer than four links.
MAX_PARENT_HOPS = 4


class AccountDirectory:
    """Account records, the ownership tree and visibility queries."""

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def get(self, account_id: UUID) -> Account:
        account = self.find(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    def find(self, account_id: Optional[UUID]) -> Optional[Account]:
        if account_id is None:
            return None
        data = self.storage.accounts.get(account_id)
        return Account(**data) if data else None

    def create(
        self,
        tier: Tier,
        parent_agency_id: Optional[UUID] = None,
        parent_organization_id: Optional[UUID] = None,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Account:
        for parent_id in (parent_agency_id, parent_organization_id):
            if parent_id is not None and parent_id not in self.storage.accounts:
                raise NotFoundError(f"Parent account {parent_id} not found")

        account_id = uuid4()
        data = {
            "id": account_id,
            "tier": Tier(tier),
            "parent_agency_id": parent_agency_id,
            "parent_organization_id": parent_organization_id,
            "is_blocked": False,
            "points_balance": 0,
            "credits_balance": 0,
            "created_at": self.storage.clock(),
            "email": email,
            "display_name": display_name,
        }
        with self.storage.write_lock:
            self.storage.accounts[account_id] = data

        logger.info(
            "Created %s account %s (agency=%s, organization=%s)",
            data["tier"].value, account_id, parent_agency_id, parent_organization_id,
        )
        return Account(**data)

    def is_descendant_of(self, candidate_ancestor_id: UUID, target_id: UUID) -> bool:
        node = self.storage.accounts.get(target_id)
        for _ in range(MAX_PARENT_HOPS):
            if node is None:
                return False
            org_id = node.get("parent_organization_id")
            agency_id = node.get("parent_agency_id")
            if candidate_ancestor_id in (org_id, agency_id):
                return True
            next_id = org_id if org_id is not None else agency_id
            if next_id is None:
                return False
            node = self.storage.accounts.get(next_id)
        return False

    def is_visible_to(self, actor_id: UUID, target_id: UUID) -> bool:
        actor = self.get(actor_id)
        if actor.tier == Tier.ADMINISTRATOR:
            return target_id in self.storage.accounts
        return self.is_descendant_of(actor_id, target_id)

    def list_visible_members(self, actor_id: UUID) -> list[Account]:
        actor = self.get(actor_id)
        if actor.tier == Tier.ADMINISTRATOR:
            members = self._all()
        else:
            members = (a for a in self._all() if self.is_descendant_of(actor_id, a.id))
        return _ordered(members)

    def search_transfer_candidates(self, actor_id: UUID, query: str = "") -> list[Account]:
        needle = (query or "").strip().lower()
        return [
            account
            for account in self.list_visible_members(actor_id)
            if not account.is_blocked
            and account.id != actor_id
            and _matches(account, needle)
        ]

    def _all(self) -> list[Account]:
        return [Account(**data) for data in list(self.storage.accounts.values())]


def _ordered(accounts: Iterable[Account]) -> list[Account]:
    # sort is stable, so equal timestamps keep creation order
    return sorted(accounts, key=lambda a: (rank(a.tier), a.created_at))


def _matches(account: Account, needle: str) -> bool:
    if not needle:
        return True
    haystack = (account.email or "", account.display_name or "", str(account.id))
    return any(needle in value.lower() for value in haystack)
