from typing import Optional

from common.storage import InMemoryStorage
from hierarchy import (
    AccountDirectory,
    AuthenticationGate,
    BlockAuthorizationService,
    BlockHistory,
    RegistrationService,
)
from ledger import LedgerService
from referrals import ReferralRewardEngine


class Services:
    """One instance of every service, wired over a shared store."""

    def __init__(self, storage: Optional[InMemoryStorage] = None):
        self.storage = storage or InMemoryStorage()
        self.directory = AccountDirectory(self.storage)
        self.history = BlockHistory(self.storage, self.directory)
        self.blocking = BlockAuthorizationService(self.storage, self.directory, self.history)
        self.auth = AuthenticationGate(self.directory)
        self.ledger = LedgerService(self.storage)
        self.referrals = ReferralRewardEngine(self.storage, self.directory, self.ledger)
        self.registration = RegistrationService(self.storage, self.directory)
        self.registration.subscribe(self.referrals.on_signup)
