from uuid import UUID

from common.errors import BlockedAccountError
from common.logging import get_logger

from .directory import AccountDirectory
from .models import Account

logger = get_logger(__name__)


class AuthenticationGate:
    """Login-time check every session issuer must call before issuing anything."""

    def __init__(self, directory: AccountDirectory):
        self.directory = directory

    def login(self, account_id: UUID) -> Account:
        account = self.directory.get(account_id)
        if account.is_blocked:
            logger.warning("Rejected login for blocked account %s", account_id)
            raise BlockedAccountError("This account has been blocked")
        return account
