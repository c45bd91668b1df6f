import secrets
from typing import Callable, Optional
from uuid import UUID

from common.errors import InvalidArgumentError, NotFoundError
from common.logging import get_logger
from common.storage import InMemoryStorage

from .directory import AccountDirectory
from .models import Account, InviteCode
from .tiers import Tier, outranks

logger = get_logger(__name__)

SignupListener = Callable[[Account, Optional[UUID]], None]

# Tiers whose invites place the newcomer directly beneath them.
_OWNING_TIERS = (Tier.AGENCY, Tier.ORGANIZATION)


class RegistrationService:
    def __init__(self, storage: InMemoryStorage, directory: AccountDirectory):
        self.storage = storage
        self.directory = directory
        self._listeners: list[SignupListener] = []

    def subscribe(self, listener: SignupListener) -> None:
        self._listeners.append(listener)

    def issue_invite_code(self, issuer_id: UUID) -> InviteCode:
        issuer = self.directory.get(issuer_id)
        if issuer.tier == Tier.ADMINISTRATOR:
            raise InvalidArgumentError("Administrators create accounts directly")

        invite = InviteCode(
            code=secrets.token_urlsafe(8),
            issuer_id=issuer_id,
            created_at=self.storage.clock(),
        )
        with self.storage.write_lock:
            self.storage.invite_codes[invite.code] = invite.model_dump()
        return invite

    def register(
        self,
        tier: Tier,
        invite_code: Optional[str] = None,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Account:
        """
        Create an account, linking it under whoever issued ``invite_code``.

        Signup listeners run after the account exists; a listener that fails to
        pay a reward records that failure itself and never undoes the signup.
        """
        tier = Tier(tier)
        agency_id, organization_id = self._resolve_parents(tier, invite_code)

        account = self.directory.create(
            tier,
            parent_agency_id=agency_id,
            parent_organization_id=organization_id,
            email=email,
            display_name=display_name,
        )
        for listener in self._listeners:
            listener(account, agency_id)
        return account

    def _resolve_parents(
        self, tier: Tier, invite_code: Optional[str]
    ) -> tuple[Optional[UUID], Optional[UUID]]:
        if not invite_code:
            if tier != Tier.GENERAL:
                raise InvalidArgumentError(f"An invite code is required to register as {tier.value}")
            return None, None

        invite = self.storage.invite_codes.get(invite_code)
        if invite is None:
            raise NotFoundError("Invite code not found")
        issuer = self.directory.get(invite["issuer_id"])

        if issuer.tier in _OWNING_TIERS:
            if not outranks(issuer.tier, tier):
                raise InvalidArgumentError(
                    f"A {issuer.tier.value} cannot invite a {tier.value}"
                )
            if issuer.tier == Tier.AGENCY:
                return issuer.id, None
            return issuer.parent_agency_id, issuer.id

        if tier != Tier.GENERAL:
            raise InvalidArgumentError(f"A {issuer.tier.value} can only invite general members")
        return issuer.parent_agency_id, issuer.parent_organization_id
