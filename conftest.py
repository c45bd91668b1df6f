from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from api.services import Services
from common.storage import InMemoryStorage
from hierarchy.tiers import Tier


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage(clock):
    return InMemoryStorage(clock=clock)


@pytest.fixture
def services(storage):
    return Services(storage)


@pytest.fixture
def world(services):
    """
    administrator
    agency_a ── org_a1 ── admin_a1, general_a1
            └─ org_a2 ── general_a2
    agency_b ── org_b1
    """
    d = services.directory
    administrator = d.create(Tier.ADMINISTRATOR, email="root@example.com")
    agency_a = d.create(Tier.AGENCY, email="agency-a@example.com", display_name="Agency A")
    agency_b = d.create(Tier.AGENCY, email="agency-b@example.com", display_name="Agency B")
    org_a1 = d.create(Tier.ORGANIZATION, parent_agency_id=agency_a.id, display_name="Org A1")
    org_a2 = d.create(Tier.ORGANIZATION, parent_agency_id=agency_a.id, display_name="Org A2")
    org_b1 = d.create(Tier.ORGANIZATION, parent_agency_id=agency_b.id, display_name="Org B1")
    admin_a1 = d.create(
        Tier.ADMIN, parent_agency_id=agency_a.id, parent_organization_id=org_a1.id,
        email="admin-a1@example.com",
    )
    general_a1 = d.create(
        Tier.GENERAL, parent_agency_id=agency_a.id, parent_organization_id=org_a1.id,
        email="alice@example.com", display_name="Alice",
    )
    general_a2 = d.create(
        Tier.GENERAL, parent_agency_id=agency_a.id, parent_organization_id=org_a2.id,
        email="bob@example.com", display_name="Bob",
    )
    return SimpleNamespace(
        services=services,
        administrator=administrator,
        agency_a=agency_a,
        agency_b=agency_b,
        org_a1=org_a1,
        org_a2=org_a2,
        org_b1=org_b1,
        admin_a1=admin_a1,
        general_a1=general_a1,
        general_a2=general_a2,
    )


@pytest.fixture
def fund(storage):
    """Seed balances directly, outside the ledger."""

    def _fund(account_id, points=0, credits=0):
        row = storage.accounts[account_id]
        row["points_balance"] += points
        row["credits_balance"] += credits

    return _fund
