"""
HTTP surface tests

Covers request/response shapes and the {code, message} error contract.
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from common.config import Settings
from hierarchy.tiers import Tier


@pytest.fixture
def client(world):
    settings = Settings(CREDIT_TO_POINTS_RATE=1000, DAILY_REWARD_AMOUNT=50)
    return TestClient(create_app(services=world.services, settings=settings))


def as_actor(account):
    return {"X-Actor-Id": str(account.id)}


class TestSystem:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_missing_actor(self, client):
        response = client.get("/wallet/balance")
        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"

    def test_unknown_actor(self, client):
        response = client.get("/wallet/balance", headers={"X-Actor-Id": str(uuid4())})
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"


class TestBlockEndpoints:

    def test_block_then_login_refused(self, client, world):
        response = client.post(
            "/block",
            json={"userId": str(world.org_a1.id), "reason": "policy"},
            headers=as_actor(world.agency_a),
        )
        assert response.status_code == 200
        assert response.json() == {}

        login = client.post("/auth/login", json={"userId": str(world.org_a1.id)})
        assert login.status_code == 403
        assert login.json()["code"] == "blocked_account"

        # blocked actors are refused everywhere
        balance = client.get("/wallet/balance", headers=as_actor(world.org_a1))
        assert balance.status_code == 403

    def test_cross_organization_block_forbidden(self, client, world):
        response = client.post(
            "/block",
            json={"userId": str(world.org_a2.id), "reason": "nope"},
            headers=as_actor(world.org_a1),
        )
        assert response.status_code == 403
        assert response.json() == {"code": "unauthorized", "message": "not authorized"}

    def test_missing_reason_is_bad_request(self, client, world):
        response = client.post(
            "/block",
            json={"userId": str(world.org_a1.id)},
            headers=as_actor(world.agency_a),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_argument"

    def test_malformed_body_is_bad_request(self, client, world):
        response = client.post(
            "/block", json={"userId": "not-a-uuid", "reason": "x"}, headers=as_actor(world.agency_a)
        )
        assert response.status_code == 400
        assert "message" in response.json()

    def test_unblock(self, client, world):
        world.services.blocking.block(world.agency_a.id, world.org_a1.id, "x")

        response = client.post(
            "/block/unblock",
            json={"userId": str(world.org_a1.id), "reason": "cleared"},
            headers=as_actor(world.agency_a),
        )

        assert response.status_code == 200
        assert not world.services.directory.get(world.org_a1.id).is_blocked

    def test_bulk_block_reports_each_id(self, client, world):
        response = client.post(
            "/bulk/block",
            json={"userIds": [str(world.general_a1.id), str(world.general_a2.id)], "reason": "spam"},
            headers=as_actor(world.org_a1),
        )

        body = response.json()
        assert response.status_code == 200
        assert (body["succeeded"], body["failed"]) == (1, 1)
        assert [r["status"] for r in body["results"]] == ["success", "failure"]
        assert body["results"][1]["code"] == "unauthorized"

    def test_history(self, client, world):
        world.services.blocking.block(world.agency_a.id, world.org_a1.id, "x")
        world.services.blocking.unblock(world.agency_a.id, world.org_a1.id, "y")

        response = client.get(
            "/block/history",
            params={"targetId": str(world.org_a1.id), "status": "unblock"},
            headers=as_actor(world.administrator),
        )

        assert response.status_code == 200
        assert [r["reason"] for r in response.json()] == ["y"]


class TestTransferEndpoints:

    def test_transfer_points(self, client, world, fund):
        fund(world.agency_a.id, points=1000)

        response = client.post(
            "/transfer/points",
            json={"receiverId": str(world.org_a1.id), "amount": 250, "description": "budget"},
            headers=as_actor(world.agency_a),
        )

        assert response.status_code == 201
        assert response.json()["kind"] == "transfer"
        assert world.services.ledger.get_balance(world.org_a1.id).points_balance == 250

    def test_idempotency_key_not_shared_between_actors(self, client, world, fund):
        fund(world.agency_a.id, points=1000)
        fund(world.agency_b.id, points=1000)

        first = client.post(
            "/transfer/points",
            json={"receiverId": str(world.org_a1.id), "amount": 100, "idempotencyKey": "k"},
            headers=as_actor(world.agency_a),
        )
        second = client.post(
            "/transfer/points",
            json={"receiverId": str(world.org_b1.id), "amount": 300, "idempotencyKey": "k"},
            headers=as_actor(world.agency_b),
        )

        assert first.status_code == second.status_code == 201
        assert second.json()["from_account_id"] == str(world.agency_b.id)
        assert world.services.ledger.get_balance(world.agency_b.id).points_balance == 700

    def test_transfer_outside_hierarchy(self, client, world, fund):
        fund(world.agency_b.id, credits=10)

        response = client.post(
            "/transfer/credits",
            json={"receiverId": str(world.org_a1.id), "amount": 1},
            headers=as_actor(world.agency_b),
        )

        assert response.status_code == 403

    def test_insufficient_balance(self, client, world):
        response = client.post(
            "/transfer/points",
            json={"receiverId": str(world.org_a1.id), "amount": 1},
            headers=as_actor(world.agency_a),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "insufficient_balance"

    def test_candidates_skip_blocked(self, client, world):
        world.services.blocking.block(world.org_a1.id, world.general_a1.id, "x")

        response = client.get("/transfer/candidates", headers=as_actor(world.org_a1))

        assert [a["id"] for a in response.json()] == [str(world.admin_a1.id)]


class TestPointsEndpoints:

    def test_exchange_uses_configured_rate(self, client, world, fund):
        fund(world.general_a1.id, credits=50)

        response = client.post(
            "/points/exchange", json={"creditAmount": 30}, headers=as_actor(world.general_a1)
        )

        assert response.status_code == 200
        balance = world.services.ledger.get_balance(world.general_a1.id)
        assert (balance.credits_balance, balance.points_balance) == (20, 30_000)

    def test_purchase(self, client, world):
        body = {"points": 10_000, "amount": "1.00", "paymentMethod": "card", "paymentRef": "ch_1"}

        first = client.post("/points/purchase", json=body, headers=as_actor(world.general_a1))
        again = client.post("/points/purchase", json=body, headers=as_actor(world.general_a1))

        assert first.status_code == 201
        assert again.json()["id"] == first.json()["id"]
        assert world.services.ledger.get_balance(world.general_a1.id).points_balance == 10_000

    def test_daily_reward(self, client, world):
        headers = as_actor(world.general_a1)

        first = client.post("/points/daily-reward/claim", headers=headers)
        second = client.post("/points/daily-reward/claim", headers=headers)
        status = client.get("/points/daily-reward/status", headers=headers)

        assert first.status_code == 200
        assert first.json()["state"]["streak"] == 1
        assert second.status_code == 409
        assert second.json()["code"] == "already_claimed_today"
        assert status.json()["can_claim"] is False

    def test_daily_reward_disabled(self, world):
        settings = Settings(DAILY_REWARD_ENABLED=False)
        client = TestClient(create_app(services=world.services, settings=settings))

        response = client.post("/points/daily-reward/claim", headers=as_actor(world.general_a1))

        assert response.status_code == 400

    def test_wallet_transactions(self, client, world, fund):
        fund(world.agency_a.id, points=100)
        world.services.ledger.transfer(world.agency_a.id, world.org_a1.id, "points", 10, "a")

        response = client.get(
            "/wallet/transactions", params={"kind": "transfer"}, headers=as_actor(world.org_a1)
        )

        assert response.json()["total_count"] == 1


class TestHierarchyEndpoints:

    def test_members_paginated(self, client, world):
        response = client.get(
            "/hierarchy/members", params={"page": 2, "limit": 2}, headers=as_actor(world.agency_a)
        )

        body = response.json()
        assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "totalPages": 3}
        assert [m["tier"] for m in body["members"]] == ["admin", "general"]

    def test_register_and_invite(self, client, world, fund):
        fund(world.agency_a.id, points=3000)
        world.services.referrals.set_reward_config(world.agency_a.id, {Tier.ORGANIZATION: 5000})
        invite = client.post("/invite-codes", headers=as_actor(world.agency_a)).json()

        response = client.post(
            "/auth/register",
            json={"tier": "organization", "inviteCode": invite["code"], "email": "new@example.com"},
        )

        assert response.status_code == 201
        assert response.json()["parent_agency_id"] == str(world.agency_a.id)
        rewards = client.get("/referrals/rewards", headers=as_actor(world.agency_a)).json()
        assert [r["status"] for r in rewards] == ["failed"]


class TestRewardConfigEndpoints:

    def test_agency_manages_own_config(self, client, world):
        response = client.put(
            "/agency/reward-config",
            json={"rewardByTier": {"organization": 5000, "general": 100}},
            headers=as_actor(world.agency_a),
        )

        assert response.status_code == 200
        config = client.get("/agency/reward-config", headers=as_actor(world.agency_a)).json()
        assert config["reward_by_tier"] == {"organization": 5000, "general": 100}

    def test_negative_reward_rejected(self, client, world):
        response = client.put(
            "/agency/reward-config",
            json={"rewardByTier": {"general": -5}},
            headers=as_actor(world.agency_a),
        )
        assert response.status_code == 400

    def test_organization_cannot_manage(self, client, world):
        response = client.put(
            "/agency/reward-config",
            json={"rewardByTier": {"general": 5}},
            headers=as_actor(world.org_a1),
        )
        assert response.status_code == 403

    def test_administrator_names_the_agency(self, client, world):
        response = client.put(
            "/agency/reward-config",
            json={"rewardByTier": {"general": 5}, "agencyId": str(world.agency_b.id)},
            headers=as_actor(world.administrator),
        )
        assert response.status_code == 200
        assert response.json()["agency_id"] == str(world.agency_b.id)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
