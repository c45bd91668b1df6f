import math
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from common.config import Settings, get_settings
from common.errors import InvalidArgumentError, MembershipError, UnauthorizedError
from common.logging import configure_logging, get_logger
from hierarchy.models import Account, BlockAction, BlockRecord, InviteCode
from hierarchy.tiers import Tier
from ledger.models import (
    Balance,
    Currency,
    DailyRewardResponse,
    DailyRewardStatus,
    LedgerHistoryResponse,
    Transaction,
    TransactionKind,
)
from referrals.models import ReferralRewardConfig, ReferralRewardEvent

from .schemas import (
    BlockRequest,
    BulkBlockRequest,
    BulkBlockResponse,
    ExchangeRequest,
    LoginRequest,
    MembersPage,
    Pagination,
    PurchaseRequest,
    RegisterRequest,
    RewardConfigRequest,
    TransferRequest,
)
from .services import Services

logger = get_logger(__name__)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_actor(
    x_actor_id: Optional[UUID] = Header(default=None),
    services: Services = Depends(get_services),
) -> Account:
    if x_actor_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return services.auth.login(x_actor_id)


async def membership_error_handler(request: Request, exc: MembershipError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content={"code": exc.code, "message": exc.message},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else "invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"code": InvalidArgumentError.code, "message": message},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "unauthenticated" if exc.status_code == 401 else "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": code, "message": str(exc.detail)},
    )


def create_app(
    services: Optional[Services] = None,
    settings: Optional[Settings] = None,
    root_path: str = "",
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Member Hierarchy & Ledger API",
        description="Tier hierarchy, block authorization and points/credits ledger",
        version="1.0.0",
        root_path=root_path,
    )
    app.state.services = services or Services()
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(MembershipError, membership_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "member-ledger"}

    # Auth / registration

    @app.post("/auth/login", response_model=Account, tags=["Auth"])
    def login(body: LoginRequest, services: Services = Depends(get_services)) -> Account:
        return services.auth.login(body.user_id)

    @app.post("/auth/register", response_model=Account, status_code=status.HTTP_201_CREATED, tags=["Auth"])
    def register(body: RegisterRequest, services: Services = Depends(get_services)) -> Account:
        return services.registration.register(
            body.tier,
            invite_code=body.invite_code,
            email=body.email,
            display_name=body.display_name,
        )

    @app.post("/invite-codes", response_model=InviteCode, status_code=status.HTTP_201_CREATED, tags=["Auth"])
    def issue_invite_code(
        actor: Account = Depends(get_actor), services: Services = Depends(get_services)
    ) -> InviteCode:
        return services.registration.issue_invite_code(actor.id)

    # Blocking

    @app.post("/block", tags=["Block"])
    def block_user(
        body: BlockRequest,
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ):
        services.blocking.block(actor.id, body.user_id, body.reason)
        return {}

    @app.post("/block/unblock", tags=["Block"])
    def unblock_user(
        body: BlockRequest,
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ):
        services.blocking.unblock(actor.id, body.user_id, body.reason)
        return {}

    @app.post("/bulk/block", response_model=BulkBlockResponse, tags=["Block"])
    def bulk_block(
        body: BulkBlockRequest,
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> BulkBlockResponse:
        return _bulk_response(services.blocking.bulk_block(actor.id, body.user_ids, body.reason))

    @app.post("/bulk/unblock", response_model=BulkBlockResponse, tags=["Block"])
    def bulk_unblock(
        body: BulkBlockRequest,
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> BulkBlockResponse:
        return _bulk_response(services.blocking.bulk_unblock(actor.id, body.user_ids, body.reason))

    @app.get("/block/history", response_model=list[BlockRecord], tags=["Block"])
    def block_history(
        actor_id: Optional[UUID] = Query(default=None, alias="actorId"),
        target_id: Optional[UUID] = Query(default=None, alias="targetId"),
        date_from: Optional[date] = Query(default=None, alias="dateFrom"),
        date_to: Optional[date] = Query(default=None, alias="dateTo"),
        action: Optional[BlockAction] = Query(default=None, alias="status"),
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> list[BlockRecord]:
        return services.history.query_visible(
            actor.id,
            actor_id=actor_id,
            target_id=target_id,
            date_from=date_from,
            date_to=date_to,
            status=action,
        )

    # Hierarchy

    @app.get("/hierarchy/members", response_model=MembersPage, tags=["Hierarchy"])
    def hierarchy_members(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=20, ge=1, le=100),
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> MembersPage:
        members = services.directory.list_visible_members(actor.id)
        offset = (page - 1) * limit
        return MembersPage(
            members=members[offset:offset + limit],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=len(members),
                total_pages=math.ceil(len(members) / limit),
            ),
        )

    @app.get("/transfer/candidates", response_model=list[Account], tags=["Transfer"])
    def transfer_candidates(
        q: str = "",
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> list[Account]:
        return services.directory.search_transfer_candidates(actor.id, q)

    # Transfers

    def _transfer(currency: Currency, body: TransferRequest, actor: Account, services: Services) -> Transaction:
        services.directory.get(body.receiver_id)
        if not services.directory.is_visible_to(actor.id, body.receiver_id):
            raise UnauthorizedError("Cannot transfer to a member outside your hierarchy")
        return services.ledger.transfer(
            actor.id,
            body.receiver_id,
            currency,
            body.amount,
            body.description,
            idempotency_key=body.idempotency_key,
        )

    @app.post("/transfer/points", response_model=Transaction, status_code=status.HTTP_201_CREATED, tags=["Transfer"])
    def transfer_points(
        body: TransferRequest,
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> Transaction:
        return _transfer(Currency.POINTS, body, actor, services)

    @app.post("/transfer/credits", response_model=Transaction, status_code=status.HTTP_201_CREATED, tags=["Transfer"])
    def transfer_credits(
        body: TransferRequest,
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> Transaction:
        return _transfer(Currency.CREDITS, body, actor, services)

    # Points

    @app.post("/points/exchange", response_model=Transaction, tags=["Points"])
    def exchange_credits(
        body: ExchangeRequest,
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
        settings: Settings = Depends(get_app_settings),
    ) -> Transaction:
        return services.ledger.exchange_credits_to_points(
            actor.id, body.credit_amount, settings.CREDIT_TO_POINTS_RATE
        )

    @app.post("/points/purchase", response_model=Transaction, status_code=status.HTTP_201_CREATED, tags=["Points"])
    def purchase_points(
        body: PurchaseRequest,
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> Transaction:
        logger.info(
            "Purchase of %d points by %s via %s (ref=%s)",
            body.points, actor.id, body.payment_method, body.payment_ref,
        )
        return services.ledger.purchase_points(actor.id, body.points, body.payment_ref)

    @app.post("/points/daily-reward/claim", response_model=DailyRewardResponse, tags=["Points"])
    def claim_daily_reward(
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
        settings: Settings = Depends(get_app_settings),
    ) -> DailyRewardResponse:
        if not settings.DAILY_REWARD_ENABLED:
            raise InvalidArgumentError("Daily rewards are currently disabled")
        return services.ledger.claim_daily_reward(actor.id, settings.DAILY_REWARD_AMOUNT)

    @app.get("/points/daily-reward/status", response_model=DailyRewardStatus, tags=["Points"])
    def daily_reward_status(
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
        settings: Settings = Depends(get_app_settings),
    ) -> DailyRewardStatus:
        return services.ledger.daily_reward_status(actor.id, settings.DAILY_REWARD_AMOUNT)

    # Wallet

    @app.get("/wallet/balance", response_model=Balance, tags=["Wallet"])
    def wallet_balance(
        actor: Account = Depends(get_actor), services: Services = Depends(get_services)
    ) -> Balance:
        return services.ledger.get_balance(actor.id)

    @app.get("/wallet/transactions", response_model=LedgerHistoryResponse, tags=["Wallet"])
    def wallet_transactions(
        currency: Optional[Currency] = None,
        kind: Optional[TransactionKind] = None,
        limit: int = Query(default=50, ge=1, le=200),
        offset: int = Query(default=0, ge=0),
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> LedgerHistoryResponse:
        return services.ledger.get_history(actor.id, currency, kind, limit, offset)

    # Referral rewards

    @app.get("/agency/reward-config", response_model=ReferralRewardConfig, tags=["Referrals"])
    def get_reward_config(
        agency_id: Optional[UUID] = Query(default=None, alias="agencyId"),
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> ReferralRewardConfig:
        return services.referrals.get_reward_config(_managed_agency(actor, agency_id))

    @app.put("/agency/reward-config", response_model=ReferralRewardConfig, tags=["Referrals"])
    def set_reward_config(
        body: RewardConfigRequest,
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> ReferralRewardConfig:
        agency_id = _managed_agency(actor, body.agency_id)
        return services.referrals.set_reward_config(agency_id, body.reward_by_tier)

    @app.get("/referrals/rewards", response_model=list[ReferralRewardEvent], tags=["Referrals"])
    def referral_rewards(
        agency_id: Optional[UUID] = Query(default=None, alias="agencyId"),
        actor: Account = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> list[ReferralRewardEvent]:
        if actor.tier == Tier.ADMINISTRATOR:
            return services.referrals.list_reward_events(agency_id=agency_id)
        if actor.tier == Tier.AGENCY:
            return services.referrals.list_reward_events(agency_id=actor.id)
        return services.referrals.list_reward_events(new_account_id=actor.id)


def _managed_agency(actor: Account, agency_id: Optional[UUID]) -> UUID:
    if actor.tier == Tier.AGENCY and agency_id in (None, actor.id):
        return actor.id
    if actor.tier == Tier.ADMINISTRATOR and agency_id is not None:
        return agency_id
    if actor.tier == Tier.ADMINISTRATOR:
        raise InvalidArgumentError("agencyId is required")
    raise UnauthorizedError()


def _bulk_response(results) -> BulkBlockResponse:
    failed = sum(1 for r in results if not r.ok)
    return BulkBlockResponse(results=results, succeeded=len(results) - failed, failed=failed)


configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
