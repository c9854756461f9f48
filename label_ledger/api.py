import threading
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from mangum import Mangum

from .config import configure_logging, get_settings
from .models import (
    AcceptInviteRequest,
    CreateEarningRequest,
    CreatePaymentMethodRequest,
    CreateTeamRequest,
    CreateWithdrawalRequest,
    Earning,
    InviteToTeamRequest,
    LedgerStats,
    PaymentMethod,
    Team,
    TeamInvite,
    TeamMember,
    UpdateMemberShareRequest,
    UpdateWithdrawalStatusRequest,
    User,
    UserBalance,
    UserRole,
    UserTeams,
    Withdrawal,
)
from .service import (
    InsufficientFundsError,
    InvalidStateTransitionError,
    InviteAlreadyConsumedError,
    InviteExpiredError,
    LedgerService,
    LedgerServiceError,
    NotFoundError,
    UserNotFoundError,
)

router = APIRouter()


_service_lock = threading.Lock()


def get_service(request: Request) -> LedgerService:
    """The app's ledger, built from settings on first use."""
    if request.app.state.ledger is None:
        with _service_lock:
            if request.app.state.ledger is None:
                request.app.state.ledger = LedgerService.from_settings(get_settings())
    return request.app.state.ledger


def current_user(
    x_user_id: UUID = Header(..., description="Caller id, set by the auth gateway"),
    ledger: LedgerService = Depends(get_service),
) -> User:
    try:
        return ledger.get_user(x_user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")


def admin_user(user: User = Depends(current_user)) -> User:
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def _owned_team(ledger: LedgerService, team_id: UUID, user: User) -> Team:
    try:
        team = ledger.get_team(team_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if team.owner_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return team


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "label-ledger"}


# Balance & earnings

@router.get("/balance", response_model=UserBalance, tags=["Earnings"])
def get_balance(user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)) -> UserBalance:
    return ledger.get_balance(user.id)


@router.get("/earnings", response_model=list[Earning], tags=["Earnings"])
def list_earnings(user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)):
    return ledger.list_earnings(user.id)


@router.get("/admin/earnings", response_model=list[Earning], tags=["Admin"])
def list_all_earnings(_: User = Depends(admin_user), ledger: LedgerService = Depends(get_service)):
    return ledger.list_all_earnings()


@router.post("/admin/earnings", response_model=Earning, status_code=status.HTTP_201_CREATED, tags=["Admin"])
def create_earning(
    request: CreateEarningRequest,
    _: User = Depends(admin_user),
    ledger: LedgerService = Depends(get_service),
) -> Earning:
    try:
        return ledger.create_earning(
            request.user_id, request.month, request.amount, request.streams, request.downloads
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/admin/earnings/{earning_id}", tags=["Admin"])
def delete_earning(earning_id: UUID, _: User = Depends(admin_user), ledger: LedgerService = Depends(get_service)):
    try:
        ledger.delete_earning(earning_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InsufficientFundsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True}


# Withdrawals

@router.get("/withdrawals", response_model=list[Withdrawal], tags=["Withdrawals"])
def list_withdrawals(user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)):
    return ledger.list_withdrawals(user.id)


@router.post("/withdrawals", response_model=Withdrawal, status_code=status.HTTP_201_CREATED, tags=["Withdrawals"])
def create_withdrawal(
    request: CreateWithdrawalRequest,
    user: User = Depends(current_user),
    ledger: LedgerService = Depends(get_service),
) -> Withdrawal:
    minimum = ledger.settings.MIN_WITHDRAWAL_AMOUNT
    if request.amount < minimum:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Minimum withdrawal amount is {minimum}",
        )
    try:
        return ledger.create_withdrawal(user.id, request.amount, request.method, request.details)
    except InsufficientFundsError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Insufficient balance")


@router.get("/admin/withdrawals", response_model=list[Withdrawal], tags=["Admin"])
def list_all_withdrawals(_: User = Depends(admin_user), ledger: LedgerService = Depends(get_service)):
    return ledger.list_all_withdrawals()


@router.put("/admin/withdrawals/{withdrawal_id}", response_model=Withdrawal, tags=["Admin"])
def update_withdrawal_status(
    withdrawal_id: UUID,
    request: UpdateWithdrawalStatusRequest,
    _: User = Depends(admin_user),
    ledger: LedgerService = Depends(get_service),
) -> Withdrawal:
    try:
        withdrawal, changed = ledger.resolve_withdrawal(withdrawal_id, request.status, request.note)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStateTransitionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if changed:
        ledger.notifier.withdrawal_resolved(withdrawal)
    return withdrawal


# Payment methods

@router.get("/payment-methods", response_model=list[PaymentMethod], tags=["Payment Methods"])
def list_payment_methods(user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)):
    return ledger.list_payment_methods(user.id)


@router.post(
    "/payment-methods", response_model=PaymentMethod, status_code=status.HTTP_201_CREATED, tags=["Payment Methods"]
)
def create_payment_method(
    request: CreatePaymentMethodRequest,
    user: User = Depends(current_user),
    ledger: LedgerService = Depends(get_service),
) -> PaymentMethod:
    return ledger.create_payment_method(
        user.id, request.bank_name, request.account_holder, request.iban, request.swift_bic, request.is_default
    )


@router.put("/payment-methods/{method_id}/default", response_model=PaymentMethod, tags=["Payment Methods"])
def set_default_payment_method(
    method_id: UUID, user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)
) -> PaymentMethod:
    try:
        return ledger.set_default_payment_method(user.id, method_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/payment-methods/{method_id}", tags=["Payment Methods"])
def delete_payment_method(
    method_id: UUID, user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)
):
    try:
        ledger.delete_payment_method(user.id, method_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"success": True}


# Teams

@router.get("/teams", response_model=UserTeams, tags=["Teams"])
def list_teams(user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)) -> UserTeams:
    return ledger.list_user_teams(user.id)


@router.get("/teams/invites", response_model=list[TeamInvite], tags=["Teams"])
def list_my_invites(user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)):
    return ledger.list_pending_invites(user.email)


@router.post("/teams", response_model=Team, status_code=status.HTTP_201_CREATED, tags=["Teams"])
def create_team(
    request: CreateTeamRequest, user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)
) -> Team:
    return ledger.create_team(user.id, request.name)


@router.delete("/teams/{team_id}", tags=["Teams"])
def delete_team(team_id: UUID, user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)):
    _owned_team(ledger, team_id, user)
    ledger.delete_team(team_id)
    return {"success": True}


@router.post("/teams/accept-invite", response_model=TeamMember, tags=["Teams"])
def accept_invite(
    request: AcceptInviteRequest, user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)
) -> TeamMember:
    try:
        return ledger.accept_team_invite(request.invite_code, user.id)
    except (NotFoundError, InviteExpiredError, InviteAlreadyConsumedError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired invite")
    except InvalidStateTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/teams/{team_id}/invite", response_model=TeamInvite, status_code=status.HTTP_201_CREATED, tags=["Teams"])
def invite_to_team(
    team_id: UUID,
    request: InviteToTeamRequest,
    user: User = Depends(current_user),
    ledger: LedgerService = Depends(get_service),
) -> TeamInvite:
    team = _owned_team(ledger, team_id, user)
    invite = ledger.invite_to_team(team_id, request.email, request.share_percentage)

    invited = ledger.accounts.find_by_email(request.email)
    if invited is not None:
        ledger.notifier.team_invite(invited.id, team.name)
    return invite


@router.put("/teams/{team_id}/members/{user_id}", response_model=TeamMember, tags=["Teams"])
def update_member_share(
    team_id: UUID,
    user_id: UUID,
    request: UpdateMemberShareRequest,
    user: User = Depends(current_user),
    ledger: LedgerService = Depends(get_service),
) -> TeamMember:
    _owned_team(ledger, team_id, user)
    try:
        return ledger.update_member_share(team_id, user_id, request.share_percentage)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/teams/{team_id}/members/{user_id}", tags=["Teams"])
def remove_team_member(
    team_id: UUID, user_id: UUID, user: User = Depends(current_user), ledger: LedgerService = Depends(get_service)
):
    _owned_team(ledger, team_id, user)
    try:
        ledger.remove_team_member(team_id, user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStateTransitionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True}


# Admin

@router.delete("/admin/users/{user_id}", tags=["Admin"])
def delete_user(user_id: UUID, _: User = Depends(admin_user), ledger: LedgerService = Depends(get_service)):
    try:
        deleted = ledger.delete_user(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except LedgerServiceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True, "deleted": deleted}


@router.get("/admin/stats", response_model=LedgerStats, tags=["Admin"])
def get_stats(_: User = Depends(admin_user), ledger: LedgerService = Depends(get_service)) -> LedgerStats:
    return ledger.get_stats()


@router.get("/admin/system/backup", tags=["Admin"])
def download_backup(_: User = Depends(admin_user), ledger: LedgerService = Depends(get_service)):
    try:
        archive = ledger.create_backup()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return FileResponse(archive, media_type="application/zip", filename=archive.name)


def create_app(ledger: Optional[LedgerService] = None) -> FastAPI:
    configure_logging(get_settings())

    app = FastAPI(
        title="Label Ledger API",
        description="Balances, earnings, withdrawals and team revenue splits for label artists",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.ledger = ledger
    app.include_router(router)
    return app


app = create_app()
handler = Mangum(app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
