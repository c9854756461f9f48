from decimal import Decimal
from pathlib import Path
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select

from . import schema
from .accounts import AccountRegistry
from .backup import create_backup, restore_backup
from .balance import BalanceAccessor
from .cascade import CascadeDeletionController
from .config import Settings, get_settings
from .db import LedgerStore
from .earnings import EarningsPoster
from .errors import (
    EarningNotFoundError,
    InsufficientFundsError,
    InvalidStateTransitionError,
    InviteAlreadyConsumedError,
    InviteExpiredError,
    InviteNotFoundError,
    LedgerServiceError,
    NotFoundError,
    PaymentMethodNotFoundError,
    TeamMemberNotFoundError,
    TeamNotFoundError,
    UserNotFoundError,
    WithdrawalNotFoundError,
)
from .models import (
    Earning,
    LedgerStats,
    PaymentMethod,
    Team,
    TeamInvite,
    TeamMember,
    User,
    UserBalance,
    UserRole,
    UserTeams,
    Withdrawal,
    WithdrawalStatus,
)
from .notifications import Notifier
from .payment_methods import PaymentMethodRegistry
from .teams import TeamSplitEngine
from .withdrawals import WithdrawalProcessor

__all__ = [
    "LedgerService",
    "LedgerServiceError",
    "InsufficientFundsError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "UserNotFoundError",
    "EarningNotFoundError",
    "WithdrawalNotFoundError",
    "PaymentMethodNotFoundError",
    "TeamNotFoundError",
    "TeamMemberNotFoundError",
    "InviteNotFoundError",
    "InviteExpiredError",
    "InviteAlreadyConsumedError",
]


class LedgerService:
    """Entry point the API layer calls: one method per ledger operation.

    Each method runs in exactly one store transaction. Pass a store to share
    a database; without one the service runs on a private in-memory store.
    """

    def __init__(self, store: Optional[LedgerStore] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.store = store or LedgerStore.in_memory()
        self.accounts = AccountRegistry(self.store)
        self.balances = BalanceAccessor(self.store)
        self.earnings = EarningsPoster(self.store)
        self.withdrawals = WithdrawalProcessor(self.store)
        self.payment_methods = PaymentMethodRegistry(self.store)
        self.teams = TeamSplitEngine(self.store, invite_ttl_days=self.settings.INVITE_TTL_DAYS)
        self.cascade = CascadeDeletionController(self.store)
        self.notifier = Notifier(self.store)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "LedgerService":
        settings = settings or get_settings()
        return cls(LedgerStore.from_settings(settings), settings)

    # Users and balances

    def create_user(self, email: str, role: UserRole = UserRole.USER, artist_name: Optional[str] = None) -> User:
        return self.accounts.create_user(email, role=role, artist_name=artist_name)

    def get_user(self, user_id: UUID) -> User:
        return self.accounts.get_user(user_id)

    def get_balance(self, user_id: UUID) -> UserBalance:
        return self.balances.get_balance(user_id)

    # Earnings

    def create_earning(
        self, user_id: UUID, month: str, amount: Decimal, streams: int = 0, downloads: int = 0
    ) -> Earning:
        return self.earnings.create_earning(user_id, month, amount, streams, downloads)

    def delete_earning(self, earning_id: UUID) -> Earning:
        return self.earnings.delete_earning(earning_id)

    def list_earnings(self, user_id: UUID) -> list[Earning]:
        return self.earnings.list_earnings(user_id)

    def list_all_earnings(self) -> list[Earning]:
        return self.earnings.list_all_earnings()

    # Withdrawals

    def create_withdrawal(
        self, user_id: UUID, amount: Decimal, method: str, details: Optional[str] = None
    ) -> Withdrawal:
        return self.withdrawals.create_withdrawal(user_id, amount, method, details)

    def update_withdrawal_status(
        self, withdrawal_id: UUID, status: WithdrawalStatus, note: Optional[str] = None
    ) -> Withdrawal:
        return self.withdrawals.update_withdrawal_status(withdrawal_id, status, note)

    def resolve_withdrawal(
        self, withdrawal_id: UUID, status: WithdrawalStatus, note: Optional[str] = None
    ) -> tuple[Withdrawal, bool]:
        return self.withdrawals.resolve_withdrawal(withdrawal_id, status, note)

    def get_withdrawal(self, withdrawal_id: UUID) -> Withdrawal:
        return self.withdrawals.get_withdrawal(withdrawal_id)

    def list_withdrawals(self, user_id: UUID) -> list[Withdrawal]:
        return self.withdrawals.list_withdrawals(user_id)

    def list_all_withdrawals(self, status: Optional[WithdrawalStatus] = None) -> list[Withdrawal]:
        return self.withdrawals.list_all_withdrawals(status)

    # Payment methods

    def create_payment_method(
        self,
        user_id: UUID,
        bank_name: str,
        account_holder: str,
        iban: str,
        swift_bic: Optional[str] = None,
        is_default: bool = False,
    ) -> PaymentMethod:
        return self.payment_methods.create_payment_method(
            user_id, bank_name, account_holder, iban, swift_bic, is_default
        )

    def set_default_payment_method(self, user_id: UUID, method_id: UUID) -> PaymentMethod:
        return self.payment_methods.set_default_payment_method(user_id, method_id)

    def delete_payment_method(self, user_id: UUID, method_id: UUID) -> None:
        self.payment_methods.delete_payment_method(user_id, method_id)

    def list_payment_methods(self, user_id: UUID) -> list[PaymentMethod]:
        return self.payment_methods.list_payment_methods(user_id)

    # Teams

    def create_team(self, owner_id: UUID, name: str) -> Team:
        return self.teams.create_team(owner_id, name)

    def delete_team(self, team_id: UUID) -> None:
        self.teams.delete_team(team_id)

    def invite_to_team(self, team_id: UUID, email: str, share_percentage: float = 0) -> TeamInvite:
        return self.teams.invite_to_team(team_id, email, share_percentage)

    def accept_team_invite(self, invite_code: str, user_id: UUID) -> TeamMember:
        return self.teams.accept_team_invite(invite_code, user_id)

    def update_member_share(self, team_id: UUID, user_id: UUID, share_percentage: float) -> TeamMember:
        return self.teams.update_member_share(team_id, user_id, share_percentage)

    def remove_team_member(self, team_id: UUID, user_id: UUID) -> None:
        self.teams.remove_team_member(team_id, user_id)

    def get_team(self, team_id: UUID) -> Team:
        return self.teams.get_team(team_id)

    def list_user_teams(self, user_id: UUID) -> UserTeams:
        return self.teams.list_user_teams(user_id)

    def list_pending_invites(self, email: str) -> list[TeamInvite]:
        return self.teams.list_pending_invites(email)

    # Users

    def delete_user(self, user_id: UUID) -> dict[str, int]:
        return self.cascade.delete_user(user_id)

    # Admin

    def get_stats(self) -> LedgerStats:
        with self.store.transaction() as session:
            total_users = session.scalar(select(func.count()).select_from(schema.User))
        return LedgerStats(
            total_users=total_users,
            total_lifetime_earnings=self.earnings.total_lifetime_earnings(),
            pending_withdrawals=self.withdrawals.pending_total(),
        )

    def create_backup(self) -> Path:
        return create_backup(self.store, self.settings.BACKUP_DIR, self.settings.UPLOADS_DIR)

    def restore_backup(self, archive_path: Path) -> None:
        restore_backup(self.store, archive_path, self.settings.UPLOADS_DIR)
