"""
Balance Accessor.

``credit`` and ``debit`` are the only code paths that change
``users.balance_cents``. Both are a single conditional UPDATE executed inside
the caller's session, so the check and the write cannot be split by a
concurrent transaction.
"""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from . import schema
from .db import LedgerStore
from .errors import InsufficientFundsError, UserNotFoundError
from .models import UserBalance, WithdrawalStatus
from .money import MAX_CENTS, from_cents, positive_cents

logger = logging.getLogger(__name__)


def _ensure_user(session: Session, user_id: UUID) -> None:
    exists = session.scalar(select(schema.User.id).where(schema.User.id == user_id))
    if exists is None:
        raise UserNotFoundError(user_id)


def credit(session: Session, user_id: UUID, cents: int) -> None:
    if cents <= 0:
        raise ValueError(f"Credit must be positive, got {cents} cents")
    result = session.execute(
        update(schema.User)
        .where(schema.User.id == user_id, schema.User.balance_cents <= MAX_CENTS - cents)
        .values(balance_cents=schema.User.balance_cents + cents)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return
    _ensure_user(session, user_id)
    raise ValueError(f"Crediting {from_cents(cents)} would overflow the balance of user {user_id}")


def debit(session: Session, user_id: UUID, cents: int) -> None:
    if cents <= 0:
        raise ValueError(f"Debit must be positive, got {cents} cents")
    result = session.execute(
        update(schema.User)
        .where(schema.User.id == user_id, schema.User.balance_cents >= cents)
        .values(balance_cents=schema.User.balance_cents - cents)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return
    _ensure_user(session, user_id)
    raise InsufficientFundsError(f"Insufficient balance to debit {from_cents(cents)} from user {user_id}")


def balance_cents(session: Session, user_id: UUID) -> int:
    cents = session.scalar(select(schema.User.balance_cents).where(schema.User.id == user_id))
    if cents is None:
        raise UserNotFoundError(user_id)
    return cents


class BalanceAccessor:
    def __init__(self, store: LedgerStore):
        self.store = store

    def credit(self, user_id: UUID, amount: Decimal) -> Decimal:
        cents = positive_cents(amount)
        with self.store.transaction() as session:
            credit(session, user_id, cents)
            new_balance = balance_cents(session, user_id)
        logger.info("Credited %s to user %s", from_cents(cents), user_id)
        return from_cents(new_balance)

    def debit(self, user_id: UUID, amount: Decimal) -> Decimal:
        cents = positive_cents(amount)
        with self.store.transaction() as session:
            debit(session, user_id, cents)
            new_balance = balance_cents(session, user_id)
        logger.info("Debited %s from user %s", from_cents(cents), user_id)
        return from_cents(new_balance)

    def get_balance(self, user_id: UUID) -> UserBalance:
        with self.store.transaction() as session:
            current = balance_cents(session, user_id)
            earned = session.scalar(
                select(func.coalesce(func.sum(schema.Earning.amount_cents), 0))
                .where(schema.Earning.user_id == user_id)
            )
            withdrawn = self._withdrawn(session, user_id, WithdrawalStatus.COMPLETED)
            pending = self._withdrawn(session, user_id, WithdrawalStatus.PENDING)

        return UserBalance(
            user_id=user_id,
            current_balance=from_cents(current),
            total_earned=from_cents(earned),
            total_withdrawn=from_cents(withdrawn),
            pending_withdrawals=from_cents(pending),
        )

    @staticmethod
    def _withdrawn(session: Session, user_id: UUID, status: WithdrawalStatus) -> int:
        return session.scalar(
            select(func.coalesce(func.sum(schema.Withdrawal.amount_cents), 0))
            .where(schema.Withdrawal.user_id == user_id, schema.Withdrawal.status == status.value)
        )
