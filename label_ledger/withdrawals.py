"""
Withdrawal Processor.

State machine:
    PENDING → COMPLETED   (no balance effect, funds were escrowed at request time)
    PENDING → REJECTED    (escrowed amount refunded, exactly once)

Escrow happens when the withdrawal is requested: the balance is debited in
the same transaction that inserts the PENDING row.
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update

from . import schema
from .balance import credit, debit
from .db import LedgerStore
from .errors import InvalidStateTransitionError, WithdrawalNotFoundError
from .models import Withdrawal, WithdrawalStatus
from .money import from_cents, positive_cents

logger = logging.getLogger(__name__)


class WithdrawalProcessor:
    def __init__(self, store: LedgerStore):
        self.store = store

    def create_withdrawal(
        self,
        user_id: UUID,
        amount: Decimal,
        method: str,
        details: Optional[str] = None,
    ) -> Withdrawal:
        cents = positive_cents(amount)
        with self.store.transaction() as session:
            debit(session, user_id, cents)
            row = schema.Withdrawal(
                user_id=user_id,
                amount_cents=cents,
                method=method,
                details=details,
                status=WithdrawalStatus.PENDING.value,
                requested_at=schema.utcnow(),
            )
            session.add(row)
            session.flush()
            withdrawal = Withdrawal.from_row(row)

        logger.info("Withdrawal %s requested by user %s: %s via %s", withdrawal.id, user_id, withdrawal.amount, method)
        return withdrawal

    def update_withdrawal_status(
        self,
        withdrawal_id: UUID,
        status: WithdrawalStatus,
        note: Optional[str] = None,
    ) -> Withdrawal:
        return self.resolve_withdrawal(withdrawal_id, status, note)[0]

    def resolve_withdrawal(
        self,
        withdrawal_id: UUID,
        status: WithdrawalStatus,
        note: Optional[str] = None,
    ) -> tuple[Withdrawal, bool]:
        """Resolve a PENDING withdrawal.

        Returns the withdrawal and whether this call moved it. Repeating the
        status the withdrawal already has is a no-op reported as unchanged, so
        a retried REJECTED call never refunds twice. Any other move out of a
        resolved state raises InvalidStateTransitionError.
        """
        status = WithdrawalStatus(status)
        if status == WithdrawalStatus.PENDING:
            raise InvalidStateTransitionError("Withdrawals cannot be moved back to PENDING")

        with self.store.transaction() as session:
            row = session.get(schema.Withdrawal, withdrawal_id)
            if row is None:
                raise WithdrawalNotFoundError(withdrawal_id)

            if row.status == status.value:
                logger.info("Withdrawal %s already %s, nothing to do", withdrawal_id, status.value)
                return Withdrawal.from_row(row), False
            if row.status != WithdrawalStatus.PENDING.value:
                raise InvalidStateTransitionError(
                    f"Cannot move withdrawal {withdrawal_id} from {row.status} to {status.value}"
                )

            # The status guard in the WHERE clause is what makes the refund
            # single-shot when two resolutions race.
            processed_at = schema.utcnow()
            result = session.execute(
                update(schema.Withdrawal)
                .where(
                    schema.Withdrawal.id == withdrawal_id,
                    schema.Withdrawal.status == WithdrawalStatus.PENDING.value,
                )
                .values(status=status.value, note=note, processed_at=processed_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateTransitionError(f"Withdrawal {withdrawal_id} was resolved concurrently")

            if status == WithdrawalStatus.REJECTED:
                credit(session, row.user_id, row.amount_cents)

            session.refresh(row)
            withdrawal = Withdrawal.from_row(row)

        logger.info("Withdrawal %s marked %s", withdrawal_id, status.value)
        return withdrawal, True

    def get_withdrawal(self, withdrawal_id: UUID) -> Withdrawal:
        with self.store.transaction() as session:
            row = session.get(schema.Withdrawal, withdrawal_id)
            if row is None:
                raise WithdrawalNotFoundError(withdrawal_id)
            return Withdrawal.from_row(row)

    def list_withdrawals(self, user_id: UUID) -> list[Withdrawal]:
        with self.store.transaction() as session:
            rows = session.scalars(
                select(schema.Withdrawal)
                .where(schema.Withdrawal.user_id == user_id)
                .order_by(schema.Withdrawal.requested_at.desc())
            ).all()
            return [Withdrawal.from_row(r) for r in rows]

    def list_all_withdrawals(self, status: Optional[WithdrawalStatus] = None) -> list[Withdrawal]:
        query = select(schema.Withdrawal).order_by(schema.Withdrawal.requested_at.desc())
        if status is not None:
            query = query.where(schema.Withdrawal.status == WithdrawalStatus(status).value)
        with self.store.transaction() as session:
            return [Withdrawal.from_row(r) for r in session.scalars(query).all()]

    def pending_total(self) -> Decimal:
        with self.store.transaction() as session:
            total = session.scalar(
                select(func.coalesce(func.sum(schema.Withdrawal.amount_cents), 0))
                .where(schema.Withdrawal.status == WithdrawalStatus.PENDING.value)
            )
        return from_cents(total)
