import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from . import schema
from .balance import credit, debit
from .db import LedgerStore
from .errors import EarningNotFoundError
from .models import Earning
from .money import from_cents, positive_cents

logger = logging.getLogger(__name__)


class EarningsPoster:
    """Posts periodic royalty earnings, each coupled to a balance credit."""

    def __init__(self, store: LedgerStore):
        self.store = store

    def create_earning(
        self,
        user_id: UUID,
        month: str,
        amount: Decimal,
        streams: int = 0,
        downloads: int = 0,
    ) -> Earning:
        cents = positive_cents(amount)
        with self.store.transaction() as session:
            row = schema.Earning(
                user_id=user_id,
                month=month,
                amount_cents=cents,
                streams=streams,
                downloads=downloads,
            )
            session.add(row)
            credit(session, user_id, cents)
            session.flush()
            earning = Earning.from_row(row)

        logger.info("Posted earning %s for user %s: %s (%s)", earning.id, user_id, earning.amount, month)
        return earning

    def delete_earning(self, earning_id: UUID) -> Earning:
        """Delete an earning and take its exact amount back off the balance.

        Raises InsufficientFundsError if the user has already spent the
        money; the earning is then left in place.
        """
        with self.store.transaction() as session:
            row = session.get(schema.Earning, earning_id)
            if row is None:
                raise EarningNotFoundError(earning_id)
            earning = Earning.from_row(row)
            session.delete(row)
            debit(session, row.user_id, row.amount_cents)

        logger.info("Reversed earning %s for user %s: %s", earning_id, earning.user_id, earning.amount)
        return earning

    def get_earning(self, earning_id: UUID) -> Earning:
        with self.store.transaction() as session:
            row = session.get(schema.Earning, earning_id)
            if row is None:
                raise EarningNotFoundError(earning_id)
            return Earning.from_row(row)

    def list_earnings(self, user_id: UUID) -> list[Earning]:
        with self.store.transaction() as session:
            rows = session.scalars(
                select(schema.Earning)
                .where(schema.Earning.user_id == user_id)
                .order_by(schema.Earning.month.desc(), schema.Earning.created_at.desc())
            ).all()
            return [Earning.from_row(r) for r in rows]

    def list_all_earnings(self) -> list[Earning]:
        with self.store.transaction() as session:
            rows = session.scalars(
                select(schema.Earning).order_by(schema.Earning.month.desc(), schema.Earning.created_at.desc())
            ).all()
            return [Earning.from_row(r) for r in rows]

    def total_lifetime_earnings(self) -> Decimal:
        with self.store.transaction() as session:
            total = session.scalar(select(func.coalesce(func.sum(schema.Earning.amount_cents), 0)))
        return from_cents(total)
