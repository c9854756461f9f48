import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from . import schema
from .db import LedgerStore
from .errors import PaymentMethodNotFoundError
from .models import PaymentMethod

logger = logging.getLogger(__name__)


def _clear_defaults(session: Session, user_id: UUID) -> None:
    session.execute(
        update(schema.PaymentMethod)
        .where(schema.PaymentMethod.user_id == user_id, schema.PaymentMethod.is_default.is_(True))
        .values(is_default=False)
        .execution_options(synchronize_session=False)
    )


class PaymentMethodRegistry:
    """Per-user bank details with at most one default per user.

    Deleting a method does not look at in-flight withdrawals: a withdrawal
    carries its own copy of the payout details.
    """

    def __init__(self, store: LedgerStore):
        self.store = store

    def create_payment_method(
        self,
        user_id: UUID,
        bank_name: str,
        account_holder: str,
        iban: str,
        swift_bic: Optional[str] = None,
        is_default: bool = False,
    ) -> PaymentMethod:
        with self.store.transaction() as session:
            if is_default:
                _clear_defaults(session, user_id)
            row = schema.PaymentMethod(
                user_id=user_id,
                type="IBAN",
                bank_name=bank_name,
                account_holder=account_holder,
                iban=iban,
                swift_bic=swift_bic,
                is_default=is_default,
            )
            session.add(row)
            session.flush()
            method = PaymentMethod.model_validate(row)

        logger.info("Added payment method %s for user %s (default=%s)", method.id, user_id, is_default)
        return method

    def set_default_payment_method(self, user_id: UUID, method_id: UUID) -> PaymentMethod:
        with self.store.transaction() as session:
            _clear_defaults(session, user_id)
            result = session.execute(
                update(schema.PaymentMethod)
                .where(schema.PaymentMethod.id == method_id, schema.PaymentMethod.user_id == user_id)
                .values(is_default=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise PaymentMethodNotFoundError(method_id)
            row = session.get(schema.PaymentMethod, method_id, populate_existing=True)
            method = PaymentMethod.model_validate(row)

        logger.info("Payment method %s is now default for user %s", method_id, user_id)
        return method

    def delete_payment_method(self, user_id: UUID, method_id: UUID) -> None:
        with self.store.transaction() as session:
            result = session.execute(
                delete(schema.PaymentMethod)
                .where(schema.PaymentMethod.id == method_id, schema.PaymentMethod.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise PaymentMethodNotFoundError(method_id)
        logger.info("Deleted payment method %s for user %s", method_id, user_id)

    def list_payment_methods(self, user_id: UUID) -> list[PaymentMethod]:
        with self.store.transaction() as session:
            rows = session.scalars(
                select(schema.PaymentMethod)
                .where(schema.PaymentMethod.user_id == user_id)
                .order_by(schema.PaymentMethod.is_default.desc(), schema.PaymentMethod.created_at.desc())
            ).all()
            return [PaymentMethod.model_validate(r) for r in rows]

    def get_default_payment_method(self, user_id: UUID) -> Optional[PaymentMethod]:
        with self.store.transaction() as session:
            row = session.scalars(
                select(schema.PaymentMethod)
                .where(schema.PaymentMethod.user_id == user_id, schema.PaymentMethod.is_default.is_(True))
            ).first()
            return PaymentMethod.model_validate(row) if row else None
