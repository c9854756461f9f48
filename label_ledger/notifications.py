"""
User notifications emitted after a ledger change has committed.

Notifications are written in their own transaction. A failure here is
logged and reported to the caller as ``None``; it never reaches back into
the financial transaction that triggered it.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from . import schema
from .db import LedgerStore
from .models import Withdrawal, WithdrawalStatus

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self, store: LedgerStore):
        self.store = store

    def notify(self, user_id: UUID, title: str, message: str, type: str = "info") -> Optional[UUID]:
        try:
            with self.store.transaction() as session:
                row = schema.Notification(user_id=user_id, title=title, message=message, type=type)
                session.add(row)
                session.flush()
                return row.id
        except SQLAlchemyError:
            logger.exception("Failed to store notification %r for user %s", title, user_id)
            return None

    def withdrawal_resolved(self, withdrawal: Withdrawal) -> Optional[UUID]:
        if withdrawal.status == WithdrawalStatus.COMPLETED:
            return self.notify(
                withdrawal.user_id,
                "Withdrawal Completed",
                f"Your withdrawal of ${withdrawal.amount} has been processed.",
                type="success",
            )
        message = f"Your withdrawal of ${withdrawal.amount} was rejected and the amount returned to your balance."
        if withdrawal.note:
            message += f" Note: {withdrawal.note}"
        return self.notify(withdrawal.user_id, "Withdrawal Rejected", message, type="warning")

    def team_invite(self, user_id: UUID, team_name: str) -> Optional[UUID]:
        return self.notify(user_id, "Team Invite", f'You\'ve been invited to join team "{team_name}"')
