import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select

from . import schema
from .db import LedgerStore
from .errors import UserNotFoundError
from .models import User, UserRole

logger = logging.getLogger(__name__)


class AccountRegistry:
    """User rows the ledger hangs balances on. Sign-up itself happens upstream."""

    def __init__(self, store: LedgerStore):
        self.store = store

    def create_user(
        self,
        email: str,
        role: UserRole = UserRole.USER,
        artist_name: Optional[str] = None,
    ) -> User:
        with self.store.transaction() as session:
            row = schema.User(email=email, role=UserRole(role).value, artist_name=artist_name, balance_cents=0)
            session.add(row)
            session.flush()
            logger.info("Created user %s (%s)", row.id, row.role)
            return User.from_row(row)

    def get_user(self, user_id: UUID) -> User:
        with self.store.transaction() as session:
            row = session.get(schema.User, user_id)
            if row is None:
                raise UserNotFoundError(user_id)
            return User.from_row(row)

    def find_by_email(self, email: str) -> Optional[User]:
        with self.store.transaction() as session:
            row = session.scalars(select(schema.User).where(schema.User.email == email)).first()
            return User.from_row(row) if row else None
