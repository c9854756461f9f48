"""
Financial ledger and royalty-split engine for a record-label platform.

This package provides:
- Spendable balances kept in integer cents, changed only by conditional credit/debit
- Earnings posting and exact reversal
- Withdrawal escrow with a one-shot PENDING → COMPLETED / REJECTED resolution
- Payment methods with a single default per user
- Teams, split memberships and single-use invites
- Transactional deletion of a user's whole graph
"""

from .db import LedgerStore
from .models import (
    Earning,
    InviteStatus,
    MemberRole,
    PaymentMethod,
    Team,
    TeamInvite,
    TeamMember,
    UserBalance,
    UserRole,
    Withdrawal,
    WithdrawalStatus,
)
from .service import LedgerService

__all__ = [
    "LedgerStore",
    "LedgerService",
    "Earning",
    "InviteStatus",
    "MemberRole",
    "PaymentMethod",
    "Team",
    "TeamInvite",
    "TeamMember",
    "UserBalance",
    "UserRole",
    "Withdrawal",
    "WithdrawalStatus",
]
