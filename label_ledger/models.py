from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .money import from_cents


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class MemberRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"


class MemberStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


class InviteStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"


# Largest accepted amount is 9,999,999,999,999.99.
MAX_AMOUNT_DIGITS = 15


# Requests. One model per operation, each listing only the fields that
# operation may change.

class CreateEarningRequest(BaseModel):
    user_id: UUID
    month: str = Field(..., min_length=1, description="Reporting period, e.g. 2024-05")
    amount: Decimal = Field(..., gt=0, max_digits=MAX_AMOUNT_DIGITS, decimal_places=2)
    streams: int = Field(default=0, ge=0)
    downloads: int = Field(default=0, ge=0)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_id": "550e8400-e29b-41d4-a716-446655440000",
            "month": "2024-05",
            "amount": 125.40,
            "streams": 48210,
            "downloads": 37,
        }
    })


class CreateWithdrawalRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=MAX_AMOUNT_DIGITS, decimal_places=2)
    method: str = Field(..., min_length=1, description="Payout rail, e.g. IBAN or PAYPAL")
    details: Optional[str] = None


class UpdateWithdrawalStatusRequest(BaseModel):
    status: WithdrawalStatus
    note: Optional[str] = None


class CreatePaymentMethodRequest(BaseModel):
    bank_name: str = Field(..., min_length=1)
    account_holder: str = Field(..., min_length=1)
    iban: str = Field(..., min_length=1)
    swift_bic: Optional[str] = None
    is_default: bool = False


class CreateTeamRequest(BaseModel):
    name: str = Field(..., min_length=1)


class InviteToTeamRequest(BaseModel):
    email: str = Field(..., min_length=3)
    share_percentage: float = Field(default=0, ge=0, le=100)


class AcceptInviteRequest(BaseModel):
    invite_code: str = Field(..., min_length=1)


class UpdateMemberShareRequest(BaseModel):
    share_percentage: float = Field(..., ge=0, le=100)


# Records

class User(BaseModel):
    id: UUID
    email: str
    role: UserRole
    artist_name: Optional[str] = None
    balance: Decimal
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(
            id=row.id, email=row.email, role=row.role, artist_name=row.artist_name,
            balance=from_cents(row.balance_cents), created_at=row.created_at,
        )


class Earning(BaseModel):
    id: UUID
    user_id: UUID
    month: str
    amount: Decimal
    streams: int
    downloads: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "Earning":
        return cls(
            id=row.id, user_id=row.user_id, month=row.month,
            amount=from_cents(row.amount_cents), streams=row.streams,
            downloads=row.downloads, created_at=row.created_at,
        )


class Withdrawal(BaseModel):
    id: UUID
    user_id: UUID
    amount: Decimal
    method: str
    details: Optional[str] = None
    status: WithdrawalStatus
    note: Optional[str] = None
    requested_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "Withdrawal":
        return cls(
            id=row.id, user_id=row.user_id, amount=from_cents(row.amount_cents),
            method=row.method, details=row.details, status=row.status, note=row.note,
            requested_at=row.requested_at, processed_at=row.processed_at,
        )


class PaymentMethod(BaseModel):
    id: UUID
    user_id: UUID
    type: str
    bank_name: Optional[str] = None
    account_holder: Optional[str] = None
    iban: Optional[str] = None
    swift_bic: Optional[str] = None
    is_default: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Team(BaseModel):
    id: UUID
    owner_id: UUID
    name: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TeamMember(BaseModel):
    id: UUID
    team_id: UUID
    user_id: UUID
    share_percentage: float
    role: MemberRole
    status: MemberStatus
    joined_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TeamInvite(BaseModel):
    id: UUID
    team_id: UUID
    email: str
    share_percentage: float
    invite_code: str
    status: InviteStatus
    expires_at: datetime
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserBalance(BaseModel):
    user_id: UUID
    current_balance: Decimal
    total_earned: Decimal
    total_withdrawn: Decimal
    pending_withdrawals: Decimal


class TeamOverview(BaseModel):
    team: Team
    is_owner: bool
    members: list[TeamMember]
    invites: list[TeamInvite] = Field(default_factory=list)


class UserTeams(BaseModel):
    owned_teams: list[TeamOverview]
    member_teams: list[TeamOverview]


class LedgerStats(BaseModel):
    total_users: int
    total_lifetime_earnings: Decimal
    pending_withdrawals: Decimal
