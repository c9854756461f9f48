from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(String, unique=True, nullable=False)
    role = Column(String, nullable=False, default="user")
    artist_name = Column(String, nullable=True)
    balance_cents = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint("balance_cents >= 0", name="ck_users_balance_non_negative"),
    )


# Financials

class Earning(Base):
    __tablename__ = "earnings"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    month = Column(String, nullable=False)
    amount_cents = Column(Integer, nullable=False)
    streams = Column(Integer, nullable=False, default=0)
    downloads = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)


class Withdrawal(Base):
    __tablename__ = "withdrawals"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    method = Column(String, nullable=False)
    details = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="PENDING")
    note = Column(Text, nullable=True)
    requested_at = Column(DateTime, default=utcnow)
    processed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_withdrawals_amount_positive"),
    )


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False, default="IBAN")
    bank_name = Column(String, nullable=True)
    account_holder = Column(String, nullable=True)
    iban = Column(String, nullable=True)
    swift_bic = Column(String, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)


# Teams

class Team(Base):
    __tablename__ = "teams"

    id = Column(Uuid, primary_key=True, default=uuid4)
    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Uuid, primary_key=True, default=uuid4)
    team_id = Column(Uuid, ForeignKey("teams.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    share_percentage = Column(Float, nullable=False, default=0)
    role = Column(String, nullable=False, default="member")
    status = Column(String, nullable=False, default="PENDING")
    joined_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
    )


class TeamInvite(Base):
    __tablename__ = "team_invites"

    id = Column(Uuid, primary_key=True, default=uuid4)
    team_id = Column(Uuid, ForeignKey("teams.id"), nullable=False, index=True)
    email = Column(String, nullable=False, index=True)
    share_percentage = Column(Float, nullable=False, default=0)
    invite_code = Column(String, unique=True, nullable=False)
    status = Column(String, nullable=False, default="PENDING")
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)


# Content graph owned by a user. Only the columns the cascade needs are
# modelled here; the metadata CRUD lives elsewhere.

class Release(Base):
    __tablename__ = "releases"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    status = Column(String, default="PENDING")
    created_at = Column(DateTime, default=utcnow)


class Track(Base):
    __tablename__ = "tracks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    release_id = Column(Uuid, ForeignKey("releases.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    isrc = Column(String, nullable=True)
    track_number = Column(Integer, nullable=True)


class TrackArtist(Base):
    __tablename__ = "track_artists"

    id = Column(Uuid, primary_key=True, default=uuid4)
    track_id = Column(Uuid, ForeignKey("tracks.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    role = Column(String, nullable=True)


class TrackWriter(Base):
    __tablename__ = "track_writers"

    id = Column(Uuid, primary_key=True, default=uuid4)
    track_id = Column(Uuid, ForeignKey("tracks.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    share = Column(Float, default=0)


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    release_id = Column(Uuid, ForeignKey("releases.id"), nullable=True, index=True)
    type = Column(String, default="distribution")
    status = Column(String, default="PENDING")
    created_at = Column(DateTime, default=utcnow)


class ArtistLibraryEntry(Base):
    __tablename__ = "artist_library"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)


class WriterLibraryEntry(Base):
    __tablename__ = "writer_library"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    subject = Column(String, nullable=True)
    status = Column(String, default="OPEN")
    created_at = Column(DateTime, default=utcnow)


class TicketResponse(Base):
    __tablename__ = "ticket_responses"

    id = Column(Uuid, primary_key=True, default=uuid4)
    ticket_id = Column(Uuid, ForeignKey("tickets.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    message = Column(Text, nullable=True)
    is_admin = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=True)
    message = Column(Text, nullable=True)
    type = Column(String, default="info")
    read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)


class Application(Base):
    __tablename__ = "applications"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    bio = Column(Text, nullable=True)
    status = Column(String, default="PENDING")
    submitted_at = Column(DateTime, default=utcnow)


class UserProfile(Base):
    __tablename__ = "user_profiles"

    user_id = Column(Uuid, ForeignKey("users.id"), primary_key=True)
    bio = Column(Text, nullable=True)
    instagram_url = Column(String, nullable=True)
    spotify_url = Column(String, nullable=True)
