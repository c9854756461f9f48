"""
Team Split Engine.

Teams group users who split a release's future revenue. Membership and
shares govern attribution that is computed elsewhere, so nothing here
touches a balance.

Invite lifecycle:
    PENDING → ACCEPTED   (consumed once by a conditional update)
    PENDING → EXPIRED    (past expires_at; reported, never consumed)
"""

import logging
import secrets
from datetime import timedelta
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from . import schema
from .db import LedgerStore
from .errors import (
    InvalidStateTransitionError,
    InviteAlreadyConsumedError,
    InviteExpiredError,
    InviteNotFoundError,
    TeamMemberNotFoundError,
    TeamNotFoundError,
    UserNotFoundError,
)
from .models import (
    InviteStatus,
    MemberRole,
    MemberStatus,
    Team,
    TeamInvite,
    TeamMember,
    TeamOverview,
    UserTeams,
)

logger = logging.getLogger(__name__)

OWNER_SHARE = 100.0


def generate_invite_code() -> str:
    return secrets.token_hex(6).upper()


def _get_team(session: Session, team_id: UUID) -> schema.Team:
    team = session.get(schema.Team, team_id)
    if team is None:
        raise TeamNotFoundError(team_id)
    return team


def _allocated_share(session: Session, team_id: UUID) -> float:
    members = session.scalar(
        select(func.coalesce(func.sum(schema.TeamMember.share_percentage), 0))
        .where(schema.TeamMember.team_id == team_id)
    )
    invites = session.scalar(
        select(func.coalesce(func.sum(schema.TeamInvite.share_percentage), 0))
        .where(schema.TeamInvite.team_id == team_id, schema.TeamInvite.status == InviteStatus.PENDING.value)
    )
    return float(members) + float(invites)


class TeamSplitEngine:
    def __init__(self, store: LedgerStore, invite_ttl_days: int = 7):
        self.store = store
        self.invite_ttl = timedelta(days=invite_ttl_days)

    def create_team(self, owner_id: UUID, name: str) -> Team:
        with self.store.transaction() as session:
            if session.get(schema.User, owner_id) is None:
                raise UserNotFoundError(owner_id)
            team = schema.Team(owner_id=owner_id, name=name)
            session.add(team)
            session.flush()
            session.add(schema.TeamMember(
                team_id=team.id,
                user_id=owner_id,
                share_percentage=OWNER_SHARE,
                role=MemberRole.OWNER.value,
                status=MemberStatus.ACTIVE.value,
                joined_at=schema.utcnow(),
            ))
            result = Team.model_validate(team)

        logger.info("Created team %s (%s) for owner %s", result.id, name, owner_id)
        return result

    def delete_team(self, team_id: UUID) -> None:
        with self.store.transaction() as session:
            _get_team(session, team_id)
            session.execute(
                delete(schema.TeamInvite).where(schema.TeamInvite.team_id == team_id)
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(schema.TeamMember).where(schema.TeamMember.team_id == team_id)
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(schema.Team).where(schema.Team.id == team_id)
                .execution_options(synchronize_session=False)
            )
        logger.info("Deleted team %s", team_id)

    def invite_to_team(self, team_id: UUID, email: str, share_percentage: float = 0) -> TeamInvite:
        """Create a single-use invite valid for the configured TTL.

        Cumulative shares are not capped at 100%: whether shares are global
        or per release is still undecided, so an over-allocation is only
        logged.
        """
        if not 0 <= share_percentage <= 100:
            raise ValueError(f"Share percentage must be between 0 and 100, got {share_percentage}")

        now = schema.utcnow()
        with self.store.transaction() as session:
            _get_team(session, team_id)
            allocated = _allocated_share(session, team_id) + share_percentage
            invite = schema.TeamInvite(
                team_id=team_id,
                email=email,
                share_percentage=share_percentage,
                invite_code=generate_invite_code(),
                status=InviteStatus.PENDING.value,
                expires_at=now + self.invite_ttl,
                created_at=now,
            )
            session.add(invite)
            session.flush()
            result = TeamInvite.model_validate(invite)

        if allocated > 100:
            logger.warning("Team %s now allocates %.2f%% across members and pending invites", team_id, allocated)
        logger.info("Invited %s to team %s with %.2f%% share", email, team_id, share_percentage)
        return result

    def accept_team_invite(self, invite_code: str, user_id: UUID) -> TeamMember:
        now = schema.utcnow()
        with self.store.transaction() as session:
            result = session.execute(
                update(schema.TeamInvite)
                .where(
                    schema.TeamInvite.invite_code == invite_code,
                    schema.TeamInvite.status == InviteStatus.PENDING.value,
                    schema.TeamInvite.expires_at > now,
                )
                .values(status=InviteStatus.ACCEPTED.value)
                .execution_options(synchronize_session=False)
            )
            invite = session.scalars(
                select(schema.TeamInvite).where(schema.TeamInvite.invite_code == invite_code)
            ).first()
            if result.rowcount != 1:
                if invite is None:
                    raise InviteNotFoundError(invite_code)
                if invite.status == InviteStatus.ACCEPTED.value:
                    raise InviteAlreadyConsumedError(f"Invite {invite_code} has already been used")
                raise InviteExpiredError(f"Invite {invite_code} has expired")

            if session.get(schema.User, user_id) is None:
                raise UserNotFoundError(user_id)
            existing = session.scalars(
                select(schema.TeamMember).where(
                    schema.TeamMember.team_id == invite.team_id,
                    schema.TeamMember.user_id == user_id,
                )
            ).first()
            if existing is not None:
                raise InvalidStateTransitionError(f"User {user_id} is already a member of team {invite.team_id}")

            member = schema.TeamMember(
                team_id=invite.team_id,
                user_id=user_id,
                share_percentage=invite.share_percentage,
                role=MemberRole.MEMBER.value,
                status=MemberStatus.ACTIVE.value,
                joined_at=now,
            )
            session.add(member)
            session.flush()
            accepted = TeamMember.model_validate(member)

        logger.info("User %s joined team %s via invite %s", user_id, accepted.team_id, invite_code)
        return accepted

    def update_member_share(self, team_id: UUID, user_id: UUID, share_percentage: float) -> TeamMember:
        if not 0 <= share_percentage <= 100:
            raise ValueError(f"Share percentage must be between 0 and 100, got {share_percentage}")
        with self.store.transaction() as session:
            member = self._get_member(session, team_id, user_id)
            member.share_percentage = share_percentage
            session.flush()
            return TeamMember.model_validate(member)

    def remove_team_member(self, team_id: UUID, user_id: UUID) -> None:
        with self.store.transaction() as session:
            member = self._get_member(session, team_id, user_id)
            if member.role == MemberRole.OWNER.value:
                raise InvalidStateTransitionError("The team owner cannot be removed; delete the team instead")
            session.delete(member)
        logger.info("Removed user %s from team %s", user_id, team_id)

    @staticmethod
    def _get_member(session: Session, team_id: UUID, user_id: UUID) -> schema.TeamMember:
        member = session.scalars(
            select(schema.TeamMember).where(
                schema.TeamMember.team_id == team_id,
                schema.TeamMember.user_id == user_id,
            )
        ).first()
        if member is None:
            raise TeamMemberNotFoundError(f"{user_id} in team {team_id}")
        return member

    # Queries

    def get_team(self, team_id: UUID) -> Team:
        with self.store.transaction() as session:
            return Team.model_validate(_get_team(session, team_id))

    def list_team_members(self, team_id: UUID) -> list[TeamMember]:
        with self.store.transaction() as session:
            rows = session.scalars(
                select(schema.TeamMember)
                .where(schema.TeamMember.team_id == team_id)
                .order_by(schema.TeamMember.created_at)
            ).all()
            return [TeamMember.model_validate(r) for r in rows]

    def list_team_invites(self, team_id: UUID) -> list[TeamInvite]:
        with self.store.transaction() as session:
            rows = session.scalars(
                select(schema.TeamInvite)
                .where(schema.TeamInvite.team_id == team_id)
                .order_by(schema.TeamInvite.created_at.desc())
            ).all()
            return [TeamInvite.model_validate(r) for r in rows]

    def list_pending_invites(self, email: str) -> list[TeamInvite]:
        now = schema.utcnow()
        with self.store.transaction() as session:
            rows = session.scalars(
                select(schema.TeamInvite)
                .where(
                    schema.TeamInvite.email == email,
                    schema.TeamInvite.status == InviteStatus.PENDING.value,
                    schema.TeamInvite.expires_at > now,
                )
                .order_by(schema.TeamInvite.created_at.desc())
            ).all()
            return [TeamInvite.model_validate(r) for r in rows]

    def allocated_share(self, team_id: UUID) -> float:
        with self.store.transaction() as session:
            _get_team(session, team_id)
            return _allocated_share(session, team_id)

    def list_user_teams(self, user_id: UUID) -> UserTeams:
        with self.store.transaction() as session:
            owned = session.scalars(
                select(schema.Team).where(schema.Team.owner_id == user_id).order_by(schema.Team.created_at.desc())
            ).all()
            joined = session.scalars(
                select(schema.Team)
                .join(schema.TeamMember, schema.TeamMember.team_id == schema.Team.id)
                .where(schema.TeamMember.user_id == user_id, schema.Team.owner_id != user_id)
                .order_by(schema.Team.created_at.desc())
            ).all()
            return UserTeams(
                owned_teams=[self._overview(session, t, is_owner=True) for t in owned],
                member_teams=[self._overview(session, t, is_owner=False) for t in joined],
            )

    @staticmethod
    def _overview(session: Session, team: schema.Team, is_owner: bool) -> TeamOverview:
        members = session.scalars(
            select(schema.TeamMember).where(schema.TeamMember.team_id == team.id).order_by(schema.TeamMember.created_at)
        ).all()
        invites: list = []
        if is_owner:
            invites = session.scalars(
                select(schema.TeamInvite)
                .where(schema.TeamInvite.team_id == team.id)
                .order_by(schema.TeamInvite.created_at.desc())
            ).all()
        return TeamOverview(
            team=Team.model_validate(team),
            is_owner=is_owner,
            members=[TeamMember.model_validate(m) for m in members],
            invites=[TeamInvite.model_validate(i) for i in invites],
        )
