"""
Cascade Deletion Controller.

Removes a user and everything that references them in one transaction,
children before parents so foreign keys hold at every step. Stored media
are not touched here; the offline file-cleanup job reclaims orphaned
assets after the rows are gone.
"""

import logging
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from . import schema
from .db import LedgerStore
from .errors import UserNotFoundError

logger = logging.getLogger(__name__)


def _delete(session: Session, model, *criteria) -> int:
    result = session.execute(
        delete(model).where(*criteria).execution_options(synchronize_session=False)
    )
    return result.rowcount


class CascadeDeletionController:
    def __init__(self, store: LedgerStore):
        self.store = store

    def delete_user(self, user_id: UUID) -> dict[str, int]:
        """Delete ``user_id`` and its whole dependent graph.

        Returns the number of rows removed per table. Any failure rolls the
        entire deletion back.
        """
        counts: dict[str, int] = {}

        def drop(model, *criteria) -> None:
            counts[model.__tablename__] = counts.get(model.__tablename__, 0) + _delete(session, model, *criteria)

        with self.store.transaction() as session:
            if session.get(schema.User, user_id) is None:
                raise UserNotFoundError(user_id)

            # Teams the user owns, then memberships elsewhere.
            owned_teams = select(schema.Team.id).where(schema.Team.owner_id == user_id)
            drop(schema.TeamMember, schema.TeamMember.team_id.in_(owned_teams))
            drop(schema.TeamInvite, schema.TeamInvite.team_id.in_(owned_teams))
            drop(schema.Team, schema.Team.owner_id == user_id)
            drop(schema.TeamMember, schema.TeamMember.user_id == user_id)

            # Releases and everything hanging off them.
            releases = select(schema.Release.id).where(schema.Release.user_id == user_id)
            tracks = select(schema.Track.id).where(schema.Track.release_id.in_(releases))
            drop(schema.TrackArtist, schema.TrackArtist.track_id.in_(tracks))
            drop(schema.TrackWriter, schema.TrackWriter.track_id.in_(tracks))
            drop(schema.Track, schema.Track.release_id.in_(releases))
            drop(schema.Contract, or_(schema.Contract.release_id.in_(releases), schema.Contract.user_id == user_id))
            drop(schema.Release, schema.Release.user_id == user_id)

            drop(schema.ArtistLibraryEntry, schema.ArtistLibraryEntry.user_id == user_id)
            drop(schema.WriterLibraryEntry, schema.WriterLibraryEntry.user_id == user_id)

            # Financials
            drop(schema.Earning, schema.Earning.user_id == user_id)
            drop(schema.Withdrawal, schema.Withdrawal.user_id == user_id)
            drop(schema.PaymentMethod, schema.PaymentMethod.user_id == user_id)

            # Support and social
            tickets = select(schema.Ticket.id).where(schema.Ticket.user_id == user_id)
            drop(
                schema.TicketResponse,
                or_(schema.TicketResponse.user_id == user_id, schema.TicketResponse.ticket_id.in_(tickets)),
            )
            drop(schema.Ticket, schema.Ticket.user_id == user_id)
            drop(schema.Notification, schema.Notification.user_id == user_id)
            drop(schema.Application, schema.Application.user_id == user_id)
            drop(schema.UserProfile, schema.UserProfile.user_id == user_id)

            drop(schema.User, schema.User.id == user_id)

        logger.info(
            "Deleted user %s: %s",
            user_id,
            ", ".join(f"{table}={n}" for table, n in counts.items() if n),
        )
        return counts
