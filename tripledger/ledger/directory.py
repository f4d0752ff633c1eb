"""Mini README: Minimal trip directory backing the ledger.

Structure:
    * TripDirectory - create/lookup users, trips, and trip memberships.

The ledger only needs to know who belongs to a trip and what they are
called, so the directory stays deliberately small: no updates, no
deletions, no invitations. Adding a member publishes ``member-added`` so
open trip views refresh their member lists.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..events import EventBus, EventName
from ..logging_utils import get_logger
from ..storage import LedgerDatabase
from .models import MemberRole, Trip, TripMember, User
from .tables import TripMemberRow, TripRow, UserRow

LOGGER = get_logger(__name__)


def _user_from_row(row: UserRow) -> User:
    return User(user_id=row.id, name=row.name, email=row.email)


def _trip_from_row(row: TripRow) -> Trip:
    return Trip(
        trip_id=row.id,
        name=row.name,
        organizer_id=row.organizer_id,
        destination=row.destination,
        start_date=row.start_date,
        end_date=row.end_date,
    )


def _member_from_row(row: TripMemberRow) -> TripMember:
    return TripMember(
        trip_id=row.trip_id,
        user_id=row.user_id,
        name=row.user.name,
        role=MemberRole(row.role),
        can_edit=row.can_edit,
    )


def require_trip(session: Session, trip_id: str) -> TripRow:
    trip = session.get(TripRow, trip_id)
    if trip is None:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip


def member_ids(session: Session, trip_id: str) -> List[str]:
    return list(session.scalars(select(TripMemberRow.user_id).where(TripMemberRow.trip_id == trip_id)))


class TripDirectory:
    """Look up and register the people and trips the ledger refers to."""

    def __init__(self, database: LedgerDatabase, event_bus: Optional[EventBus] = None) -> None:
        self._database = database
        self._event_bus = event_bus

    def create_user(self, name: str, email: Optional[str] = None) -> User:
        if not name or not name.strip():
            raise ValidationError("User name is required")
        row = UserRow(id=str(uuid.uuid4()), name=name.strip(), email=email or None)
        try:
            with self._database.transaction() as session:
                session.add(row)
        except IntegrityError as error:
            raise ValidationError(f"Email {email} is already registered") from error
        LOGGER.info("Created user %s", row.id)
        return _user_from_row(row)

    def get_user(self, user_id: str) -> User:
        with self._database.session() as session:
            row = session.get(UserRow, user_id)
            if row is None:
                raise NotFoundError(f"User {user_id} not found")
            return _user_from_row(row)

    def create_trip(
        self,
        name: str,
        organizer_id: str,
        *,
        destination: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Trip:
        """Create a trip and enrol its organizer with edit rights."""

        if not name or not name.strip():
            raise ValidationError("Trip name is required")
        if start_date and end_date and end_date < start_date:
            raise ValidationError("Trip end date cannot be before its start date")

        with self._database.transaction() as session:
            if session.get(UserRow, organizer_id) is None:
                raise NotFoundError(f"User {organizer_id} not found")
            trip = TripRow(
                id=str(uuid.uuid4()),
                name=name.strip(),
                destination=destination,
                start_date=start_date,
                end_date=end_date,
                organizer_id=organizer_id,
            )
            session.add(trip)
            session.add(
                TripMemberRow(
                    id=str(uuid.uuid4()),
                    trip_id=trip.id,
                    user_id=organizer_id,
                    role=MemberRole.ORGANIZER.value,
                    can_edit=True,
                )
            )
        LOGGER.info("Created trip %s organised by %s", trip.id, organizer_id)
        return _trip_from_row(trip)

    def get_trip(self, trip_id: str) -> Trip:
        with self._database.session() as session:
            return _trip_from_row(require_trip(session, trip_id))

    def add_member(
        self,
        trip_id: str,
        user_id: str,
        *,
        role: MemberRole = MemberRole.MEMBER,
        can_edit: bool = False,
    ) -> TripMember:
        try:
            with self._database.transaction() as session:
                require_trip(session, trip_id)
                user = session.get(UserRow, user_id)
                if user is None:
                    raise NotFoundError(f"User {user_id} not found")
                row = TripMemberRow(
                    id=str(uuid.uuid4()),
                    trip_id=trip_id,
                    user_id=user_id,
                    role=role.value,
                    can_edit=can_edit,
                )
                row.user = user
                session.add(row)
                session.flush()
                member = _member_from_row(row)
        except IntegrityError as error:
            raise ValidationError(f"User {user_id} is already a member of trip {trip_id}") from error

        LOGGER.info("Added user %s to trip %s as %s", user_id, trip_id, role.value)
        if self._event_bus is not None:
            self._event_bus.publish(trip_id, EventName.MEMBER_ADDED, member.as_dict())
        return member

    def list_members(self, trip_id: str) -> List[TripMember]:
        with self._database.session() as session:
            require_trip(session, trip_id)
            rows = session.scalars(
                select(TripMemberRow)
                .where(TripMemberRow.trip_id == trip_id)
                .order_by(TripMemberRow.joined_at, TripMemberRow.id)
            )
            return [_member_from_row(row) for row in rows]

    def member_names(self, trip_id: str) -> Dict[str, str]:
        """Map member user ids to display names for balance rendering."""

        return {member.user_id: member.name for member in self.list_members(trip_id)}
