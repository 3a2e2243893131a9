"""SQLModel-backed stores.

The booking store owns every temporal and status query the booking engine
depends on. Owner-side queries join through item ownership in SQL; nothing
here loads a whole table to filter it in Python.
"""

import datetime
import logging
from typing import Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, or_, select

from .errors import NotFoundError
from .models import (
    Booking,
    BookingStatus,
    Comment,
    Item,
    ItemRequest,
    User,
)

logger = logging.getLogger(__name__)


def _missing(kind: str, key: int) -> NotFoundError:
    message = f"{kind} with id {key} does not exist"
    logger.warning("Lookup failed: %s", message)
    return NotFoundError(message)


def _commit(session: Session) -> None:
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise


class UserRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def require(self, user_id: int) -> User:
        user = self.get(user_id)
        if user is None:
            raise _missing("User", user_id)
        return user

    def list_all(self) -> Sequence[User]:
        return self.session.exec(select(User).order_by(User.id)).all()

    def email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        query = select(User).where(User.email == email)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        return self.session.exec(query).first() is not None

    def save(self, user: User) -> User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def delete(self, user: User) -> None:
        self.session.delete(user)
        _commit(self.session)


class ItemRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, item_id: int) -> Optional[Item]:
        return self.session.get(Item, item_id)

    def require(self, item_id: int) -> Item:
        item = self.get(item_id)
        if item is None:
            raise _missing("Item", item_id)
        return item

    def save(self, item: Item) -> Item:
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def list_by_owner(self, owner_id: int) -> Sequence[Item]:
        return self.session.exec(
            select(Item).where(Item.owner_id == owner_id).order_by(Item.id)
        ).all()

    def search_available(self, text: str) -> Sequence[Item]:
        pattern = f"%{text.lower()}%"
        query = (
            select(Item)
            .where(Item.available == True)  # noqa: E712
            .where(
                or_(
                    col(Item.name).ilike(pattern),
                    col(Item.description).ilike(pattern),
                )
            )
            .order_by(Item.id)
        )
        return self.session.exec(query).all()

    def list_by_request_ids(self, request_ids: list[int]) -> Sequence[Item]:
        if not request_ids:
            return []
        return self.session.exec(
            select(Item).where(col(Item.request_id).in_(request_ids)).order_by(Item.id)
        ).all()

    def delete(self, item: Item) -> None:
        self.session.delete(item)
        _commit(self.session)

    def delete_by_owner(self, owner_id: int, commit: bool = True) -> None:
        for item in self.list_by_owner(owner_id):
            self.session.delete(item)
        if commit:
            _commit(self.session)


class BookingRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, booking_id: int) -> Optional[Booking]:
        return self.session.get(Booking, booking_id)

    def require(self, booking_id: int) -> Booking:
        booking = self.get(booking_id)
        if booking is None:
            raise _missing("Booking", booking_id)
        return booking

    def save(self, booking: Booking) -> Booking:
        self.session.add(booking)
        self.session.commit()
        self.session.refresh(booking)
        return booking

    def decide(self, booking_id: int, status: BookingStatus) -> bool:
        """Move a WAITING booking to ``status`` in one conditional UPDATE.

        Returns False when no row was still WAITING, so two concurrent
        decisions on the same booking cannot both succeed.
        """
        result = self.session.exec(
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.status == BookingStatus.WAITING)
            .values(status=status)
        )
        self.session.commit()
        return result.rowcount == 1

    # --- renter view ---

    def _by_booker(self, booker_id: int):
        return select(Booking).where(Booking.booker_id == booker_id)

    def list_by_booker(self, booker_id: int) -> Sequence[Booking]:
        return self._all(self._by_booker(booker_id))

    def list_current_by_booker(self, booker_id: int, at: datetime.datetime) -> Sequence[Booking]:
        return self._all(_current(self._by_booker(booker_id), at))

    def list_past_by_booker(self, booker_id: int, at: datetime.datetime) -> Sequence[Booking]:
        return self._all(_past(self._by_booker(booker_id), at))

    def list_future_by_booker(self, booker_id: int, at: datetime.datetime) -> Sequence[Booking]:
        return self._all(_future(self._by_booker(booker_id), at))

    def list_by_booker_and_status(self, booker_id: int, status: BookingStatus) -> Sequence[Booking]:
        return self._all(self._by_booker(booker_id).where(Booking.status == status))

    # --- owner view ---

    def _by_owner(self, owner_id: int):
        return (
            select(Booking)
            .join(Item, Booking.item_id == Item.id)
            .where(Item.owner_id == owner_id)
        )

    def list_by_owner(self, owner_id: int) -> Sequence[Booking]:
        return self._all(self._by_owner(owner_id))

    def list_current_by_owner(self, owner_id: int, at: datetime.datetime) -> Sequence[Booking]:
        return self._all(_current(self._by_owner(owner_id), at))

    def list_past_by_owner(self, owner_id: int, at: datetime.datetime) -> Sequence[Booking]:
        return self._all(_past(self._by_owner(owner_id), at))

    def list_future_by_owner(self, owner_id: int, at: datetime.datetime) -> Sequence[Booking]:
        return self._all(_future(self._by_owner(owner_id), at))

    def list_by_owner_and_status(self, owner_id: int, status: BookingStatus) -> Sequence[Booking]:
        return self._all(self._by_owner(owner_id).where(Booking.status == status))

    # --- single-booking lookups ---

    def exists_for_item(self, item_id: int) -> bool:
        query = select(Booking.id).where(Booking.item_id == item_id).limit(1)
        return self.session.exec(query).first() is not None

    def exists_for_owner(self, owner_id: int) -> bool:
        return self.session.exec(self._by_owner(owner_id).limit(1)).first() is not None

    def exists_for_user(self, user_id: int) -> bool:
        """True when the user booked anything or owns a booked item."""
        query = (
            select(Booking.id)
            .join(Item, Booking.item_id == Item.id)
            .where(or_(Booking.booker_id == user_id, Item.owner_id == user_id))
            .limit(1)
        )
        return self.session.exec(query).first() is not None

    def find_last_for_item(self, item_id: int, at: datetime.datetime) -> Optional[Booking]:
        return self.session.exec(
            select(Booking)
            .where(Booking.item_id == item_id)
            .where(Booking.end < at)
            .order_by(col(Booking.end).desc())
            .limit(1)
        ).first()

    def find_next_for_item(self, item_id: int, at: datetime.datetime) -> Optional[Booking]:
        return self.session.exec(
            select(Booking)
            .where(Booking.item_id == item_id)
            .where(Booking.start > at)
            .order_by(col(Booking.start).asc())
            .limit(1)
        ).first()

    def find_completed_by_booker_and_item(
        self, booker_id: int, item_id: int, at: datetime.datetime
    ) -> Optional[Booking]:
        return self.session.exec(
            select(Booking)
            .where(Booking.booker_id == booker_id)
            .where(Booking.item_id == item_id)
            .where(Booking.end < at)
            .order_by(col(Booking.end).desc())
        ).first()

    def _all(self, query) -> Sequence[Booking]:
        return self.session.exec(
            query.order_by(col(Booking.start).desc(), col(Booking.id).desc())
        ).all()


def _current(query, at: datetime.datetime):
    return query.where(Booking.start < at).where(Booking.end > at)


def _past(query, at: datetime.datetime):
    return query.where(Booking.end < at)


def _future(query, at: datetime.datetime):
    return query.where(Booking.start > at)


class CommentRepository:
    def __init__(self, session: Session):
        self.session = session

    def save(self, comment: Comment) -> Comment:
        self.session.add(comment)
        self.session.commit()
        self.session.refresh(comment)
        return comment

    def list_by_item(self, item_id: int) -> Sequence[Comment]:
        return self.session.exec(
            select(Comment)
            .where(Comment.item_id == item_id)
            .order_by(col(Comment.created).desc(), col(Comment.id).desc())
        ).all()


class ItemRequestRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, request_id: int) -> Optional[ItemRequest]:
        return self.session.get(ItemRequest, request_id)

    def require(self, request_id: int) -> ItemRequest:
        item_request = self.get(request_id)
        if item_request is None:
            raise _missing("Item request", request_id)
        return item_request

    def save(self, item_request: ItemRequest) -> ItemRequest:
        self.session.add(item_request)
        self.session.commit()
        self.session.refresh(item_request)
        return item_request

    def list_by_requestor(self, requestor_id: int) -> Sequence[ItemRequest]:
        return self.session.exec(
            select(ItemRequest)
            .where(ItemRequest.requestor_id == requestor_id)
            .order_by(col(ItemRequest.created).desc(), col(ItemRequest.id).desc())
        ).all()

    def list_excluding_requestor(self, requestor_id: int) -> Sequence[ItemRequest]:
        return self.session.exec(
            select(ItemRequest)
            .where(ItemRequest.requestor_id != requestor_id)
            .order_by(col(ItemRequest.created).desc(), col(ItemRequest.id).desc())
        ).all()
