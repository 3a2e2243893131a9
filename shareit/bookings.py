"""Booking lifecycle.

A booking is created WAITING by a user who does not own the item, and is
decided exactly once by the item's owner. Lists are filtered by
``BookingState`` for either the renter or the owner, newest start first.
"""

import datetime
import logging
from typing import Sequence

from sqlmodel import Session

from .clock import Clock
from .errors import ForbiddenError, NotFoundError, TemporalValidationError, ValidationError
from .models import Booking, BookingState, BookingStatus
from .repositories import BookingRepository, ItemRepository, UserRepository

logger = logging.getLogger(__name__)


def check_booking_period(
    start: datetime.datetime, end: datetime.datetime, now: datetime.datetime
) -> None:
    """Reject a period that is inverted, empty or already (partly) over."""
    if end < now:
        raise TemporalValidationError("End of booking cannot be in the past")
    if end < start:
        raise TemporalValidationError("End of booking cannot be before its start")
    if start == end:
        raise TemporalValidationError("Start of booking cannot equal its end")
    if start < now:
        raise TemporalValidationError("Start of booking cannot be in the past")


def check_completed_rental(
    bookings: BookingRepository, user_id: int, item_id: int, now: datetime.datetime
) -> Booking:
    """Return a booking of ``item_id`` by ``user_id`` that ended before ``now``.

    Only the end instant matters; the booking's status is not checked.
    Raises ValidationError when the user never finished renting the item.
    """
    booking = bookings.find_completed_by_booker_and_item(user_id, item_id, now)
    if booking is None:
        message = f"User {user_id} has no completed rental of item {item_id}"
        logger.warning("Rental check failed: %s", message)
        raise ValidationError(message)
    return booking


class BookingService:
    def __init__(self, session: Session, clock: Clock):
        self.bookings = BookingRepository(session)
        self.items = ItemRepository(session)
        self.users = UserRepository(session)
        self.clock = clock

    def create_booking(
        self,
        user_id: int,
        item_id: int,
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> Booking:
        check_booking_period(start, end, self.clock.now())
        booker = self.users.require(user_id)
        item = self.items.require(item_id)
        if item.owner_id == user_id:
            # NotFound rather than Forbidden for self-booking
            raise NotFoundError(f"Item {item_id} cannot be booked by its owner")
        if not item.available:
            raise ValidationError(f"Item {item_id} is unavailable")

        booking = self.bookings.save(
            Booking(
                start=start,
                end=end,
                item_id=item.id,
                booker_id=booker.id,
                status=BookingStatus.WAITING,
            )
        )
        logger.info(
            "Created booking %s: item %s by user %s, %s - %s",
            booking.id, item_id, user_id, start, end,
        )
        return booking

    def confirm_or_reject(self, user_id: int, booking_id: int, approved: bool) -> Booking:
        booking = self.bookings.require(booking_id)
        if booking.item.owner_id != user_id:
            raise ForbiddenError(
                f"User {user_id} does not own the item of booking {booking_id}"
            )
        if booking.status != BookingStatus.WAITING:
            raise ValidationError(
                f"Booking {booking_id} is already decided: {booking.status.value}"
            )

        status = BookingStatus.APPROVED if approved else BookingStatus.REJECTED
        if not self.bookings.decide(booking_id, status):
            # lost the race against another decision on the same booking
            raise ValidationError(f"Booking {booking_id} is already decided")
        self.bookings.session.refresh(booking)
        logger.info("Booking %s %s by owner %s", booking_id, status.value, user_id)
        return booking

    def get_booking_by_id(self, user_id: int, booking_id: int) -> Booking:
        self.users.require(user_id)
        booking = self.bookings.require(booking_id)
        if user_id not in (booking.booker_id, booking.item.owner_id):
            # non-participants get the missing-booking error
            logger.warning("User %s may not view booking %s", user_id, booking_id)
            raise NotFoundError(f"Booking with id {booking_id} does not exist")
        return booking

    def get_booking_state(self, user_id: int, state: BookingState) -> Sequence[Booking]:
        """Bookings made by ``user_id``, filtered by ``state``."""
        self.users.require(user_id)
        now = self.clock.now()
        logger.info("Listing bookings of booker %s, state %s", user_id, state.value)
        repo = self.bookings
        if state == BookingState.ALL:
            return repo.list_by_booker(user_id)
        if state == BookingState.CURRENT:
            return repo.list_current_by_booker(user_id, now)
        if state == BookingState.PAST:
            return repo.list_past_by_booker(user_id, now)
        if state == BookingState.FUTURE:
            return repo.list_future_by_booker(user_id, now)
        if state == BookingState.WAITING:
            return repo.list_by_booker_and_status(user_id, BookingStatus.WAITING)
        return repo.list_by_booker_and_status(user_id, BookingStatus.REJECTED)

    def get_all_by_owner_id(self, user_id: int, state: BookingState) -> Sequence[Booking]:
        """Bookings of every item owned by ``user_id``, filtered by ``state``."""
        self.users.require(user_id)
        now = self.clock.now()
        logger.info("Listing bookings for owner %s, state %s", user_id, state.value)
        repo = self.bookings
        if state == BookingState.ALL:
            return repo.list_by_owner(user_id)
        if state == BookingState.CURRENT:
            return repo.list_current_by_owner(user_id, now)
        if state == BookingState.PAST:
            return repo.list_past_by_owner(user_id, now)
        if state == BookingState.FUTURE:
            return repo.list_future_by_owner(user_id, now)
        if state == BookingState.WAITING:
            return repo.list_by_owner_and_status(user_id, BookingStatus.WAITING)
        return repo.list_by_owner_and_status(user_id, BookingStatus.REJECTED)
