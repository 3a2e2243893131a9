import datetime
import logging
from typing import Optional, Sequence

from sqlmodel import Session

from .bookings import check_completed_rental
from .clock import Clock
from .errors import ConflictError, ForbiddenError
from .models import (
    Booking,
    BookingShort,
    Comment,
    CommentCreate,
    CommentRead,
    Item,
    ItemCreate,
    ItemDetail,
    ItemUpdate,
)
from .repositories import (
    BookingRepository,
    CommentRepository,
    ItemRepository,
    ItemRequestRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


def _short(booking: Optional[Booking]) -> Optional[BookingShort]:
    if booking is None:
        return None
    return BookingShort.model_validate(booking, from_attributes=True)


class ItemService:
    def __init__(self, session: Session, clock: Clock):
        self.items = ItemRepository(session)
        self.users = UserRepository(session)
        self.bookings = BookingRepository(session)
        self.comments = CommentRepository(session)
        self.requests = ItemRequestRepository(session)
        self.clock = clock

    def _require_owner(self, user_id: int, item: Item) -> None:
        if item.owner_id != user_id:
            logger.warning("User %s is not the owner of item %s", user_id, item.id)
            raise ForbiddenError(f"User {user_id} does not own item {item.id}")

    def create_item(self, owner_id: int, data: ItemCreate) -> Item:
        self.users.require(owner_id)
        if data.request_id is not None:
            self.requests.require(data.request_id)
        item = self.items.save(Item(**data.model_dump(), owner_id=owner_id))
        logger.info("Created item %s for owner %s", item.id, owner_id)
        return item

    def update_item(self, user_id: int, item_id: int, patch: ItemUpdate) -> Item:
        item = self.items.require(item_id)
        self.users.require(user_id)
        self._require_owner(user_id, item)
        for key, value in patch.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(item, key, value)
        item = self.items.save(item)
        logger.info("Updated item %s", item_id)
        return item

    def _detail(self, item: Item, now: Optional[datetime.datetime]) -> ItemDetail:
        """Build the item view; last and next booking are filled in when ``now`` is given."""
        detail = ItemDetail(
            id=item.id,
            name=item.name,
            description=item.description,
            available=item.available,
            request_id=item.request_id,
            comments=[CommentRead.from_comment(c) for c in self.comments.list_by_item(item.id)],
        )
        if now is not None:
            detail.last_booking = _short(self.bookings.find_last_for_item(item.id, now))
            detail.next_booking = _short(self.bookings.find_next_for_item(item.id, now))
        return detail

    def get_item(self, user_id: int, item_id: int) -> ItemDetail:
        """Item with its comments; the owner also sees last and next booking."""
        item = self.items.require(item_id)
        now = self.clock.now() if item.owner_id == user_id else None
        return self._detail(item, now)

    def list_owner_items(self, owner_id: int) -> list[ItemDetail]:
        self.users.require(owner_id)
        now = self.clock.now()
        return [self._detail(item, now) for item in self.items.list_by_owner(owner_id)]

    def search(self, text: Optional[str]) -> Sequence[Item]:
        if not text or not text.strip():
            logger.info("Empty search text, returning no items")
            return []
        return self.items.search_available(text.strip())

    def delete_item(self, user_id: int, item_id: int) -> None:
        item = self.items.require(item_id)
        self.users.require(user_id)
        self._require_owner(user_id, item)
        if self.bookings.exists_for_item(item_id):
            logger.warning("Item %s has bookings, refusing to delete it", item_id)
            raise ConflictError(f"Item {item_id} has bookings and cannot be deleted")
        self.items.delete(item)
        logger.info("Deleted item %s of owner %s", item_id, user_id)

    def delete_all_items(self, owner_id: int) -> None:
        self.users.require(owner_id)
        if self.bookings.exists_for_owner(owner_id):
            logger.warning("Items of owner %s have bookings, refusing to delete them", owner_id)
            raise ConflictError(f"Items of user {owner_id} have bookings and cannot be deleted")
        self.items.delete_by_owner(owner_id)
        logger.info("Deleted all items of owner %s", owner_id)

    def create_comment(self, author_id: int, item_id: int, data: CommentCreate) -> Comment:
        """Store a comment from a user who has finished renting the item."""
        self.users.require(author_id)
        self.items.require(item_id)
        now = self.clock.now()
        check_completed_rental(self.bookings, author_id, item_id, now)
        comment = self.comments.save(
            Comment(text=data.text, item_id=item_id, author_id=author_id, created=now)
        )
        logger.info("User %s commented on item %s", author_id, item_id)
        return comment
