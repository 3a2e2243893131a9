from enum import Enum
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime
from pydantic import field_validator
import datetime
from typing import Optional

from .clock import to_naive_utc
from .errors import UnsupportedStateError


def _not_blank(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be blank")
    return value


#######
# ENUMS
#######


class BookingStatus(str, Enum):
    WAITING = "WAITING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    # valid but never produced: no transition leads here yet
    CANCELLED = "CANCELLED"


class BookingState(str, Enum):
    """Filter applied to booking lists."""

    ALL = "ALL"
    CURRENT = "CURRENT"
    PAST = "PAST"
    FUTURE = "FUTURE"
    WAITING = "WAITING"
    REJECTED = "REJECTED"

    @classmethod
    def parse(cls, token: str) -> "BookingState":
        """Case-insensitive lookup; anything else is an UnsupportedStateError."""
        try:
            return cls[token.strip().upper()]
        except KeyError:
            raise UnsupportedStateError(token) from None


############
# USER MODEL
############


class UserBase(SQLModel):
    name: str
    email: str = Field(index=True, unique=True)


class User(UserBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)


class UserCreate(UserBase):
    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        return _not_blank(value)

    @field_validator("email")
    @classmethod
    def email_has_at(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("e-mail must contain '@'")
        return value


class UserUpdate(SQLModel):
    name: Optional[str] = None
    email: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _not_blank(value)

    @field_validator("email")
    @classmethod
    def email_has_at(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and "@" not in value:
            raise ValueError("e-mail must contain '@'")
        return value


class UserRead(UserBase):
    id: int


####################
# ITEM REQUEST MODEL
####################


class ItemRequest(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    description: str
    requestor_id: int = Field(foreign_key="user.id", index=True)
    created: datetime.datetime = Field(sa_type=DateTime, index=True)


class ItemRequestCreate(SQLModel):
    description: str

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        return _not_blank(value)


############
# ITEM MODEL
############


class ItemBase(SQLModel):
    name: str
    description: str
    available: bool


class Item(ItemBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="user.id", index=True)
    request_id: Optional[int] = Field(
        default=None, foreign_key="itemrequest.id", index=True
    )

    owner: Optional[User] = Relationship()


class ItemCreate(ItemBase):
    request_id: Optional[int] = None

    @field_validator("name", "description")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class ItemUpdate(SQLModel):
    name: Optional[str] = None
    description: Optional[str] = None
    available: Optional[bool] = None

    @field_validator("name", "description")
    @classmethod
    def text_not_blank(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _not_blank(value)


class ItemRead(ItemBase):
    id: int
    request_id: Optional[int] = None


class ItemRequestRead(SQLModel):
    id: int
    description: str
    created: datetime.datetime
    items: list[ItemRead] = []


###############
# BOOKING MODEL
###############


class Booking(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    start: datetime.datetime = Field(sa_type=DateTime, index=True)
    end: datetime.datetime = Field(sa_type=DateTime)
    item_id: int = Field(foreign_key="item.id", index=True)
    booker_id: int = Field(foreign_key="user.id", index=True)
    status: BookingStatus = Field(default=BookingStatus.WAITING, index=True)

    item: Optional[Item] = Relationship()
    booker: Optional[User] = Relationship()


class BookingCreate(SQLModel):
    item_id: int
    start: datetime.datetime
    end: datetime.datetime

    @field_validator("start", "end")
    @classmethod
    def as_naive_utc(cls, value: datetime.datetime) -> datetime.datetime:
        return to_naive_utc(value)


class BookingRead(SQLModel):
    id: int
    start: datetime.datetime
    end: datetime.datetime
    status: BookingStatus
    item: ItemRead
    booker: UserRead

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingRead":
        return cls(
            id=booking.id,
            start=booking.start,
            end=booking.end,
            status=booking.status,
            item=ItemRead.model_validate(booking.item, from_attributes=True),
            booker=UserRead.model_validate(booking.booker, from_attributes=True),
        )


class BookingShort(SQLModel):
    """Booking as shown inside an item card."""

    id: int
    start: datetime.datetime
    end: datetime.datetime
    booker_id: int
    status: BookingStatus


###############
# COMMENT MODEL
###############


class Comment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    text: str
    item_id: int = Field(foreign_key="item.id", index=True)
    author_id: int = Field(foreign_key="user.id", index=True)
    created: datetime.datetime = Field(sa_type=DateTime)

    author: Optional[User] = Relationship()


class CommentCreate(SQLModel):
    text: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class CommentRead(SQLModel):
    id: int
    text: str
    item_id: int
    author_name: str
    created: datetime.datetime

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentRead":
        return cls(
            id=comment.id,
            text=comment.text,
            item_id=comment.item_id,
            author_name=comment.author.name,
            created=comment.created,
        )


class ItemDetail(ItemRead):
    last_booking: Optional[BookingShort] = None
    next_booking: Optional[BookingShort] = None
    comments: list[CommentRead] = []
