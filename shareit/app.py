from contextlib import asynccontextmanager
from typing import Annotated, Optional
import logging

from fastapi import Depends, FastAPI, Header, Query
from sqlmodel import Session, SQLModel

from .bookings import BookingService
from .clock import Clock, get_clock
from .config import USER_ID_HEADER, setup_logging
from .database import engine, get_session
from .errors import register_exception_handlers
from .item_requests import ItemRequestService
from .items import ItemService
from .models import (
    BookingCreate,
    BookingRead,
    BookingState,
    CommentCreate,
    CommentRead,
    ItemCreate,
    ItemDetail,
    ItemRead,
    ItemRequestCreate,
    ItemRequestRead,
    ItemUpdate,
    UserCreate,
    UserRead,
    UserUpdate,
)
from .users import UserService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    SQLModel.metadata.create_all(engine)
    logger.info("Database schema ready")
    yield


app = FastAPI(
    lifespan=lifespan,
    title="ShareIt rental API",
    description="API to list items, book them from other users, and review past rentals.",
    version="1.0.0",
)
register_exception_handlers(app)


def get_user_id(
    user_id: Annotated[int, Header(alias=USER_ID_HEADER, description="ID of the calling user")],
) -> int:
    return user_id


UserId = Annotated[int, Depends(get_user_id)]


def get_booking_service(
    session: Session = Depends(get_session), clock: Clock = Depends(get_clock)
) -> BookingService:
    return BookingService(session, clock)


def get_item_service(
    session: Session = Depends(get_session), clock: Clock = Depends(get_clock)
) -> ItemService:
    return ItemService(session, clock)


def get_user_service(session: Session = Depends(get_session)) -> UserService:
    return UserService(session)


def get_item_request_service(
    session: Session = Depends(get_session), clock: Clock = Depends(get_clock)
) -> ItemRequestService:
    return ItemRequestService(session, clock)


# --- Booking Routes ---
@app.post(
    "/bookings",
    response_model=BookingRead,
    summary="Request a booking",
    response_description="Booking data",
    tags=["Bookings"],
)
def create_booking(
    booking: BookingCreate,
    user_id: UserId,
    service: BookingService = Depends(get_booking_service),
):
    """Request an item for a period. The booking starts out WAITING.
    - **item_id**: Item requested
    - **start**: Start of booking (datetime, not in the past)
    - **end**: End of booking (datetime, after start)
    """
    logger.info("Booking request from user %s: %s", user_id, booking)
    created = service.create_booking(user_id, booking.item_id, booking.start, booking.end)
    return BookingRead.from_booking(created)


@app.patch(
    "/bookings/{booking_id}",
    response_model=BookingRead,
    summary="Approve or reject a booking",
    response_description="Decided booking",
    tags=["Bookings"],
)
def confirm_or_reject_booking(
    booking_id: int,
    user_id: UserId,
    approved: bool = Query(..., description="true to approve, false to reject"),
    service: BookingService = Depends(get_booking_service),
):
    """Decide a WAITING booking. Owner of the booked item only.
    - **booking_id**: Booking ID
    """
    logger.info("Decision on booking %s by user %s: approved=%s", booking_id, user_id, approved)
    return BookingRead.from_booking(service.confirm_or_reject(user_id, booking_id, approved))


@app.get(
    "/bookings/owner",
    response_model=list[BookingRead],
    summary="List bookings of my items",
    response_description="List of bookings",
    tags=["Bookings"],
)
def list_owner_bookings(
    user_id: UserId,
    state: str = Query("ALL", description="ALL, CURRENT, PAST, FUTURE, WAITING or REJECTED"),
    service: BookingService = Depends(get_booking_service),
):
    """List bookings of all items owned by the caller, latest start first."""
    bookings = service.get_all_by_owner_id(user_id, BookingState.parse(state))
    return [BookingRead.from_booking(b) for b in bookings]


@app.get(
    "/bookings/{booking_id}",
    response_model=BookingRead,
    summary="Get booking",
    response_description="Booking data",
    tags=["Bookings"],
)
def get_booking(
    booking_id: int,
    user_id: UserId,
    service: BookingService = Depends(get_booking_service),
):
    """Visible to the booker and to the owner of the booked item only."""
    return BookingRead.from_booking(service.get_booking_by_id(user_id, booking_id))


@app.get(
    "/bookings",
    response_model=list[BookingRead],
    summary="List my bookings",
    response_description="List of bookings",
    tags=["Bookings"],
)
def list_bookings(
    user_id: UserId,
    state: str = Query("ALL", description="ALL, CURRENT, PAST, FUTURE, WAITING or REJECTED"),
    service: BookingService = Depends(get_booking_service),
):
    """List bookings made by the caller, latest start first.
    - **state**: Optional filter, case-insensitive
    """
    bookings = service.get_booking_state(user_id, BookingState.parse(state))
    return [BookingRead.from_booking(b) for b in bookings]


# --- Item Routes ---
@app.post(
    "/items",
    response_model=ItemRead,
    summary="List a new item",
    response_description="Item data",
    tags=["Items"],
)
def create_item(
    item: ItemCreate,
    user_id: UserId,
    service: ItemService = Depends(get_item_service),
):
    """Add an item owned by the caller, optionally answering an item request."""
    return service.create_item(user_id, item)


@app.patch(
    "/items/{item_id}",
    response_model=ItemRead,
    summary="Update item",
    response_description="Updated item data",
    tags=["Items"],
)
def update_item(
    item_id: int,
    patch: ItemUpdate,
    user_id: UserId,
    service: ItemService = Depends(get_item_service),
):
    """Update name, description or availability. Owner only."""
    return service.update_item(user_id, item_id, patch)


@app.get(
    "/items/search",
    response_model=list[ItemRead],
    summary="Search available items",
    response_description="List of items",
    tags=["Items"],
)
def search_items(
    text: Optional[str] = Query(None, description="Text to look for in name or description"),
    service: ItemService = Depends(get_item_service),
):
    """Case-insensitive search over available items. Blank text finds nothing."""
    return service.search(text)


@app.get(
    "/items/{item_id}",
    response_model=ItemDetail,
    summary="Get item",
    response_description="Item with comments",
    tags=["Items"],
)
def get_item(
    item_id: int,
    user_id: UserId,
    service: ItemService = Depends(get_item_service),
):
    """Item with its comments. The owner also gets last and next booking."""
    return service.get_item(user_id, item_id)


@app.get(
    "/items",
    response_model=list[ItemDetail],
    summary="List my items",
    response_description="List of items",
    tags=["Items"],
)
def list_items(
    user_id: UserId,
    service: ItemService = Depends(get_item_service),
):
    return service.list_owner_items(user_id)


@app.delete(
    "/items/{item_id}",
    summary="Delete item",
    tags=["Items"],
)
def delete_item(
    item_id: int,
    user_id: UserId,
    service: ItemService = Depends(get_item_service),
):
    service.delete_item(user_id, item_id)
    return {"ok": True}


@app.delete(
    "/items",
    summary="Delete all my items",
    tags=["Items"],
)
def delete_all_items(
    user_id: UserId,
    service: ItemService = Depends(get_item_service),
):
    service.delete_all_items(user_id)
    return {"ok": True}


@app.post(
    "/items/{item_id}/comment",
    response_model=CommentRead,
    summary="Comment on an item",
    response_description="Comment data",
    tags=["Items"],
)
def create_comment(
    item_id: int,
    comment: CommentCreate,
    user_id: UserId,
    service: ItemService = Depends(get_item_service),
):
    """Only users whose rental of the item has ended may comment."""
    return CommentRead.from_comment(service.create_comment(user_id, item_id, comment))


# --- User Routes ---
@app.post(
    "/users",
    response_model=UserRead,
    summary="Register new user",
    response_description="User data",
    tags=["Users"],
)
def create_user(user: UserCreate, service: UserService = Depends(get_user_service)):
    return service.create_user(user)


@app.get(
    "/users",
    response_model=list[UserRead],
    summary="List users",
    tags=["Users"],
)
def list_users(service: UserService = Depends(get_user_service)):
    return service.list_users()


@app.get(
    "/users/{user_id}",
    response_model=UserRead,
    summary="Get user",
    tags=["Users"],
)
def get_user(user_id: int, service: UserService = Depends(get_user_service)):
    return service.get_user(user_id)


@app.patch(
    "/users/{user_id}",
    response_model=UserRead,
    summary="Update user",
    response_description="Updated user data",
    tags=["Users"],
)
def update_user(
    user_id: int, patch: UserUpdate, service: UserService = Depends(get_user_service)
):
    return service.update_user(user_id, patch)


@app.delete(
    "/users/{user_id}",
    summary="Delete user and their items",
    tags=["Users"],
)
def delete_user(user_id: int, service: UserService = Depends(get_user_service)):
    service.delete_user(user_id)
    return {"ok": True}


# --- Item Request Routes ---
@app.post(
    "/requests",
    response_model=ItemRequestRead,
    summary="Ask for an item",
    tags=["Requests"],
)
def create_item_request(
    item_request: ItemRequestCreate,
    user_id: UserId,
    service: ItemRequestService = Depends(get_item_request_service),
):
    return service.create(user_id, item_request)


@app.get(
    "/requests",
    response_model=list[ItemRequestRead],
    summary="List my item requests",
    tags=["Requests"],
)
def list_own_item_requests(
    user_id: UserId,
    service: ItemRequestService = Depends(get_item_request_service),
):
    """Caller's requests, newest first, each with the items offered so far."""
    return service.own(user_id)


@app.get(
    "/requests/all",
    response_model=list[ItemRequestRead],
    summary="List other users' item requests",
    tags=["Requests"],
)
def list_other_item_requests(
    user_id: UserId,
    service: ItemRequestService = Depends(get_item_request_service),
):
    return service.others(user_id)


@app.get(
    "/requests/{request_id}",
    response_model=ItemRequestRead,
    summary="Get item request",
    tags=["Requests"],
)
def get_item_request(
    request_id: int,
    user_id: UserId,
    service: ItemRequestService = Depends(get_item_request_service),
):
    return service.get(user_id, request_id)
