import logging
from typing import Sequence

from sqlmodel import Session

from .errors import ConflictError
from .models import User, UserCreate, UserUpdate
from .repositories import BookingRepository, ItemRepository, UserRepository

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, session: Session):
        self.users = UserRepository(session)
        self.items = ItemRepository(session)
        self.bookings = BookingRepository(session)

    def _check_email_free(self, email: str, exclude_id: int | None = None) -> None:
        if self.users.email_taken(email, exclude_id):
            logger.warning("E-mail %s is already registered", email)
            raise ConflictError(f"User with e-mail {email} already exists")

    def create_user(self, data: UserCreate) -> User:
        self._check_email_free(data.email)
        user = self.users.save(User(**data.model_dump()))
        logger.info("Created user %s", user.id)
        return user

    def get_user(self, user_id: int) -> User:
        return self.users.require(user_id)

    def list_users(self) -> Sequence[User]:
        return self.users.list_all()

    def update_user(self, user_id: int, patch: UserUpdate) -> User:
        user = self.users.require(user_id)
        if patch.email is not None:
            self._check_email_free(patch.email, exclude_id=user_id)
        for key, value in patch.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(user, key, value)
        user = self.users.save(user)
        logger.info("Updated user %s", user_id)
        return user

    def delete_user(self, user_id: int) -> None:
        """Delete a user together with the items they own."""
        user = self.users.require(user_id)
        if self.bookings.exists_for_user(user_id):
            logger.warning("User %s takes part in bookings, refusing to delete", user_id)
            raise ConflictError(f"User {user_id} has bookings and cannot be deleted")
        self.items.delete_by_owner(user_id, commit=False)
        self.users.delete(user)
        logger.info("Deleted user %s and their items", user_id)
