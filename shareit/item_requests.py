import logging
from collections import defaultdict
from typing import Sequence

from sqlmodel import Session

from .clock import Clock
from .models import ItemRead, ItemRequest, ItemRequestCreate, ItemRequestRead
from .repositories import ItemRepository, ItemRequestRepository, UserRepository

logger = logging.getLogger(__name__)


class ItemRequestService:
    """Requests for items nobody lists yet, with the items offered in answer."""

    def __init__(self, session: Session, clock: Clock):
        self.requests = ItemRequestRepository(session)
        self.items = ItemRepository(session)
        self.users = UserRepository(session)
        self.clock = clock

    def _with_items(self, requests: Sequence[ItemRequest]) -> list[ItemRequestRead]:
        answers: dict[int, list[ItemRead]] = defaultdict(list)
        for item in self.items.list_by_request_ids([r.id for r in requests]):
            answers[item.request_id].append(ItemRead.model_validate(item, from_attributes=True))
        return [
            ItemRequestRead(
                id=r.id,
                description=r.description,
                created=r.created,
                items=answers.get(r.id, []),
            )
            for r in requests
        ]

    def create(self, user_id: int, data: ItemRequestCreate) -> ItemRequestRead:
        self.users.require(user_id)
        item_request = self.requests.save(
            ItemRequest(
                description=data.description,
                requestor_id=user_id,
                created=self.clock.now(),
            )
        )
        logger.info("User %s created item request %s", user_id, item_request.id)
        return self._with_items([item_request])[0]

    def own(self, user_id: int) -> list[ItemRequestRead]:
        self.users.require(user_id)
        return self._with_items(self.requests.list_by_requestor(user_id))

    def others(self, user_id: int) -> list[ItemRequestRead]:
        self.users.require(user_id)
        return self._with_items(self.requests.list_excluding_requestor(user_id))

    def get(self, user_id: int, request_id: int) -> ItemRequestRead:
        self.users.require(user_id)
        return self._with_items([self.requests.require(request_id)])[0]
