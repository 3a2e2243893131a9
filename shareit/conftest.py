import datetime
import os

import pytest

os.environ["POSTGRES_URI"] = "sqlite://"

from sqlmodel import Session, SQLModel  # noqa: E402

from .clock import FixedClock  # noqa: E402
from .database import engine  # noqa: E402
from .models import Item, User  # noqa: E402

NOW = datetime.datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture(autouse=True)
def reset_database():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def make_user(session):
    def _make_user(name: str) -> User:
        user = User(name=name, email=f"{name.lower()}@example.com")
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_item(session):
    def _make_item(owner: User, name: str = "Drill", available: bool = True) -> Item:
        item = Item(
            name=name,
            description=f"{name} for rent",
            available=available,
            owner_id=owner.id,
        )
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    return _make_item


@pytest.fixture
def owner(make_user):
    return make_user("Owner")


@pytest.fixture
def booker(make_user):
    return make_user("Booker")


@pytest.fixture
def item(make_item, owner):
    return make_item(owner)
