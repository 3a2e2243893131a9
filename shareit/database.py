from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine, Session

from .config import DATABASE_URL, SQL_ECHO

if not DATABASE_URL or DATABASE_URL == "":
    raise ValueError("DATABASE URL not set")


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    options: dict = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # every connection must see the same in-memory database
        options["poolclass"] = StaticPool
    return options


engine = create_engine(DATABASE_URL, echo=SQL_ECHO, **_engine_options(DATABASE_URL))

if DATABASE_URL.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_session():
    with Session(engine) as session:
        yield session
