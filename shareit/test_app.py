import datetime

import pytest
from fastapi.testclient import TestClient

from .app import app
from .clock import get_clock
from .conftest import NOW
from .database import get_session

client = TestClient(app)

DAY = datetime.timedelta(days=1)


@pytest.fixture(autouse=True)
def fixed_clock(clock, session):
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_session] = lambda: session
    yield clock
    app.dependency_overrides = {}


def as_user(user_id):
    return {"X-Sharer-User-Id": str(user_id)}


def booking_payload(item_id, start=NOW + DAY, end=NOW + 2 * DAY):
    return {"item_id": item_id, "start": start.isoformat(), "end": end.isoformat()}


def create_booking(booker, item):
    response = client.post("/bookings", json=booking_payload(item.id), headers=as_user(booker.id))
    assert response.status_code == 200
    return response.json()


# -----------------
# Booking endpoints
# -----------------


def test_post_booking(booker, item):
    data = create_booking(booker, item)

    assert data["status"] == "WAITING"
    assert data["item"]["id"] == item.id
    assert data["booker"]["id"] == booker.id
    assert data["start"] == (NOW + DAY).isoformat()


def test_post_booking_with_timezone_is_stored_as_utc(booker, item):
    start = datetime.datetime(2026, 3, 16, 14, 0, tzinfo=datetime.timezone(datetime.timedelta(hours=2)))
    payload = booking_payload(item.id, start=start, end=start + DAY)

    response = client.post("/bookings", json=payload, headers=as_user(booker.id))

    assert response.status_code == 200
    assert response.json()["start"] == "2026-03-16T12:00:00"


def test_post_booking_without_header():
    response = client.post("/bookings", json=booking_payload(1))

    assert response.status_code == 400
    assert response.json()["error"] == "Malformed request"


def test_post_booking_in_the_past(booker, item):
    payload = booking_payload(item.id, start=NOW - 2 * DAY, end=NOW - DAY)

    response = client.post("/bookings", json=payload, headers=as_user(booker.id))

    assert response.status_code == 400
    assert response.json() == {
        "error": "Invalid booking period",
        "description": "End of booking cannot be in the past",
    }


def test_post_booking_on_own_item(owner, item):
    response = client.post("/bookings", json=booking_payload(item.id), headers=as_user(owner.id))

    assert response.status_code == 404
    assert response.json()["error"] == "Not found"


def test_approve_then_reject(owner, booker, item):
    booking = create_booking(booker, item)

    response = client.patch(
        f"/bookings/{booking['id']}", params={"approved": "true"}, headers=as_user(owner.id)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"

    response = client.patch(
        f"/bookings/{booking['id']}", params={"approved": "false"}, headers=as_user(owner.id)
    )
    assert response.status_code == 400

    response = client.get(f"/bookings/{booking['id']}", headers=as_user(owner.id))
    assert response.json()["status"] == "APPROVED"


def test_booker_cannot_approve(booker, item):
    booking = create_booking(booker, item)

    response = client.patch(
        f"/bookings/{booking['id']}", params={"approved": "true"}, headers=as_user(booker.id)
    )

    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden"


def test_get_booking_as_stranger(make_user, booker, item):
    stranger = make_user("Stranger")
    booking = create_booking(booker, item)

    response = client.get(f"/bookings/{booking['id']}", headers=as_user(stranger.id))

    assert response.status_code == 404


def test_list_bookings_by_state(owner, booker, item):
    booking = create_booking(booker, item)

    future = client.get("/bookings", params={"state": "future"}, headers=as_user(booker.id))
    past = client.get("/bookings", params={"state": "PAST"}, headers=as_user(booker.id))
    default = client.get("/bookings", headers=as_user(booker.id))
    owner_view = client.get("/bookings/owner", params={"state": "waiting"}, headers=as_user(owner.id))

    assert [b["id"] for b in future.json()] == [booking["id"]]
    assert past.json() == []
    assert [b["id"] for b in default.json()] == [booking["id"]]
    assert [b["id"] for b in owner_view.json()] == [booking["id"]]


@pytest.mark.parametrize("path", ["/bookings", "/bookings/owner"])
def test_unknown_state_has_own_envelope(booker, path):
    response = client.get(path, params={"state": "bogus"}, headers=as_user(booker.id))

    assert response.status_code == 400
    assert response.json() == {"error": "Unknown state: bogus"}


# --------------
# Item endpoints
# --------------


def test_item_lifecycle(owner):
    response = client.post(
        "/items",
        json={"name": "Kayak", "description": "Sea kayak", "available": True},
        headers=as_user(owner.id),
    )
    assert response.status_code == 200
    item_id = response.json()["id"]

    response = client.patch(
        f"/items/{item_id}", json={"available": False}, headers=as_user(owner.id)
    )
    assert response.json()["available"] is False
    assert response.json()["name"] == "Kayak"

    response = client.get(f"/items/{item_id}", headers=as_user(owner.id))
    assert response.json()["comments"] == []
    assert response.json()["last_booking"] is None

    response = client.delete(f"/items/{item_id}", headers=as_user(owner.id))
    assert response.json() == {"ok": True}
    assert client.get(f"/items/{item_id}", headers=as_user(owner.id)).status_code == 404


def test_blank_item_name_is_rejected(owner):
    response = client.post(
        "/items",
        json={"name": " ", "description": "Sea kayak", "available": True},
        headers=as_user(owner.id),
    )

    assert response.status_code == 400


def test_blank_item_patch_is_rejected(owner, item):
    response = client.patch(
        f"/items/{item.id}", json={"description": "   "}, headers=as_user(owner.id)
    )

    assert response.status_code == 400
    assert client.get(f"/items/{item.id}", headers=as_user(owner.id)).json()["description"] == "Drill for rent"


def test_delete_booked_item_conflicts(owner, booker, item):
    booking = create_booking(booker, item)

    response = client.delete(f"/items/{item.id}", headers=as_user(owner.id))
    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"

    response = client.get("/bookings", headers=as_user(booker.id))
    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [booking["id"]]


def test_search_items(item):
    response = client.get("/items/search", params={"text": "DRILL"})

    assert [i["id"] for i in response.json()] == [item.id]


def test_comment_flow(fixed_clock, booker, item):
    create_booking(booker, item)
    payload = {"text": "Worked fine"}

    early = client.post(f"/items/{item.id}/comment", json=payload, headers=as_user(booker.id))
    assert early.status_code == 400

    fixed_clock.advance(3 * DAY)
    response = client.post(f"/items/{item.id}/comment", json=payload, headers=as_user(booker.id))
    assert response.status_code == 200
    assert response.json()["author_name"] == "Booker"
    assert response.json()["item_id"] == item.id


# --------------
# User endpoints
# --------------


def test_duplicate_user_email():
    payload = {"name": "Ann", "email": "ann@example.com"}
    assert client.post("/users", json=payload).status_code == 200

    response = client.post("/users", json=payload)

    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"


def test_user_email_must_contain_at():
    response = client.post("/users", json={"name": "Ann", "email": "not-an-email"})

    assert response.status_code == 400


def test_blank_user_name_patch_is_rejected(owner):
    response = client.patch(f"/users/{owner.id}", json={"name": "   "})

    assert response.status_code == 400
    assert client.get(f"/users/{owner.id}").json()["name"] == "Owner"


def test_delete_user_with_bookings_conflicts(owner, booker, item):
    create_booking(booker, item)

    response = client.delete(f"/users/{booker.id}")
    assert response.status_code == 409

    response = client.get("/bookings/owner", headers=as_user(owner.id))
    assert response.status_code == 200
    assert len(response.json()) == 1


def test_get_missing_user():
    response = client.get("/users/999")

    assert response.status_code == 404
    assert "999" in response.json()["description"]


# ----------------------
# Item request endpoints
# ----------------------


def test_item_request_endpoints(owner, booker):
    response = client.post(
        "/requests", json={"description": "Need a tent"}, headers=as_user(booker.id)
    )
    assert response.status_code == 200
    request_id = response.json()["id"]
    assert response.json()["created"] == NOW.isoformat()

    client.post(
        "/items",
        json={"name": "Tent", "description": "Tent", "available": True, "request_id": request_id},
        headers=as_user(owner.id),
    )

    own = client.get("/requests", headers=as_user(booker.id)).json()
    others = client.get("/requests/all", headers=as_user(owner.id)).json()
    single = client.get(f"/requests/{request_id}", headers=as_user(owner.id)).json()

    assert [i["name"] for i in own[0]["items"]] == ["Tent"]
    assert [r["id"] for r in others] == [request_id]
    assert single["description"] == "Need a tent"
