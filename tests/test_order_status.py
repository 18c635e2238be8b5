import datetime as dt

import pytest

from chococraft.models import Notification, Order
from chococraft.order_state import ALLOWED_TRANSITIONS, can_transition
from chococraft.schemas import OrderStatus

from conftest import headers_for, order_body


@pytest.fixture
def placed_order(client, user, user_headers, make_product):
    product = make_product(name="Almond Cluster", stock=5, image_url="https://cdn.example.com/almond.png")
    resp = client.post("/api/orders", json=order_body(user, [(product.id, 2)]), headers=user_headers)
    assert resp.status_code == 201
    return {"id": resp.json()["orderId"], "product": product}


def _set_status(client, admin_headers, order_id, status):
    return client.put(f"/api/orders/{order_id}/status", json={"status": status}, headers=admin_headers)


def test_pending_to_rejected(client, admin_headers, placed_order):
    resp = _set_status(client, admin_headers, placed_order["id"], "Rejected")

    assert resp.status_code == 200
    assert resp.json()["status"] == "Rejected"
    assert resp.json()["orderId"] == placed_order["id"]


def test_full_lifecycle_then_terminal(client, admin_headers, placed_order):
    for status in ("Processing", "Shipped", "Delivered"):
        assert _set_status(client, admin_headers, placed_order["id"], status).status_code == 200

    resp = _set_status(client, admin_headers, placed_order["id"], "Processing")

    assert resp.status_code == 400
    body = resp.json()
    assert body["kind"] == "InvalidTransition"
    assert body["current"] == "Delivered"
    assert body["requested"] == "Processing"


@pytest.mark.parametrize("status", ["Pending", "Delivered", "Teleported", "pending"])
def test_disallowed_or_unknown_status(client, admin_headers, placed_order, status):
    resp = _set_status(client, admin_headers, placed_order["id"], status)

    assert resp.status_code == 400
    assert resp.json()["kind"] == "InvalidTransition"


def test_status_is_required(client, admin_headers, placed_order):
    resp = client.put(f"/api/orders/{placed_order['id']}/status", json={}, headers=admin_headers)

    assert resp.status_code == 400
    assert resp.json()["kind"] == "ValidationError"
    assert resp.json()["field"] == "status"


def test_status_change_needs_admin(client, user_headers, placed_order):
    resp = client.put(
        f"/api/orders/{placed_order['id']}/status", json={"status": "Processing"}, headers=user_headers
    )

    assert resp.status_code == 403
    assert resp.json()["kind"] == "PermissionDenied"


def test_missing_order(client, admin_headers):
    resp = _set_status(client, admin_headers, 9999, "Processing")

    assert resp.status_code == 404
    assert resp.json()["kind"] == "NotFound"


def test_transition_notifies_admins(client, db, admin_headers, placed_order):
    _set_status(client, admin_headers, placed_order["id"], "Processing")

    titles = [n.title for n in db.query(Notification).all()]
    assert f"Order Status Updated: #{placed_order['id']:06d}" in titles


def test_approve_and_reject_endpoints(client, admin_headers, placed_order):
    approved = client.post(f"/api/orders/{placed_order['id']}/approve", headers=admin_headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "Processing"

    again = client.post(f"/api/orders/{placed_order['id']}/approve", headers=admin_headers)
    assert again.status_code == 400

    rejected = client.post(f"/api/orders/{placed_order['id']}/reject", headers=admin_headers)
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "Rejected"


def test_reject_does_not_restock(client, db, admin_headers, placed_order):
    client.post(f"/api/orders/{placed_order['id']}/reject", headers=admin_headers)

    product = placed_order["product"]
    db.refresh(product)
    assert product.stock == 3


def test_owner_can_cancel_recent_order(client, user_headers, placed_order):
    resp = client.put(f"/api/orders/{placed_order['id']}/cancel", headers=user_headers)

    assert resp.status_code == 200
    assert resp.json()["status"] == "Rejected"


def test_other_user_cannot_cancel(client, other_user, placed_order):
    resp = client.put(f"/api/orders/{placed_order['id']}/cancel", headers=headers_for(other_user))

    assert resp.status_code == 403


def test_cancel_window_expired(client, db, user_headers, placed_order):
    old = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None) - dt.timedelta(hours=25)
    db.query(Order).filter(Order.id == placed_order["id"]).update({Order.created_at: old})
    db.commit()

    resp = client.put(f"/api/orders/{placed_order['id']}/cancel", headers=user_headers)

    assert resp.status_code == 400
    assert resp.json()["kind"] == "ValidationError"
    assert resp.json()["field"] == "orderId"


def test_cannot_cancel_shipped_order(client, admin_headers, user_headers, placed_order):
    _set_status(client, admin_headers, placed_order["id"], "Processing")
    _set_status(client, admin_headers, placed_order["id"], "Shipped")

    resp = client.put(f"/api/orders/{placed_order['id']}/cancel", headers=user_headers)

    assert resp.status_code == 400
    assert resp.json()["kind"] == "InvalidTransition"


def test_user_order_history(client, user, user_headers, other_user, admin_headers, placed_order):
    mine = client.get(f"/api/orders/{user.id}", headers=user_headers)
    assert mine.status_code == 200
    orders = mine.json()
    assert [o["id"] for o in orders] == [placed_order["id"]]
    item = orders[0]["items"][0]
    assert item["productName"] == "Almond Cluster"
    assert item["imageUrl"] == "https://cdn.example.com/almond.png"
    assert orders[0]["shipping"]["city"] == "Pune"
    assert orders[0]["paymentMethod"] == "Cash on Delivery"

    assert client.get(f"/api/orders/{user.id}", headers=headers_for(other_user)).status_code == 403
    assert client.get(f"/api/orders/{user.id}", headers=admin_headers).status_code == 200


def test_admin_lists_all_orders(client, user_headers, admin_headers, placed_order):
    resp = client.get("/api/orders", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json()[0]["username"] == "alice"
    assert client.get("/api/orders", headers=user_headers).status_code == 403


def test_transition_table():
    assert can_transition(OrderStatus.PENDING, OrderStatus.REJECTED)
    assert can_transition(OrderStatus.SHIPPED, OrderStatus.DELIVERED)
    assert not can_transition(OrderStatus.SHIPPED, OrderStatus.REJECTED)
    assert not can_transition(OrderStatus.PENDING, OrderStatus.PENDING)
    assert ALLOWED_TRANSITIONS[OrderStatus.DELIVERED] == frozenset()
    assert ALLOWED_TRANSITIONS[OrderStatus.REJECTED] == frozenset()
