from chococraft.models import CartItem

from conftest import headers_for


def _save(client, headers, lines):
    return client.post(
        "/api/cart",
        json={"cart": [{"productId": pid, "quantity": qty} for pid, qty in lines]},
        headers=headers,
    )


def test_save_and_read_cart(client, user_headers, make_product):
    product = make_product(name="Sea Salt Caramel", price="80", original_price="95", stock=4)

    saved = _save(client, user_headers, [(product.id, 3)])

    assert saved.status_code == 200
    assert saved.json()["message"] == "Cart saved successfully"
    items = client.get("/api/cart", headers=user_headers).json()["items"]
    assert len(items) == 1
    assert items[0]["productId"] == product.id
    assert items[0]["quantity"] == 3
    assert items[0]["product"]["name"] == "Sea Salt Caramel"
    assert items[0]["product"]["stock"] == 4


def test_save_replaces_whole_cart(client, db, user, user_headers, make_product):
    first = make_product(name="Orange Bar")
    second = make_product(name="Mint Thin")
    _save(client, user_headers, [(first.id, 1), (second.id, 2)])

    _save(client, user_headers, [(second.id, 5)])

    rows = db.query(CartItem).filter(CartItem.user_id == user.id).all()
    assert [(r.product_id, r.quantity) for r in rows] == [(second.id, 5)]


def test_quantity_above_stock_is_allowed_in_cart(client, user_headers, make_product):
    product = make_product(stock=1)

    assert _save(client, user_headers, [(product.id, 10)]).status_code == 200


def test_unknown_product_leaves_cart_untouched(client, db, user, user_headers, make_product):
    product = make_product()
    _save(client, user_headers, [(product.id, 2)])

    resp = _save(client, user_headers, [(product.id, 1), (4242, 1)])

    assert resp.status_code == 404
    assert resp.json()["kind"] == "NotFound"
    assert resp.json()["id"] == 4242
    rows = db.query(CartItem).filter(CartItem.user_id == user.id).all()
    assert [(r.product_id, r.quantity) for r in rows] == [(product.id, 2)]


def test_duplicate_lines_are_summed(client, user_headers, make_product):
    product = make_product()

    resp = _save(client, user_headers, [(product.id, 1), (product.id, 2)])

    assert [(i["productId"], i["quantity"]) for i in resp.json()["items"]] == [(product.id, 3)]


def test_empty_list_clears_cart(client, user_headers, make_product):
    product = make_product()
    _save(client, user_headers, [(product.id, 1)])

    resp = _save(client, user_headers, [])

    assert resp.status_code == 200
    assert resp.json()["items"] == []


def test_zero_quantity_rejected(client, user_headers, make_product):
    product = make_product()

    resp = _save(client, user_headers, [(product.id, 0)])

    assert resp.status_code == 400
    assert resp.json()["field"] == "quantity"


def test_carts_are_per_user(client, user_headers, other_user, make_product):
    product = make_product()
    _save(client, user_headers, [(product.id, 1)])

    assert client.get("/api/cart", headers=headers_for(other_user)).json()["items"] == []


def test_remove_item(client, user_headers, make_product):
    product = make_product()
    _save(client, user_headers, [(product.id, 1)])

    removed = client.delete(f"/api/cart/{product.id}", headers=user_headers)
    missing = client.delete(f"/api/cart/{product.id}", headers=user_headers)

    assert removed.status_code == 200
    assert missing.status_code == 404
    assert client.get("/api/cart", headers=user_headers).json()["items"] == []


def test_cart_requires_token(client):
    assert client.get("/api/cart").status_code == 401
