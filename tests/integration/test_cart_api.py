CART = "/api/v1/cart"


def _line(payload, product_id):
    return next(i for i in payload["items"] if i["product_id"] == product_id)


def test_guest_cart_lives_in_session(client, store):
    store.add_product("jersey", price="25.00")
    store.add_product("socks", name="Chaussettes", price="5.00")

    r = client.post(f"{CART}/items", json={"product_id": "jersey", "quantity": 2, "size": " L "})
    assert r.status_code == 200
    client.post(f"{CART}/items", json={"product_id": "jersey", "size": "L"})
    client.post(f"{CART}/items", json={"product_id": "socks", "quantity": 3})

    cart = client.get(CART).json()
    assert cart["synced"] is False
    assert _line(cart, "jersey")["quantity"] == 3
    assert _line(cart, "jersey")["size"] == "L"
    assert cart["totals"] == {"item_count": 6, "subtotal": "90.00"}
    # Rien en base pour un invité
    assert store.rows("user_carts") == []


def test_set_and_remove_items(client, store):
    store.add_product("jersey")
    client.post(f"{CART}/items", json={"product_id": "jersey", "quantity": 2})

    r = client.put(f"{CART}/items", json={"product_id": "jersey", "quantity": 5})
    assert r.json()["changed"] is True
    assert _line(r.json(), "jersey")["quantity"] == 5

    r = client.put(f"{CART}/items", json={"product_id": "jersey", "quantity": 5})
    assert r.json()["changed"] is False

    r = client.delete(f"{CART}/items", params={"product_id": "jersey"})
    assert r.json()["changed"] is True
    assert r.json()["items"] == []

    r = client.delete(f"{CART}/items", params={"product_id": "jersey"})
    assert r.json()["changed"] is False


def test_set_quantity_zero_removes_line(client, store):
    store.add_product("jersey")
    client.post(f"{CART}/items", json={"product_id": "jersey", "quantity": 2, "color": "red"})
    r = client.put(f"{CART}/items", json={"product_id": "jersey", "quantity": 0, "color": "red"})
    assert r.json()["items"] == []


def test_unknown_or_inactive_product_is_rejected(client, store):
    store.add_product("retired", is_active=False)
    r = client.post(f"{CART}/items", json={"product_id": "ghost"})
    assert r.status_code == 409
    assert r.json()["code"] == "ProductUnavailable"
    assert client.post(f"{CART}/items", json={"product_id": "retired"}).status_code == 409


def test_non_positive_quantity_is_rejected(client, store):
    store.add_product("jersey")
    r = client.post(f"{CART}/items", json={"product_id": "jersey", "quantity": 0})
    assert r.status_code == 422
    assert r.json()["code"] == "InvalidQuantity"
    assert client.get(CART).json()["items"] == []


def test_login_merges_guest_cart_with_max_policy(client, store, user_headers):
    store.add_product("jersey")
    store.add_product("ball", price="30.00")
    store.add_cart_row("user-1", "jersey", 1)
    store.add_cart_row("user-1", "ball", 4)

    client.post(f"{CART}/items", json={"product_id": "jersey", "quantity": 3})
    client.post(f"{CART}/items", json={"product_id": "ball", "quantity": 2})

    r = client.post(f"{CART}/sync", headers=user_headers)
    assert r.status_code == 200
    cart = r.json()
    assert cart["synced"] is True
    assert _line(cart, "jersey")["quantity"] == 3
    assert _line(cart, "ball")["quantity"] == 4
    rows = {row["product_id"]: row["quantity"] for row in store.rows("user_carts")}
    assert rows == {"jersey": 3, "ball": 4}

    # Seconde synchronisation: le panier de session a été vidé, rien ne double
    again = client.post(f"{CART}/sync", headers=user_headers).json()
    assert _line(again, "jersey")["quantity"] == 3
    assert len(store.rows("user_carts")) == 2


def test_authenticated_mutations_reach_durable_cart(client, store, user_headers):
    store.add_product("jersey")
    client.post(f"{CART}/items", json={"product_id": "jersey", "quantity": 2, "size": "M"}, headers=user_headers)
    row = store.rows("user_carts")[0]
    assert (row["user_id"], row["quantity"], row["selected_size"]) == ("user-1", 2, "M")

    client.post(f"{CART}/clear", headers=user_headers)
    assert store.rows("user_carts") == []


def test_durable_outage_degrades_then_resyncs(client, store, user_headers):
    store.add_product("jersey")
    store.down.add("user_carts")

    r = client.post(f"{CART}/items", json={"product_id": "jersey"}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["synced"] is False
    assert _line(r.json(), "jersey")["quantity"] == 1

    store.down.clear()
    cart = client.get(CART, headers=user_headers).json()
    assert cart["synced"] is True
    assert _line(cart, "jersey")["quantity"] == 1
    assert [row["quantity"] for row in store.rows("user_carts")] == [1]


def test_cleanup_consolidates_duplicate_rows(client, store, user_headers):
    store.add_product("jersey")
    store.add_cart_row("user-1", "jersey", 1, size="L")
    store.add_cart_row("user-1", "jersey", 4, size="L")

    r = client.post(f"{CART}/cleanup", headers=user_headers)
    assert r.status_code == 200
    assert r.json()["deleted_duplicates"] == 1
    assert [row["quantity"] for row in store.rows("user_carts")] == [4]


def test_cleanup_requires_login(client):
    assert client.post(f"{CART}/cleanup").status_code == 401


def test_product_without_price_cannot_be_added(client, store):
    store.add_product("mystery", price=None)
    r = client.post(f"{CART}/items", json={"product_id": "mystery"})
    assert r.status_code == 409
    assert r.json()["code"] == "ProductUnavailable"
