from decimal import Decimal

SHIPPING = {
    "full_name": "Alice Buyer",
    "address_line1": "12 Market Street",
    "city": "Nairobi",
    "state": "Nairobi",
    "postal_code": "00100",
    "country": "Kenya",
    "phone": "+254700000000",
}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_cart_requires_identity(client):
    r = client.get("/cart")
    assert r.status_code == 401
    assert r.json()["code"] == "unauthorized"


def test_empty_cart_structure(client, make_user, login):
    make_user("alice")
    r = client.get("/cart", headers=login("alice"))
    assert r.status_code == 200
    assert r.json() == {"cart_id": None, "items": [], "item_count": 0, "subtotal": "0.00"}


def test_cart_and_checkout_flow(client, make_user, make_product, login):
    make_user("alice")
    headers = login("alice")
    a = make_product(price="10.00", name="A")
    b = make_product(price="5.00", name="B")

    r = client.post("/cart/items", json={"product_id": a.id, "quantity": 2}, headers=headers)
    assert r.status_code == 201
    r = client.post("/cart/items", json={"product_id": b.id, "quantity": 3}, headers=headers)
    body = r.json()
    assert len(body["items"]) == 2
    assert Decimal(body["subtotal"]) == Decimal("35")
    assert body["items"][0]["product"]["name"] == "A"

    # a client-supplied total is ignored
    r = client.post(
        "/orders",
        json={"shipping_address": SHIPPING, "payment_method": "creditCard", "total_amount": "0.01"},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    order = r.json()
    assert Decimal(order["total_amount"]) == Decimal("35")
    assert order["status"] == "pending"
    assert {line["quantity"] for line in order["items"]} == {2, 3}

    assert client.get("/cart", headers=headers).json()["items"] == []
    listed = client.get("/orders", headers=headers).json()
    assert [o["id"] for o in listed] == [order["id"]]
    assert client.get(f"/orders/{order['id']}", headers=headers).status_code == 200


def test_update_and_remove_cart_items(client, make_user, make_product, login):
    make_user("alice")
    headers = login("alice")
    product = make_product()
    item_id = client.post("/cart/items", json={"product_id": product.id}, headers=headers).json()["items"][0]["id"]

    r = client.put(f"/cart/items/{item_id}", json={"quantity": 4}, headers=headers)
    assert r.json()["items"][0]["quantity"] == 4

    r = client.put(f"/cart/items/{item_id}", json={"quantity": 0}, headers=headers)
    assert r.status_code == 200
    assert r.json()["items"] == []

    item_id = client.post("/cart/items", json={"product_id": product.id}, headers=headers).json()["items"][0]["id"]
    r = client.delete(f"/cart/items/{item_id}", headers=headers)
    assert r.json()["items"] == []

    client.post("/cart/items", json={"product_id": product.id}, headers=headers)
    r = client.delete("/cart", headers=headers)
    assert r.json()["items"] == []
    assert r.json()["cart_id"] is not None


def test_checkout_empty_cart(client, make_user, login):
    make_user("alice")
    r = client.post("/orders", json={"shipping_address": SHIPPING, "payment_method": "paypal"}, headers=login("alice"))
    assert r.status_code == 400
    assert r.json()["code"] == "empty_cart"


def test_add_missing_product_is_404(client, make_user, login):
    make_user("alice")
    r = client.post("/cart/items", json={"product_id": 4242}, headers=login("alice"))
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


def test_stock_limit_is_409(client, make_user, make_product, login):
    make_user("alice")
    product = make_product(inventory=1)
    r = client.post("/cart/items", json={"product_id": product.id, "quantity": 2}, headers=login("alice"))
    assert r.status_code == 409
    assert r.json()["code"] == "insufficient_stock"
    assert r.json()["errors"][0]["field"] == "quantity"


def test_body_validation_is_400_with_fields(client, make_user, login):
    make_user("alice")
    r = client.post("/cart/items", json={"product_id": 1, "quantity": -2}, headers=login("alice"))
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == "validation_error"
    assert body["errors"][0]["field"] == "quantity"


def test_other_users_order_is_forbidden(client, make_user, make_product, login):
    make_user("alice")
    make_user("bob")
    alice = login("alice")
    client.post("/cart/items", json={"product_id": make_product().id}, headers=alice)
    order_id = client.post("/orders", json={"shipping_address": SHIPPING, "payment_method": "paypal"}, headers=alice).json()["id"]

    r = client.get(f"/orders/{order_id}", headers=login("bob"))
    assert r.status_code == 403


def test_vendor_product_lifecycle(client, categories, make_user, login):
    make_user("maker")
    headers = login("maker")
    r = client.post(
        "/vendors",
        json={"store_name": "Maker Store", "description": "Handmade", "contact_email": "maker@example.com"},
        headers=headers,
    )
    assert r.status_code == 201
    vendor = r.json()
    assert vendor["application_status"] == "pending"
    assert vendor["verified"] is False

    r = client.post(
        "/products",
        json={
            "category_id": categories[0].id,
            "name": "Lamp",
            "price": "30.00",
            "compare_price": "40.00",
            "image_url": "https://cdn.example.com/lamp.png?v=1",
            "inventory": 5,
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    product = r.json()
    assert product["image_url"] == "https://cdn.example.com/lamp.png?v=1"
    assert product["discount_percent"] == 25

    r = client.put(f"/products/{product['id']}", json={"category_id": categories[1].id}, headers=headers)
    assert r.status_code == 200
    cats = {c["slug"]: c["product_count"] for c in client.get("/categories").json()}
    assert cats == {"electronics": 0, "home": 1}
    assert client.get("/vendors/me", headers=headers).json()["product_count"] == 1

    detail = client.get(f"/products/{product['id']}").json()
    assert detail["vendor"]["store_name"] == "Maker Store"
    assert [p["id"] for p in client.get("/products", params={"category": "home"}).json()] == [product["id"]]

    r = client.delete(f"/products/{product['id']}", headers=headers)
    assert r.json() == {"deleted": product["id"]}
    assert client.get(f"/vendors/{vendor['id']}").json()["product_count"] == 0
    assert client.get(f"/products/{product['id']}").status_code == 404


def test_non_vendor_cannot_create_product(client, categories, make_user, login):
    make_user("alice")
    r = client.post(
        "/products", json={"category_id": categories[0].id, "name": "X", "price": "1.00"}, headers=login("alice")
    )
    assert r.status_code == 403


def test_other_vendor_cannot_edit_product(client, make_user, make_product, login):
    product = make_product()
    make_user("rival")
    headers = login("rival")
    client.post(
        "/vendors", json={"store_name": "Rival", "description": "x", "contact_email": "r@example.com"}, headers=headers
    )
    r = client.put(f"/products/{product.id}", json={"price": "0.01"}, headers=headers)
    assert r.status_code == 403
    assert client.delete(f"/products/{product.id}", headers=headers).status_code == 403


def test_second_vendor_profile_conflicts(client, make_user, login):
    make_user("maker")
    headers = login("maker")
    payload = {"store_name": "Maker Store", "description": "Handmade", "contact_email": "maker@example.com"}
    assert client.post("/vendors", json=payload, headers=headers).status_code == 201
    payload["store_name"] = "Second Store"
    assert client.post("/vendors", json=payload, headers=headers).status_code == 409


def test_review_flow(client, vendor, make_user, make_product, login):
    make_user("alice")
    headers = login("alice")
    product = make_product()

    for stars in (5, 3):
        r = client.post("/reviews", json={"product_id": product.id, "vendor_id": vendor.id, "rating": stars}, headers=headers)
        assert r.status_code == 201

    detail = client.get(f"/products/{product.id}").json()
    assert detail["product"]["rating"] == 4.0
    assert detail["product"]["review_count"] == 2
    assert detail["vendor"]["rating"] == 4.0
    assert len(client.get(f"/products/{product.id}/reviews").json()) == 2
    assert len(client.get(f"/vendors/{vendor.id}/reviews").json()) == 2
    assert len(client.get("/reviews/me", headers=headers).json()) == 2


def test_review_rating_out_of_range_is_400(client, vendor, make_user, make_product, login):
    make_user("alice")
    product = make_product()
    r = client.post(
        "/reviews", json={"product_id": product.id, "vendor_id": vendor.id, "rating": 6}, headers=login("alice")
    )
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "rating"


def test_featured_vendors(client, vendor, make_product):
    assert client.get("/vendors/featured").json() == []
    make_product()
    assert [v["id"] for v in client.get("/vendors/featured").json()] == [vendor.id]
