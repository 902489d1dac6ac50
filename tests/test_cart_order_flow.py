"""
tests/test_cart_order_flow.py -- Cart, address and checkout flow over HTTP.

Each test that touches a cart signs up its own shopper (via the user store
and a freshly issued token) so carts never leak between tests.

Coverage:
  - Cart: add, duplicate line 400, over-stock 400, quantity step add/delete
  - Cart lines follow product price changes
  - Address book: create, list own, 403 on someone else's
  - Checkout: 201 "Order Accepted !", stock decremented, cart emptied,
    empty cart 400, foreign address 403
  - Order listings: user, admin, seller; admin status update
  - Admin: analytics, cart listing; cross-user cart edits are 403
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass

from auth.models import AppRole, User
from auth.tokens import hash_password, issue_token
from shop.models import Category, Product, special_price

_counter = itertools.count(1)


@dataclass
class Account:
    id: int
    username: str
    email: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


ADDRESS = {
    "street": "221B Baker Street",
    "building_name": "Holmes House",
    "city": "London",
    "state": "Greater London",
    "country": "UK",
    "pincode": "NW16XE",
}


def _new_shopper(ctx) -> Account:
    username = f"buyer{next(_counter)}"
    email = f"{username}@example.com"
    uid = ctx.user_store.create_user(
        User(username=username, email=email, hashed_password=hash_password("secret123"), roles={AppRole.USER.value})
    )
    return Account(id=uid, username=username, email=email, token=issue_token(username))


def _new_product(ctx, name: str, price: float = 100.0, discount: float = 10.0, quantity: int = 5, seller_id=None) -> int:
    category = ctx.shop_store.get_category_by_name("Flow Tests")
    cid = category.id if category else ctx.shop_store.create_category(Category(category_name="Flow Tests"))
    product_id = ctx.shop_store.create_product(
        Product(
            product_name=name,
            category_id=cid,
            price=price,
            discount=discount,
            special_price=special_price(price, discount),
            quantity=quantity,
            seller_id=seller_id if seller_id is not None else ctx.admin.id,
        )
    )
    ctx.cache.clear_product_caches()
    return product_id


def _add_to_cart(ctx, account: Account, product_id: int, quantity: int = 1):
    return ctx.client.post(f"/api/carts/products/{product_id}/quantity/{quantity}", headers=account.headers)


def _add_address(ctx, account: Account) -> int:
    resp = ctx.client.post("/api/addresses", json=ADDRESS, headers=account.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["address_id"]


def _checkout(ctx, account: Account, address_id: int, method: str = "card"):
    return ctx.client.post(
        f"/api/order/users/payments/{method}",
        json={"address_id": address_id, "pg_name": "stripe", "pg_payment_id": "pi_123", "pg_status": "succeeded"},
        headers=account.headers,
    )


class TestCart:
    def test_add_creates_cart_with_line(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        pid = _new_product(api_client, "Cart Mug", price=20.0, discount=50.0)

        resp = _add_to_cart(api_client, buyer, pid, 2)
        assert resp.status_code == 201
        cart = resp.json()
        assert cart["total_price"] == 20.0
        assert [(i["product_id"], i["quantity"], i["product_price"]) for i in cart["items"]] == [(pid, 2, 10.0)]

        fetched = api_client.client.get("/api/carts/users/cart", headers=buyer.headers)
        assert fetched.json() == cart

    def test_no_cart_yet_is_404(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        assert api_client.client.get("/api/carts/users/cart", headers=buyer.headers).status_code == 404

    def test_duplicate_line_is_400(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        pid = _new_product(api_client, "Cart Pen")
        assert _add_to_cart(api_client, buyer, pid).status_code == 201
        resp = _add_to_cart(api_client, buyer, pid)
        assert resp.status_code == 400
        assert "already exists in the cart" in resp.json()["message"]

    def test_more_than_stock_is_400(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        pid = _new_product(api_client, "Rare Stamp", quantity=2)
        resp = _add_to_cart(api_client, buyer, pid, 3)
        assert resp.status_code == 400
        assert "less than or equal to the quantity 2" in resp.json()["message"]

    def test_unknown_product_is_404(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        assert _add_to_cart(api_client, buyer, 99999).status_code == 404

    def test_quantity_steps(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        pid = _new_product(api_client, "Step Socks", price=10.0, discount=0.0, quantity=2)
        _add_to_cart(api_client, buyer, pid)

        up = api_client.client.put(f"/api/cart/products/{pid}/quantity/add", headers=buyer.headers)
        assert up.status_code == 200
        assert up.json()["items"][0]["quantity"] == 2
        assert up.json()["total_price"] == 20.0

        over = api_client.client.put(f"/api/cart/products/{pid}/quantity/add", headers=buyer.headers)
        assert over.status_code == 400

        down = api_client.client.put(f"/api/cart/products/{pid}/quantity/delete", headers=buyer.headers)
        assert down.json()["items"][0]["quantity"] == 1

        gone = api_client.client.put(f"/api/cart/products/{pid}/quantity/delete", headers=buyer.headers)
        assert gone.json()["items"] == []
        assert gone.json()["total_price"] == 0.0

    def test_invalid_operation_is_400(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        pid = _new_product(api_client, "Op Widget")
        _add_to_cart(api_client, buyer, pid)
        resp = api_client.client.put(f"/api/cart/products/{pid}/quantity/double", headers=buyer.headers)
        assert resp.status_code == 400

    def test_remove_line(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        pid = _new_product(api_client, "Removable Hat")
        cart = _add_to_cart(api_client, buyer, pid).json()

        resp = api_client.client.delete(f"/api/carts/{cart['cart_id']}/product/{pid}", headers=buyer.headers)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Product Removable Hat removed from the cart !!!"
        assert api_client.client.get("/api/carts/users/cart", headers=buyer.headers).json()["items"] == []

    def test_other_users_cart_is_403(self, api_client) -> None:
        owner, intruder = _new_shopper(api_client), _new_shopper(api_client)
        pid = _new_product(api_client, "Guarded Lamp")
        cart = _add_to_cart(api_client, owner, pid).json()
        resp = api_client.client.delete(f"/api/carts/{cart['cart_id']}/product/{pid}", headers=intruder.headers)
        assert resp.status_code == 403

    def test_price_change_updates_cart_total(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        pid = _new_product(api_client, "Floating Price Clock", price=100.0, discount=0.0)
        _add_to_cart(api_client, buyer, pid, 2)
        api_client.client.get("/api/carts/users/cart", headers=buyer.headers)  # cache it

        resp = api_client.client.put(
            f"/api/admin/products/{pid}", json={"price": 60.0}, headers=api_client.admin.headers
        )
        assert resp.status_code == 200

        cart = api_client.client.get("/api/carts/users/cart", headers=buyer.headers).json()
        assert cart["items"][0]["product_price"] == 60.0
        assert cart["total_price"] == 120.0


class TestAddresses:
    def test_create_and_list_own(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        address_id = _add_address(api_client, buyer)
        listed = api_client.client.get("/api/users/addresses", headers=buyer.headers).json()
        assert [a["address_id"] for a in listed] == [address_id]
        assert listed[0]["city"] == "London"

    def test_other_users_address_is_403(self, api_client) -> None:
        owner, intruder = _new_shopper(api_client), _new_shopper(api_client)
        address_id = _add_address(api_client, owner)
        assert api_client.client.get(f"/api/addresses/{address_id}", headers=intruder.headers).status_code == 403
        assert api_client.client.delete(f"/api/addresses/{address_id}", headers=intruder.headers).status_code == 403

    def test_update_and_delete(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        address_id = _add_address(api_client, buyer)
        resp = api_client.client.put(
            f"/api/addresses/{address_id}", json={**ADDRESS, "city": "Oxford"}, headers=buyer.headers
        )
        assert resp.json()["city"] == "Oxford"

        resp = api_client.client.delete(f"/api/addresses/{address_id}", headers=buyer.headers)
        assert resp.json()["message"] == f"Address deleted successfully with addressId: {address_id}"
        assert api_client.client.get(f"/api/addresses/{address_id}", headers=buyer.headers).status_code == 404

    def test_admin_lists_every_address(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        address_id = _add_address(api_client, buyer)
        assert api_client.client.get("/api/addresses", headers=buyer.headers).status_code == 403
        listed = api_client.client.get("/api/addresses", headers=api_client.admin.headers).json()
        assert address_id in {a["address_id"] for a in listed}


class TestCheckout:
    def test_place_order(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        pid = _new_product(api_client, "Checkout Kettle", price=50.0, discount=20.0, quantity=5)
        _add_to_cart(api_client, buyer, pid, 2)
        address_id = _add_address(api_client, buyer)

        resp = _checkout(api_client, buyer, address_id)
        assert resp.status_code == 201, resp.text
        order = resp.json()
        assert order["order_status"] == "Order Accepted !"
        assert order["email"] == buyer.email
        assert order["total_amount"] == 80.0
        assert order["address_id"] == address_id
        assert order["payment"]["payment_method"] == "card"
        assert order["payment"]["pg_payment_id"] == "pi_123"
        assert [(i["product_id"], i["quantity"], i["ordered_product_price"]) for i in order["items"]] == [
            (pid, 2, 40.0)
        ]

        assert api_client.shop_store.get_product(pid).quantity == 3
        cart = api_client.client.get("/api/carts/users/cart", headers=buyer.headers).json()
        assert cart["items"] == []
        assert cart["total_price"] == 0.0

    def test_stock_shows_in_public_listing_after_checkout(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        pid = _new_product(api_client, "Listing Stock Lamp", quantity=4)
        api_client.client.get("/api/public/products?page_size=200")  # cache it
        _add_to_cart(api_client, buyer, pid, 3)
        assert _checkout(api_client, buyer, _add_address(api_client, buyer)).status_code == 201

        listed = api_client.client.get("/api/public/products?page_size=200").json()["content"]
        assert next(p for p in listed if p["product_id"] == pid)["quantity"] == 1

    def test_empty_cart_is_400(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        pid = _new_product(api_client, "Briefly Carted")
        _add_to_cart(api_client, buyer, pid)
        api_client.client.put(f"/api/cart/products/{pid}/quantity/delete", headers=buyer.headers)
        resp = _checkout(api_client, buyer, _add_address(api_client, buyer))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cart is empty"

    def test_foreign_address_is_403(self, api_client) -> None:
        buyer, other = _new_shopper(api_client), _new_shopper(api_client)
        pid = _new_product(api_client, "Misaddressed Parcel")
        _add_to_cart(api_client, buyer, pid)
        resp = _checkout(api_client, buyer, _add_address(api_client, other))
        assert resp.status_code == 403

    def test_stock_sold_out_meanwhile_is_400_and_nothing_changes(self, api_client) -> None:
        first, second = _new_shopper(api_client), _new_shopper(api_client)
        pid = _new_product(api_client, "Last Unit Vase", quantity=1)
        _add_to_cart(api_client, first, pid)
        _add_to_cart(api_client, second, pid)

        assert _checkout(api_client, first, _add_address(api_client, first)).status_code == 201
        resp = _checkout(api_client, second, _add_address(api_client, second))
        assert resp.status_code == 400
        assert "Insufficient stock" in resp.json()["message"]
        assert api_client.shop_store.get_product(pid).quantity == 0
        cart = api_client.client.get("/api/carts/users/cart", headers=second.headers).json()
        assert [i["product_id"] for i in cart["items"]] == [pid]


class TestOrderListings:
    def _place(self, ctx, seller_id=None) -> tuple[Account, int, int]:
        buyer = _new_shopper(ctx)
        pid = _new_product(ctx, f"Listed Item {next(_counter)}", seller_id=seller_id)
        _add_to_cart(ctx, buyer, pid)
        order = _checkout(ctx, buyer, _add_address(ctx, buyer)).json()
        return buyer, pid, order["order_id"]

    def test_user_sees_own_orders(self, api_client) -> None:
        buyer, _, order_id = self._place(api_client)
        resp = api_client.client.get("/api/order/users/orders", headers=buyer.headers)
        assert resp.status_code == 200
        assert [o["order_id"] for o in resp.json()] == [order_id]

    def test_admin_sees_all_orders(self, api_client) -> None:
        _, _, first = self._place(api_client)
        _, _, second = self._place(api_client)
        resp = api_client.client.get("/api/admin/orders?page_size=200", headers=api_client.admin.headers)
        ids = {o["order_id"] for o in resp.json()["content"]}
        assert {first, second} <= ids

    def test_seller_sees_only_orders_with_their_products(self, api_client) -> None:
        _, _, theirs = self._place(api_client, seller_id=api_client.seller.id)
        _, _, not_theirs = self._place(api_client)
        resp = api_client.client.get("/api/seller/orders?page_size=200", headers=api_client.seller.headers)
        ids = {o["order_id"] for o in resp.json()["content"]}
        assert theirs in ids
        assert not_theirs not in ids

    def test_status_update_is_visible_to_buyer(self, api_client) -> None:
        buyer, _, order_id = self._place(api_client)
        api_client.client.get("/api/order/users/orders", headers=buyer.headers)  # cache it

        resp = api_client.client.put(
            f"/api/admin/orders/{order_id}/status",
            json={"status": "Shipped"},
            headers=api_client.admin.headers,
        )
        assert resp.status_code == 200
        assert resp.json()["order_status"] == "Shipped"

        orders = api_client.client.get("/api/order/users/orders", headers=buyer.headers).json()
        assert orders[0]["order_status"] == "Shipped"

    def test_unknown_order_status_update_is_404(self, api_client) -> None:
        resp = api_client.client.put(
            "/api/admin/orders/99999/status", json={"status": "Shipped"}, headers=api_client.admin.headers
        )
        assert resp.status_code == 404

    def test_user_cannot_update_status(self, api_client) -> None:
        buyer, _, order_id = self._place(api_client)
        resp = api_client.client.put(
            f"/api/admin/orders/{order_id}/status", json={"status": "Cancelled"}, headers=buyer.headers
        )
        assert resp.status_code == 403


class TestAdmin:
    def test_analytics(self, api_client) -> None:
        resp = api_client.client.get("/api/admin/app/analytics", headers=api_client.admin.headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["product_count"] == api_client.shop_store.count_products()
        orders, revenue = api_client.shop_store.order_totals()
        assert body["total_orders"] == orders
        assert body["total_revenue"] == revenue

    def test_admin_lists_carts_user_cannot(self, api_client) -> None:
        buyer = _new_shopper(api_client)
        _add_to_cart(api_client, buyer, _new_product(api_client, "Visible Cart Item"))

        assert api_client.client.get("/api/carts", headers=buyer.headers).status_code == 403
        carts = api_client.client.get("/api/carts", headers=api_client.admin.headers).json()
        assert buyer.id in {c["user_id"] for c in carts}

    def test_username_matching_listing_key_keeps_carts_apart(self, api_client) -> None:
        uid = api_client.user_store.create_user(
            User(
                username="all",
                email="all@example.com",
                hashed_password=hash_password("secret123"),
                roles={AppRole.USER.value},
            )
        )
        shopper = Account(id=uid, username="all", email="all@example.com", token=issue_token("all"))
        assert _add_to_cart(api_client, shopper, _new_product(api_client, "Named Cart Item")).status_code == 201

        listing = api_client.client.get("/api/carts", headers=api_client.admin.headers).json()
        assert isinstance(listing, list)
        own = api_client.client.get("/api/carts/users/cart", headers=shopper.headers).json()
        assert isinstance(own, dict)
        assert own["user_id"] == uid
        listing = api_client.client.get("/api/carts", headers=api_client.admin.headers).json()
        assert isinstance(listing, list)
        assert uid in {c["user_id"] for c in listing}
