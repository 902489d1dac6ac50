"""
tests/test_auth_routes.py -- Integration tests for /api/auth/* and admin user management.

Coverage:
  - Sign-in: 200 with token + hardened cookie, 401 envelope on bad credentials
  - Cookie-only session: /auth/user and /auth/username, then sign-out clears it
  - Sign-up: user and seller accounts, duplicate username/email 400, admin 400
  - Admin user list / seller list / delete (deleted user's token stops working)
  - Admin user sorting; deleting a user drops its cart and addresses
"""

from __future__ import annotations

from fastapi.testclient import TestClient

PASSWORD = "testpass123"


def _signin(client: TestClient, username: str, password: str = PASSWORD):
    return client.post("/api/auth/signin", json={"username": username, "password": password})


class TestSignin:
    def test_signin_returns_identity_and_token(self, api_client) -> None:
        resp = _signin(api_client.client, "shopper")
        assert resp.status_code == 200
        body = resp.json()
        assert body["username"] == "shopper"
        assert body["email"] == "shopper@example.com"
        assert body["roles"] == ["ROLE_USER"]
        assert body["jwt_token"]
        assert resp.headers["cache-control"] == "no-store"

    def test_signin_cookie_is_hardened(self, api_client) -> None:
        resp = _signin(api_client.client, "shopper")
        cookie = resp.headers["set-cookie"]
        assert cookie.startswith("access_token=")
        assert "HttpOnly" in cookie
        assert "samesite=lax" in cookie.lower()
        assert "Path=/api" in cookie

    def test_wrong_password_is_401_envelope(self, api_client) -> None:
        resp = _signin(api_client.client, "shopper", "wrong-password")
        assert resp.status_code == 401
        body = resp.json()
        assert body["error"] == "Unauthorized"
        assert body["message"] == "Bad credentials"
        assert "set-cookie" not in resp.headers

    def test_unknown_user_gets_same_response(self, api_client) -> None:
        resp = _signin(api_client.client, "no-such-user", "whatever1")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Bad credentials"

    def test_missing_fields_are_422_envelope(self, api_client) -> None:
        resp = api_client.client.post("/api/auth/signin", json={"username": "shopper"})
        assert resp.status_code == 422
        body = resp.json()
        assert body["status"] == 422
        assert "password" in body["message"]


class TestCookieSession:
    def test_cookie_session_round_trip(self, api_client) -> None:
        client = api_client.client
        assert _signin(client, "merchant").status_code == 200

        me = client.get("/api/auth/user")
        assert me.status_code == 200
        assert set(me.json()["roles"]) == {"ROLE_SELLER", "ROLE_USER"}
        assert me.json()["jwt_token"] is None

        name = client.get("/api/auth/username")
        assert name.status_code == 200
        assert name.text == "merchant"

        out = client.post("/api/auth/signout")
        assert out.status_code == 200
        assert out.json()["message"] == "You've been signed out!"
        assert client.get("/api/auth/user").status_code == 401


class TestSignup:
    def test_signup_user(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/auth/signup",
            json={"username": "newbie", "email": "newbie@example.com", "password": "secret123"},
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "User registered successfully!"
        created = api_client.user_store.get_by_username("newbie")
        assert created.roles == {"ROLE_USER"}
        assert _signin(api_client.client, "newbie", "secret123").status_code == 200

    def test_signup_seller_also_gets_user_role(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/auth/signup",
            json={"username": "shopkeep", "email": "shopkeep@example.com", "password": "secret123", "roles": ["seller"]},
        )
        assert resp.status_code == 200
        assert api_client.user_store.get_by_username("shopkeep").roles == {"ROLE_SELLER", "ROLE_USER"}

    def test_duplicate_username(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/auth/signup",
            json={"username": "shopper", "email": "other@example.com", "password": "secret123"},
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Error: Username is already taken!"

    def test_duplicate_email(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/auth/signup",
            json={"username": "someoneelse", "email": "shopper@example.com", "password": "secret123"},
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Error: Email is already in use!"

    def test_admin_cannot_be_self_assigned(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/auth/signup",
            json={"username": "sneaky", "email": "sneaky@example.com", "password": "secret123", "roles": ["admin"]},
        )
        assert resp.status_code == 400
        assert api_client.user_store.get_by_username("sneaky") is None

    def test_invalid_email_is_422(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/auth/signup",
            json={"username": "bademail", "email": "not-an-email", "password": "secret123"},
        )
        assert resp.status_code == 422


class TestAdminUsers:
    def test_list_users_is_paginated(self, api_client) -> None:
        resp = api_client.client.get("/api/admin/users?page_size=2", headers=api_client.admin.headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["page_size"] == 2
        assert len(body["content"]) == 2
        assert body["total_elements"] >= 3
        assert body["last_page"] is False

    def test_sellers_listing_refreshes_after_signup(self, api_client) -> None:
        client, headers = api_client.client, api_client.admin.headers
        before = {u["username"] for u in client.get("/api/admin/sellers", headers=headers).json()["content"]}
        assert "merchant" in before
        assert "vendor2" not in before

        client.post(
            "/api/auth/signup",
            json={"username": "vendor2", "email": "vendor2@example.com", "password": "secret123", "roles": ["seller"]},
        )
        after = {u["username"] for u in client.get("/api/admin/sellers", headers=headers).json()["content"]}
        assert "vendor2" in after

    def test_delete_user_revokes_access(self, api_client) -> None:
        client = api_client.client
        client.post(
            "/api/auth/signup",
            json={"username": "leaving", "email": "leaving@example.com", "password": "secret123"},
        )
        token = _signin(client, "leaving", "secret123").json()["jwt_token"]
        client.cookies.clear()
        headers = {"Authorization": f"Bearer {token}"}
        assert client.get("/api/auth/user", headers=headers).status_code == 200

        user_id = api_client.user_store.get_by_username("leaving").id
        resp = client.delete(f"/api/admin/users/{user_id}", headers=api_client.admin.headers)
        assert resp.status_code == 200

        assert client.get("/api/auth/user", headers=headers).status_code == 401

    def test_delete_unknown_user_is_404(self, api_client) -> None:
        resp = api_client.client.delete("/api/admin/users/99999", headers=api_client.admin.headers)
        assert resp.status_code == 404
        assert resp.json()["message"] == "User not found with userId: 99999"

    def test_admin_cannot_delete_self(self, api_client) -> None:
        resp = api_client.client.delete(f"/api/admin/users/{api_client.admin.id}", headers=api_client.admin.headers)
        assert resp.status_code == 400

    def test_list_users_sorts_by_username(self, api_client) -> None:
        resp = api_client.client.get(
            "/api/admin/users?sort_by=username&sort_order=desc&page_size=50", headers=api_client.admin.headers
        )
        assert resp.status_code == 200
        names = [u["username"] for u in resp.json()["content"]]
        assert names == sorted(names, reverse=True)

    def test_unknown_user_sort_field_is_400(self, api_client) -> None:
        headers = api_client.admin.headers
        resp = api_client.client.get("/api/admin/users?sort_by=password", headers=headers)
        assert resp.status_code == 400
        assert "Allowed" in resp.json()["message"]
        assert api_client.client.get("/api/admin/sellers?sort_by=password", headers=headers).status_code == 400

    def test_new_account_does_not_inherit_deleted_users_data(self, api_client) -> None:
        client = api_client.client
        address = {
            "street": "742 Evergreen Terrace",
            "building_name": "House",
            "city": "Springfield",
            "state": "OR",
            "country": "USA",
            "pincode": "97403",
        }

        def _join(username: str) -> dict[str, str]:
            client.post(
                "/api/auth/signup",
                json={"username": username, "email": f"{username}@example.com", "password": "secret123"},
            )
            token = _signin(client, username, "secret123").json()["jwt_token"]
            client.cookies.clear()
            return {"Authorization": f"Bearer {token}"}

        departing = _join("departing")
        assert client.post("/api/addresses", json=address, headers=departing).status_code == 201
        old_id = api_client.user_store.get_by_username("departing").id
        assert client.delete(f"/api/admin/users/{old_id}", headers=api_client.admin.headers).status_code == 200
        assert api_client.shop_store.list_addresses(old_id) == []

        arriving = _join("arriving")
        assert api_client.user_store.get_by_username("arriving").id != old_id
        assert client.get("/api/users/addresses", headers=arriving).json() == []
        assert client.get("/api/carts/users/cart", headers=arriving).status_code == 404
