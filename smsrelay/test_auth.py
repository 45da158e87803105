"""
Tests for account-scoped deployments.

Tests cover:
- Register, login, logout, current_user
- Case-insensitive username uniqueness
- /messages requires a signed-in account and is scoped to it
"""

from smsrelay.utils import hash_password, verify_password


def register(client, username="alice", password="secret1"):
    return client.post("/auth/register", json={"username": username, "password": password})


def login(client, username="alice", password="secret1"):
    return client.post("/auth/login", json={"username": username, "password": password})


class TestRegister:

    def test_register_signs_in(self, account_client):
        response = register(account_client)

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["username"] == "alice"
        assert user["id"]

        current = account_client.get("/auth/current_user")
        assert current.status_code == 200
        assert current.json()["user"] == user

    def test_missing_fields(self, account_client):
        response = account_client.post("/auth/register", json={"username": "alice"})

        assert response.status_code == 422
        assert response.json() == {"error": "username and password are required"}

    def test_short_password(self, account_client):
        response = register(account_client, password="abc")

        assert response.status_code == 422
        assert "Password is too short" in response.json()["error"]

    def test_username_taken_case_insensitive(self, account_client):
        assert register(account_client, username="Alice").status_code == 201

        response = register(account_client, username="alice")

        assert response.status_code == 422
        assert response.json()["error"] == "Username has already been taken"


class TestLogin:

    def test_login_and_logout(self, account_client):
        register(account_client)
        account_client.post("/auth/logout")

        response = login(account_client)
        assert response.status_code == 200
        assert response.json()["user"]["username"] == "alice"

        logout = account_client.post("/auth/logout")
        assert logout.status_code == 200
        assert logout.json() == {"message": "Logged out successfully"}

        assert account_client.get("/auth/current_user").status_code == 401

    def test_login_is_case_insensitive(self, account_client):
        register(account_client, username="Alice")
        account_client.post("/auth/logout")

        response = login(account_client, username="ALICE")

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "Alice"

    def test_wrong_password(self, account_client):
        register(account_client)
        account_client.post("/auth/logout")

        response = login(account_client, password="not-it")

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid username or password"}

    def test_unknown_user(self, account_client):
        response = login(account_client, username="nobody")

        assert response.status_code == 401

    def test_logout_without_session(self, account_client):
        response = account_client.post("/auth/logout")

        assert response.status_code == 401
        assert response.json() == {"error": "Not logged in"}

    def test_current_user_without_session(self, account_client):
        response = account_client.get("/auth/current_user")

        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}


class TestAccountMessages:

    def test_requires_authentication(self, account_client):
        post = account_client.post("/messages", json={"phone_number": "+15551234567", "content": "hello"})
        get = account_client.get("/messages")

        assert post.status_code == 401
        assert get.status_code == 401
        assert account_client.app.state.gateway.calls == []

    def test_scoped_to_account(self, account_client):
        alice = register(account_client, username="alice").json()["user"]
        created = account_client.post(
            "/messages", json={"phone_number": "+15551234567", "content": "from alice"}
        )
        assert created.status_code == 201
        assert created.json()["user_id"] == alice["id"]
        assert "session_id" not in created.json()

        account_client.post("/auth/logout")
        register(account_client, username="bob")

        assert account_client.get("/messages").json() == []

        account_client.post("/auth/logout")
        login(account_client, username="alice")
        listing = account_client.get("/messages").json()
        assert [m["content"] for m in listing] == ["from alice"]


class TestRoutesByScope:

    def test_auth_routes_absent_in_session_scope(self, client):
        response = client.post("/auth/login", json={"username": "alice", "password": "secret1"})

        assert response.status_code == 404
        assert "error" in response.json()

    def test_account_scope_without_secret_still_serves(self, fresh_db, make_client):
        with make_client(OWNER_SCOPE="account", SESSION_SECRET=None) as test_client:
            assert register(test_client).status_code == 201

    def test_factory_applies_per_app_settings_only(self, caplog):
        from smsrelay.config import Settings
        from smsrelay.main import create_app

        with caplog.at_level("WARNING", logger="smsrelay.main"):
            app = create_app(Settings(
                OWNER_SCOPE="account",
                SMS_GATEWAY_MODE="live",
                DATABASE_URL="sqlite:///./elsewhere.db",
            ))

        assert app.state.owner_resolver.field_name == "user_id"
        assert app.state.gateway_config.mode == "live"
        assert any("DATABASE_URL is process-wide" in r.getMessage() for r in caplog.records)


class TestPasswordHashing:

    def test_hash_round_trip(self):
        encoded = hash_password("secret1")

        assert encoded.startswith("pbkdf2_sha256$")
        assert "secret1" not in encoded
        assert verify_password("secret1", encoded)
        assert not verify_password("secret2", encoded)

    def test_salted(self):
        assert hash_password("secret1") != hash_password("secret1")

    def test_malformed_hash(self):
        assert not verify_password("secret1", "not-a-hash")
