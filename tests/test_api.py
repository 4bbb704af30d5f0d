from banana_backend.constants import Role

from tests.api_helpers import PASSWORD, auth_header, make_user

REGISTRATION = {
    "username": "alice",
    "email": "Alice@Example.com",
    "password": "bananas!",
    "displayName": "Alice A.",
    "avatarUrl": "https://example.com/alice.png",
}


def test_alive(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "Banana Clicker Backend is Alive!"


class TestAuth:
    def test_register_returns_token_and_user(self, client):
        response = client.post("/api/auth/register", json=REGISTRATION)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "User registered successfully!"
        assert body["user"]["email"] == "alice@example.com"
        assert body["user"]["role"] == "player"
        assert body["user"]["score"] == 0
        assert client.app.state.presence.token_verifier.verify(body["token"]) == body["user"]["id"]

    def test_register_rejects_duplicates(self, client):
        client.post("/api/auth/register", json=REGISTRATION)

        same_email = client.post("/api/auth/register", json={**REGISTRATION, "username": "other"})
        assert same_email.status_code == 400
        assert same_email.json()["detail"] == "Email already in use."

        same_name = client.post("/api/auth/register", json={**REGISTRATION, "email": "other@example.com"})
        assert same_name.status_code == 400
        assert same_name.json()["detail"] == "Username already taken."

    def test_register_validates_payload(self, client):
        assert client.post("/api/auth/register", json={}).status_code == 422
        bad_email = {**REGISTRATION, "email": "not-an-email"}
        assert client.post("/api/auth/register", json=bad_email).status_code == 422

    def test_login(self, client):
        client.post("/api/auth/register", json=REGISTRATION)

        ok = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "bananas!"})
        assert ok.status_code == 200
        assert ok.json()["user"]["username"] == "alice"

        wrong = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope"})
        assert wrong.status_code == 401

    def test_login_refused_for_blocked_account(self, client):
        make_user(client, "mallory", is_blocked=True)

        response = client.post("/api/auth/login", json={"email": "mallory@example.com", "password": PASSWORD})

        assert response.status_code == 403

    def test_me_requires_token(self, client):
        assert client.get("/api/users/me").status_code == 401
        assert client.get("/api/users/me", headers=auth_header("garbage")).status_code == 401

    def test_me(self, client):
        user, token = make_user(client, "alice", score=12)

        body = client.get("/api/users/me", headers=auth_header(token)).json()

        assert body["id"] == str(user.id)
        assert body["score"] == 12


def test_rest_ranks_match_socket_snapshot(client):
    _, token = make_user(client, "alice", score=2)
    make_user(client, "bob", score=9)
    make_user(client, "eve", score=50, is_deleted=True)

    ranks = client.get("/api/ranks", headers=auth_header(token)).json()

    assert [r["username"] for r in ranks] == ["bob", "alice"]
    assert set(ranks[0]) == {"userId", "username", "displayName", "avatarRef", "score"}


class TestAdmin:
    def test_players_cannot_manage_users(self, client):
        _, token = make_user(client, "alice")
        assert client.get("/api/users", headers=auth_header(token)).status_code == 403

    def test_create_list_get_update(self, client):
        _, admin_token = make_user(client, "root", role=Role.ADMIN)
        headers = auth_header(admin_token)

        created = client.post(
            "/api/users",
            json={"username": "mod", "email": "mod@example.com", "password": "secret12", "role": "admin"},
            headers=headers,
        )
        assert created.status_code == 201
        new_id = created.json()["user"]["id"]
        assert created.json()["user"]["role"] == "admin"

        listed = client.get("/api/users", headers=headers).json()
        assert {u["username"] for u in listed} == {"root", "mod"}

        fetched = client.get(f"/api/users/{new_id}", headers=headers).json()
        assert fetched["email"] == "mod@example.com"

        updated = client.put(f"/api/users/{new_id}", json={"displayName": "Moderator"}, headers=headers)
        assert updated.status_code == 200
        assert updated.json()["user"]["displayName"] == "Moderator"

    def test_unknown_user_is_404(self, client):
        _, admin_token = make_user(client, "root", role=Role.ADMIN)
        headers = auth_header(admin_token)

        assert client.get("/api/users/not-a-uuid", headers=headers).status_code == 404
        assert client.put("/api/users/00000000-0000-4000-8000-000000000000/block", headers=headers).status_code == 404

    def test_admins_cannot_be_blocked_or_deleted(self, client):
        admin, admin_token = make_user(client, "root", role=Role.ADMIN)
        other, _ = make_user(client, "other_admin", role=Role.ADMIN)
        headers = auth_header(admin_token)

        blocked = client.put(f"/api/users/{other.id}/block", headers=headers)
        assert blocked.status_code == 400
        assert blocked.json()["detail"] == "Cannot block admin users."
        assert client.delete(f"/api/users/{other.id}", headers=headers).json()["detail"] == "Cannot delete admin users."

    def test_block_then_unblock(self, client):
        _, admin_token = make_user(client, "root", role=Role.ADMIN)
        player, player_token = make_user(client, "alice")
        headers = auth_header(admin_token)

        blocked = client.put(f"/api/users/{player.id}/block", headers=headers)
        assert blocked.json()["user"]["isBlocked"] is True
        assert blocked.json()["sessionsClosed"] == 0
        assert client.get("/api/users/me", headers=auth_header(player_token)).status_code == 403

        unblocked = client.put(f"/api/users/{player.id}/unblock", headers=headers)
        assert unblocked.json()["user"]["isBlocked"] is False
        assert client.get("/api/users/me", headers=auth_header(player_token)).status_code == 200

    def test_deleted_users_leave_listing(self, client):
        _, admin_token = make_user(client, "root", role=Role.ADMIN)
        player, _ = make_user(client, "alice")
        headers = auth_header(admin_token)

        client.delete(f"/api/users/{player.id}", headers=headers)

        assert [u["username"] for u in client.get("/api/users", headers=headers).json()] == ["root"]
