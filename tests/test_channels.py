from banana_backend.channels import EVERYONE, ChannelRouter, Personal, RoleChannel
from banana_backend.constants import Role
from banana_backend.registry import Connection, ConnectionRegistry

from tests.helpers import FakeTransport, drain, make_identity


def _open(router: ChannelRouter, identity) -> Connection:
    conn = Connection(FakeTransport())
    conn.authenticate(identity)
    router.join_personal(conn)
    router.join_role(conn, Role.ADMIN)
    router.registry.register(identity.id, conn)
    return conn


def test_channel_names():
    assert str(Personal("42")) == "personal:42"
    assert str(RoleChannel(Role.ADMIN)) == "role:admin"
    assert str(EVERYONE) == "everyone"


def test_personal_channel_reaches_every_session_of_one_user():
    router = ChannelRouter(ConnectionRegistry())
    alice = make_identity("alice")
    a1, a2 = _open(router, alice), _open(router, alice)
    bob = _open(router, make_identity("bob"))

    assert router.send_to_user(alice.id, "player_score_update", {"score": 1}) == 2

    assert len(drain(a1)) == 1
    assert len(drain(a2)) == 1
    assert drain(bob) == []


def test_send_to_offline_user_is_a_silent_no_op():
    router = ChannelRouter(ConnectionRegistry())
    assert router.send_to_user("nobody", "player_score_update", {}) == 0


def test_role_channel_only_admits_matching_role():
    router = ChannelRouter(ConnectionRegistry())
    admin = _open(router, make_identity("root", role=Role.ADMIN))
    player = _open(router, make_identity("pleb"))

    assert RoleChannel(Role.ADMIN) in admin.joined_channels
    assert RoleChannel(Role.ADMIN) not in player.joined_channels
    assert router.join_role(player, Role.ADMIN) is False

    router.send_to_role(Role.ADMIN, "user_status_update", {"status": "online"})
    assert [e["type"] for e in drain(admin)] == ["user_status_update"]
    assert drain(player) == []


def test_broadcast_reaches_all_registered_connections():
    router = ChannelRouter(ConnectionRegistry())
    conns = [_open(router, make_identity(name)) for name in ("a", "b", "c")]
    stranger = Connection(FakeTransport())

    assert router.broadcast("rank_update", []) == 3
    for conn in conns:
        assert drain(conn) == [{"type": "rank_update", "data": []}]
    assert drain(stranger) == []


def test_leave_all_drops_membership_and_empty_channels():
    router = ChannelRouter(ConnectionRegistry())
    admin = _open(router, make_identity("root", role=Role.ADMIN))

    router.leave_all(admin)

    assert admin.joined_channels == set()
    assert router.members(Personal(admin.owner_user_id)) == []
    assert router.members(RoleChannel(Role.ADMIN)) == []


def test_send_to_closed_connection_is_dropped_quietly():
    router = ChannelRouter(ConnectionRegistry())
    alice = make_identity("alice")
    conn = _open(router, alice)
    conn.mark_closed()

    assert router.send_to_user(alice.id, "player_score_update", {}) == 0
