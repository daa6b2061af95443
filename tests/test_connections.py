from broadside.common import PacketType
from broadside.connections import ConnectionManager

from conftest import FakeTransport


def test_send_reaches_registered_transport():
    cm = ConnectionManager()
    t = FakeTransport()
    cm.register("s", "p", t)
    assert cm.send("s", "p", {"type": "x"})
    assert t.sent == [({"type": "x"}, PacketType.GAME)]


def test_send_without_transport_is_not_fatal():
    assert ConnectionManager().send("s", "p", {"type": "x"}) is False


def test_register_supersedes_and_closes_previous():
    cm = ConnectionManager()
    old, new = FakeTransport(), FakeTransport()
    cm.register("s", "p", old)
    cm.register("s", "p", new)
    assert old.closed and not new.closed
    assert cm.get("s", "p") is new
    assert cm.players("s") == ["p"]


def test_stale_remove_keeps_successor():
    cm = ConnectionManager()
    old, new = FakeTransport(), FakeTransport()
    cm.register("s", "p", old)
    cm.register("s", "p", new)
    assert cm.remove("s", "p", old) is False
    assert cm.get("s", "p") is new
    assert cm.remove("s", "p", new) is True
    assert cm.get("s", "p") is None


def test_failed_send_drops_route():
    cm = ConnectionManager()
    t = FakeTransport()
    cm.register("s", "p", t)
    t.closed = True
    assert cm.send("s", "p", {"type": "x"}) is False
    assert cm.get("s", "p") is None


def test_close_session_only_touches_that_session():
    cm = ConnectionManager()
    a, b, other = FakeTransport(), FakeTransport(), FakeTransport()
    cm.register("s", "a", a)
    cm.register("s", "b", b)
    cm.register("t", "a", other)
    cm.close_session("s")
    assert a.closed and b.closed and not other.closed
    assert cm.players("s") == []
    assert cm.players("t") == ["a"]
