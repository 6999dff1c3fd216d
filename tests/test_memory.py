"""
Tests for newsbot/memory/manager.py
Expiring session store and conversation history.
"""
from newsbot.memory import ConversationManager, ExpiringSessionStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_manager(ttl=60, max_messages=50):
    clock = FakeClock()
    store = ExpiringSessionStore(ttl_seconds=ttl, clock=clock)
    return ConversationManager(store, max_messages=max_messages), clock


class TestExpiringSessionStore:
    """Lazy expiry against an injected clock."""

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        store = ExpiringSessionStore(ttl_seconds=10, clock=clock)
        store.set("a", {"value": 1})

        clock.advance(9.9)
        assert store.get("a") == {"value": 1}

        clock.advance(1)
        assert store.get("a") is None

    def test_touch_restarts_ttl(self):
        clock = FakeClock()
        store = ExpiringSessionStore(ttl_seconds=10, clock=clock)
        store.set("a", {})

        clock.advance(8)
        assert store.touch("a") is True
        clock.advance(8)
        assert store.get("a") == {}

    def test_write_evicts_abandoned_entries(self):
        clock = FakeClock()
        store = ExpiringSessionStore(ttl_seconds=10, clock=clock)
        for key in ("a", "b", "c"):
            store.set(key, {})

        clock.advance(11)
        store.set("d", {})

        assert list(store._entries) == ["d"]
        assert list(store._expires_at) == ["d"]

    def test_touch_missing_key(self):
        assert ExpiringSessionStore().touch("missing") is False

    def test_purge_and_len(self):
        clock = FakeClock()
        store = ExpiringSessionStore(ttl_seconds=10, clock=clock)
        store.set("old", {})
        clock.advance(5)
        store.set("new", {})
        clock.advance(6)

        assert store.purge_expired() == 1
        assert store.keys() == ["new"]
        assert len(store) == 1

    def test_default_ttl(self):
        assert ExpiringSessionStore().ttl_seconds == 3600


class TestConversationManager:
    """Session lifecycle and message history."""

    def test_create_and_get_session(self):
        manager, _ = make_manager()
        session_id = manager.create_session()
        session = manager.get_session(session_id)

        assert session["session_id"] == session_id
        assert session["messages"] == []

    def test_empty_store_is_kept(self):
        store = ExpiringSessionStore()
        assert ConversationManager(store).store is store

    def test_add_message_creates_missing_session(self):
        manager, _ = make_manager()
        message = manager.add_message("custom-id", "user", "What is new in tech?")

        assert message["role"] == "user"
        assert "id" in message and "timestamp" in message
        assert manager.get_history("custom-id") == [message]

    def test_sources_stored_on_assistant_message(self):
        manager, _ = make_manager()
        sources = [{"title": "Climate Summit", "url": "https://example.com"}]
        message = manager.add_message("s", "assistant", "Answer", sources)
        assert message["sources"] == sources

    def test_history_is_capped(self):
        manager, _ = make_manager(max_messages=3)
        for number in range(5):
            manager.add_message("s", "user", f"message {number}")

        history = manager.get_history("s")
        assert [message["content"] for message in history] == [
            "message 2", "message 3", "message 4"
        ]

    def test_history_limit(self):
        manager, _ = make_manager()
        for number in range(30):
            manager.add_message("s", "user", f"message {number}")

        assert len(manager.get_history("s")) == 20
        assert manager.get_history("s", limit=2)[-1]["content"] == "message 29"

    def test_session_expires(self):
        manager, clock = make_manager(ttl=60)
        session_id = manager.create_session()

        clock.advance(61)

        assert manager.get_session(session_id) is None
        assert manager.get_history(session_id) == []
        assert manager.list_sessions() == []

    def test_extend_session(self):
        manager, clock = make_manager(ttl=60)
        session_id = manager.create_session()

        clock.advance(50)
        assert manager.extend_session(session_id) is True
        clock.advance(50)

        assert manager.get_session(session_id) is not None

    def test_clear_session(self):
        manager, _ = make_manager()
        session_id = manager.create_session()

        assert manager.clear_session(session_id) is True
        assert manager.clear_session(session_id) is False
        assert manager.get_session(session_id) is None
