"""Tests for TTLCache and ConversationStore."""

import pytest

from paperkb.common.conversation_store import ConversationStore
from paperkb.common.ttl_cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestTTLCache:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    def test_set_and_get(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("k", {"v": 1})
        assert cache.get("k") == {"v": 1}
        assert "k" in cache

    def test_expired_entry_removed_on_read(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("k", "v", ttl_minutes=1)
        clock.advance(61)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_evicts_expired_before_oldest(self, clock):
        cache = TTLCache(max_size=2, clock=clock)
        cache.set("short", 1, ttl_minutes=1)
        clock.advance(1)
        cache.set("long", 2, ttl_minutes=60)
        clock.advance(120)
        cache.set("new", 3)

        assert cache.get("short") is None
        assert cache.get("long") == 2
        assert cache.get("new") == 3

    def test_evicts_oldest_when_full(self, clock):
        cache = TTLCache(max_size=2, clock=clock)
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        clock.advance(1)
        cache.set("c", 3)

        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert len(cache) == 2

    def test_overwrite_does_not_evict(self, clock):
        cache = TTLCache(max_size=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_normalize_key(self):
        assert TTLCache.normalize_key("hybrid", "  Graph   Neural\tNetworks ") == "hybrid_graph_neural_networks"

    def test_stats_and_clear(self, clock):
        cache = TTLCache(max_size=5, clock=clock)
        cache.set("a", 1)
        assert cache.stats() == {"size": 1, "max_size": 5}
        cache.clear()
        assert cache.stats()["size"] == 0


class TestConversationStore:
    def test_history_is_most_recent_exchanges(self):
        store = ConversationStore()
        for i in range(1, 5):
            store.append("c1", f"q{i}", f"a{i}")

        history = store.get_history("c1", max_turns=3)
        assert [t.content for t in history] == ["q2", "a2", "q3", "a3", "q4", "a4"]
        assert history[0].render() == "user: q2"
        assert store.get_history("c1", max_turns=0) == []

    def test_history_shorter_than_window(self):
        store = ConversationStore()
        store.append("c1", "What is BERT?", "A language model.")
        store.append("c1", "Who wrote it?", "Devlin et al.")

        history = store.get_history("c1", max_turns=3)
        assert [t.role for t in history] == ["user", "assistant", "user", "assistant"]
        assert history[-1].content == "Devlin et al."

    def test_history_starts_on_a_question_after_capping(self):
        store = ConversationStore(max_messages=5)
        for i in range(3):
            store.append("c", f"q{i}", f"a{i}")

        history = store.get_history("c", max_turns=3)
        assert [t.content for t in history] == ["q1", "a1", "q2", "a2"]

    def test_unknown_or_empty_conversation(self):
        store = ConversationStore()
        assert store.get_history("missing") == []
        store.append("", "q", "a")
        assert len(store) == 0

    def test_oldest_session_evicted(self):
        store = ConversationStore(max_sessions=2)
        store.append("a", "q", "a")
        store.append("b", "q", "a")
        store.get_history("a")  # touch a
        store.append("c", "q", "a")

        assert store.get_history("b") == []
        assert store.get_history("a")
        assert store.get_history("c")

    def test_messages_capped(self):
        store = ConversationStore(max_messages=4)
        for i in range(5):
            store.append("c", f"q{i}", f"a{i}")
        assert store.stats() == {"sessions": 1, "messages": 4}

    def test_clear(self):
        store = ConversationStore()
        store.append("c", "q", "a")
        assert store.clear("c") is True
        assert store.clear("c") is False
