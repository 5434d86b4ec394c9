"""Unit tests for RedisStateStore using fakeredis."""

from __future__ import annotations

from unittest.mock import patch

import fakeredis
import pytest
import redis

from escalade.core.exceptions import StateStoreError
from escalade.engine.ladder import EscalationLadder
from escalade.engine.tracker import AttemptTracker
from escalade.models.state import AttemptState
from escalade.models.task import Task
from escalade.persistence.redis_backend import RedisStateStore
from tests.fakes import always


@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest.fixture
def store(fake_server):
    with patch("redis.Redis", return_value=fakeredis.FakeRedis(server=fake_server, decode_responses=True)):
        return RedisStateStore(host="localhost", port=6379, db=0, ttl=60)


class TestGetPut:
    def test_returns_none_on_miss(self, store):
        assert store.get("nonexistent") is None

    def test_round_trips_state(self, store):
        state = AttemptState(task_id="t1", current_level=3, attempts={2: 2, 3: 1}, errors=["boom"], cost=12.5)
        store.put(state)
        loaded = store.get("t1")
        assert loaded == state
        assert loaded is not state

    def test_sets_ttl(self, store, fake_server):
        store.put(AttemptState(task_id="t1"))
        client = fakeredis.FakeRedis(server=fake_server, decode_responses=True)
        assert 0 < client.ttl("escalade:state:t1") <= 60


class TestDeleteAndScan:
    def test_delete_removes_state(self, store):
        store.put(AttemptState(task_id="gone"))
        store.delete("gone")
        assert store.get("gone") is None

    def test_noop_on_missing_key(self, store):
        store.delete("never_existed")  # should not raise

    def test_all_and_clear_only_touch_prefix(self, store, fake_server):
        client = fakeredis.FakeRedis(server=fake_server, decode_responses=True)
        client.set("unrelated", "x")
        store.put(AttemptState(task_id="a"))
        store.put(AttemptState(task_id="b"))

        assert sorted(s.task_id for s in store.all()) == ["a", "b"]
        store.clear()
        assert store.all() == []
        assert client.get("unrelated") == "x"


class TestErrorWrapping:
    def test_get_wraps_redis_error(self):
        s = RedisStateStore.__new__(RedisStateStore)
        s._key_prefix = "escalade:state:"
        s._client = None  # will cause AttributeError -> StateStoreError
        with pytest.raises(StateStoreError):
            s.get("k")

    def test_put_wraps_redis_error(self):
        s = RedisStateStore.__new__(RedisStateStore)
        s._key_prefix = "escalade:state:"
        s._ttl = 60
        s._client = None
        with pytest.raises(StateStoreError):
            s.put(AttemptState(task_id="k"))

    def test_all_wraps_get_error_after_scan(self, store):
        store.put(AttemptState(task_id="a"))
        with patch.object(store._client, "get", side_effect=redis.ConnectionError("gone")):
            with pytest.raises(StateStoreError, match="GET failed"):
                store.all()


class TestTrackerOverRedis:
    def test_mutations_persist(self, store):
        tracker = AttemptTracker(max_level=6, store=store)
        tracker.record_attempt("t", 2, "local-fix")
        tracker.record_error("t", "compile error")
        state = tracker.get_state("t")
        assert state.attempts == {2: 1}
        assert state.errors == ["compile error"]

    @pytest.mark.asyncio
    async def test_ladder_runs_on_shared_store(self, store):
        ladder = EscalationLadder(tracker=AttemptTracker(max_level=6, store=store))
        ladder.register_handler(2, always("retry", error="nope"))
        ladder.register_handler(3, always("success"))

        result = await ladder.process(Task(id="t"))

        assert result.level == 3
        persisted = store.get("t")
        assert persisted.resolved is True
        assert persisted.attempts == {2: 2, 3: 1}
