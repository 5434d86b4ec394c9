"""Integration tests for RedisStateStore against a live Redis."""

from __future__ import annotations

from uuid import uuid4

import pytest

from escalade.engine.tracker import AttemptTracker
from escalade.persistence.redis_backend import RedisStateStore
from tests.integration.conftest import REDIS_HOST, skip_no_redis


@skip_no_redis
class TestRedisStateIntegration:
    @pytest.fixture
    def store(self):
        return RedisStateStore(host=REDIS_HOST, key_prefix=f"escalade:inttest:{uuid4().hex}:", ttl=60)

    def test_tracker_state_survives_new_tracker(self, store):
        AttemptTracker(max_level=6, store=store).record_attempt("t", 2, "local-fix")
        state = AttemptTracker(max_level=6, store=store).get_state("t")
        assert state.attempts == {2: 1}
        store.clear()
