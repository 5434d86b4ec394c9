"""Redis backend implementing IStateStore."""

from __future__ import annotations

import redis

from escalade.core.exceptions import StateStoreError
from escalade.models.state import AttemptState

DEFAULT_TTL = 7 * 24 * 3600  # 1 week


class RedisStateStore:
    """IStateStore backed by Redis, one JSON document per task id.

    Every ``get`` returns a fresh copy; callers must ``put`` after mutating.
    Keys expire ``ttl`` seconds after their last write.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        key_prefix: str = "escalade:state:",
        ttl: int = DEFAULT_TTL,
    ) -> None:
        self._key_prefix = key_prefix
        self._ttl = ttl
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def _key(self, task_id: str) -> str:
        return f"{self._key_prefix}{task_id}"

    def get(self, task_id: str) -> AttemptState | None:
        try:
            raw = self._client.get(self._key(task_id))
        except Exception as exc:
            raise StateStoreError(f"Redis GET failed for task_id={task_id!r}: {exc}") from exc
        if raw is None:
            return None
        return AttemptState.model_validate_json(raw)

    def put(self, state: AttemptState) -> None:
        try:
            self._client.setex(self._key(state.task_id), self._ttl, state.model_dump_json())
        except Exception as exc:
            raise StateStoreError(f"Redis SETEX failed for task_id={state.task_id!r}: {exc}") from exc

    def delete(self, task_id: str) -> None:
        try:
            self._client.delete(self._key(task_id))
        except Exception as exc:
            raise StateStoreError(f"Redis DELETE failed for task_id={task_id!r}: {exc}") from exc

    def _keys(self) -> list[str]:
        try:
            return list(self._client.scan_iter(match=f"{self._key_prefix}*"))
        except Exception as exc:
            raise StateStoreError(f"Redis SCAN failed for prefix={self._key_prefix!r}: {exc}") from exc

    def all(self) -> list[AttemptState]:
        states: list[AttemptState] = []
        for key in self._keys():
            try:
                raw = self._client.get(key)
            except Exception as exc:
                raise StateStoreError(f"Redis GET failed for {key}: {exc}") from exc
            if raw is not None:
                states.append(AttemptState.model_validate_json(raw))
        return states

    def clear(self) -> None:
        keys = self._keys()
        if not keys:
            return
        try:
            self._client.delete(*keys)
        except Exception as exc:
            raise StateStoreError(f"Redis DELETE failed for {len(keys)} keys: {exc}") from exc
