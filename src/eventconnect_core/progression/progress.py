"""
Achievement Progress Store.

Durable per-user document of progress counters, owned by the Progression
Engine. Backed by a KeyValueStore when one is given, else by memory.

Store failures are logged; a failed load counts as zero progress. Saves
for that user are skipped until a load succeeds again, so the stored
document is never replaced by counters built on a failed read.
"""

from __future__ import annotations

from ..core.errors import CorruptPayloadError, StoreError
from ..core.logging import get_logger
from ..store.protocol import KeyValueStore, make_key, read_json, write_json

logger = get_logger(__name__)

NAMESPACE = "progress"


class ProgressStore:
    """Per-user progress counters (name -> non-negative int)."""

    def __init__(self, store: KeyValueStore | None = None):
        self.store = store
        self._memory: dict[str, dict[str, int]] = {}
        self._unreadable: set[str] = set()

    async def load(self, user_id: str) -> dict[str, int]:
        if self.store is None:
            return dict(self._memory.get(user_id, {}))

        try:
            data = await read_json(self.store, make_key(NAMESPACE, user_id))
        except CorruptPayloadError as e:
            logger.warning("Discarding corrupt progress for %s: %s", user_id, e)
            data = None
        except StoreError as e:
            logger.warning("Could not load progress for %s: %s", user_id, e)
            self._unreadable.add(user_id)
            return {}
        self._unreadable.discard(user_id)

        if not isinstance(data, dict):
            return {}
        counters = data.get("counters", {})
        return {str(k): int(v) for k, v in counters.items() if isinstance(v, (int, float))}

    async def save(self, user_id: str, counters: dict[str, int]) -> None:
        if self.store is None:
            self._memory[user_id] = dict(counters)
            return
        if user_id in self._unreadable:
            logger.warning("Not saving progress for %s: stored progress could not be read", user_id)
            return

        try:
            await write_json(self.store, make_key(NAMESPACE, user_id), {"counters": counters})
        except StoreError as e:
            logger.warning("Could not save progress for %s: %s", user_id, e)
