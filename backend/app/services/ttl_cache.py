import threading
import time
from typing import Callable

from .models import ChannelRecord


CACHE_TTL_SECONDS = 10


class StalenessCache:
    """
    Read-through copy of channel records, keyed by canonical id.

    Every invalidate bumps a per-id generation. A reader that captured the
    generation before reading the store passes it to put, and the write is
    dropped if a mutation invalidated the id in between.
    """

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, ChannelRecord]] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, channel_id: str) -> ChannelRecord | None:
        with self._lock:
            hit = self._entries.get(channel_id)
            if not hit:
                return None
            expires_at, record = hit
            if self._clock() >= expires_at:
                self._entries.pop(channel_id, None)
                return None
            return record

    def generation(self, channel_id: str) -> int:
        with self._lock:
            return self._generations.get(channel_id, 0)

    def put(self, channel_id: str, record: ChannelRecord, generation: int | None = None) -> bool:
        with self._lock:
            if generation is not None and generation != self._generations.get(channel_id, 0):
                return False
            self._entries[channel_id] = (self._clock() + self.ttl_seconds, record)
            return True

    def invalidate(self, channel_id: str) -> None:
        with self._lock:
            self._entries.pop(channel_id, None)
            self._generations[channel_id] = self._generations.get(channel_id, 0) + 1

    def clear(self) -> None:
        # Generations survive a clear so in-flight readers still see their write as stale.
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
