import logging
import time
from collections import OrderedDict
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 5 * 60


class DedupService:
    """Time-windowed record of message ids already relayed.

    Entries are kept in insertion order, so expiry only ever looks at the
    front of the map. Not thread-safe: it must only be touched from the
    broker's message loop.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self._clock = clock
        self._seen: "OrderedDict[str, float]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._seen

    def should_process(self, message_id: Optional[str]) -> bool:
        # Nothing to key on, so let it through.
        if not message_id:
            return True

        now = self._clock()
        first_seen_at = self._seen.get(message_id)
        if first_seen_at is not None and now - first_seen_at < self.window_seconds:
            return False

        self._seen.pop(message_id, None)
        self._seen[message_id] = now
        self._purge(now)
        return True

    def _purge(self, now: float) -> None:
        cutoff = now - self.window_seconds
        purged = 0
        while self._seen:
            oldest_id, first_seen_at = next(iter(self._seen.items()))
            if first_seen_at > cutoff:
                break
            del self._seen[oldest_id]
            purged += 1
        if purged:
            logger.debug("Dedup window purged %s entries", purged, extra={"tracked": len(self._seen)})
