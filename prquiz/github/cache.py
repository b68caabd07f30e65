import logging
import time
from collections import OrderedDict

from prquiz.github.api_client import PullRequestSource
from prquiz.models.schemas import PullRequestRecord

logger = logging.getLogger(__name__)


class CachingPullRequestSource:
    """Wraps a source with an in-memory TTL cache keyed by PR URL.

    Records are immutable, so a cached one can be handed out as-is.
    The oldest entry is evicted once ``max_size`` is reached.
    """

    def __init__(self, source: PullRequestSource, ttl_seconds: float = 3600, max_size: int = 100):
        self.source = source
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._cache: OrderedDict[str, tuple[PullRequestRecord, float]] = OrderedDict()

    async def fetch(self, pr_url: str) -> PullRequestRecord:
        key = pr_url.strip()
        now = time.monotonic()

        if key in self._cache:
            record, expires_at = self._cache[key]
            if now < expires_at:
                logger.debug("PR cache hit for %s", key)
                return record
            del self._cache[key]

        record = await self.source.fetch(pr_url)
        self._cache[key] = (record, now + self.ttl_seconds)
        while len(self._cache) > self.max_size:
            self._cache.popitem(last=False)
        return record

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
