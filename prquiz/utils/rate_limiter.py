import time
from collections import defaultdict

from fastapi import HTTPException, Request


class SlidingWindowLimiter:
    """Per-client sliding window over request timestamps (process-local)."""

    def __init__(self, max_requests: int = 10, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: dict[str, list[float]] = defaultdict(list)

    def _prune(self, client: str, now: float) -> list[float]:
        cutoff = now - self.window_seconds
        hits = [ts for ts in self._hits[client] if ts > cutoff]
        self._hits[client] = hits
        return hits

    def allow(self, client: str) -> bool:
        now = time.monotonic()
        hits = self._prune(client, now)
        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True

    def retry_after(self, client: str) -> int:
        now = time.monotonic()
        hits = self._prune(client, now)
        if not hits:
            return 0
        return max(0, int(hits[0] + self.window_seconds - now) + 1)


async def limit_quiz_generation(request: Request) -> None:
    """FastAPI dependency throttling quiz generation per client IP."""
    limiter: SlidingWindowLimiter = request.app.state.generate_limiter
    client = request.client.host if request.client else "unknown"
    if not limiter.allow(client):
        seconds = limiter.retry_after(client)
        raise HTTPException(
            status_code=429,
            detail=f"Rate limited. Try again in {seconds} seconds.",
            headers={"Retry-After": str(seconds)},
        )
