"""Breadth-first frontier queue with its visited-directory set."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
import threading
from typing import Iterable

from .types import CrawlTask
from .url import is_http_url


class CrawlInvariantError(RuntimeError):
    """Frontier state is corrupt; the session cannot safely continue."""


class EnqueueStatus(str, Enum):
    """Why a directory URL was or was not queued."""

    ENQUEUED = "enqueued"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_CLOSED = "skipped_closed"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """What happened to one directory URL offered to the frontier."""

    status: EnqueueStatus
    url: str | None = None
    item: CrawlTask | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """FIFO queue of directory tasks plus the set of directories already seen.

    - A URL is marked visited in the same critical section that enqueues it,
      so it can never be queued twice in one session.
    - Pops come out in non-decreasing depth order; anything else means the
      queue was tampered with and raises `CrawlInvariantError`.
    - A lock guards all state so status readers on other threads see
      consistent counts; the crawl loop itself is the only consumer.
    """

    def __init__(self) -> None:
        self._queue: deque[CrawlTask] = deque()
        self._lock = threading.Lock()

        self._seen_urls: set[str] = set()
        self._seed_url: str | None = None
        self._last_popped_depth = 0

        self._enqueued_count = 0
        self._dequeued_count = 0
        self._skipped_seen_count = 0
        self._skipped_invalid_count = 0

        self._closed = False

    def seed(self, url: str) -> EnqueueResult:
        """Seed frontier with the depth=0 start page."""

        result = self.push(url, depth=0, referrer=None)
        if result.accepted:
            with self._lock:
                self._seed_url = result.url
        return result

    def push(self, url: str, *, depth: int, referrer: str | None = None) -> EnqueueResult:
        """Mark `url` visited and enqueue it, unless it was seen before."""

        if depth < 0:
            raise CrawlInvariantError(f"Negative depth {depth} for {url}")

        if not url or not is_http_url(url):
            with self._lock:
                self._skipped_invalid_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_INVALID_URL, url=url)

        with self._lock:
            if self._closed:
                return EnqueueResult(EnqueueStatus.SKIPPED_CLOSED, url=url)

            if url in self._seen_urls:
                self._skipped_seen_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_SEEN, url=url)

            self._seen_urls.add(url)
            item = CrawlTask(url=url, depth=depth, referrer=referrer)
            self._queue.append(item)
            self._enqueued_count += 1

        return EnqueueResult(EnqueueStatus.ENQUEUED, url=url, item=item)

    def push_many(
        self,
        urls: Iterable[str],
        *,
        depth: int,
        referrer: str | None = None,
    ) -> list[EnqueueResult]:
        """Enqueue sibling directories in the given order."""

        return [self.push(url, depth=depth, referrer=referrer) for url in urls]

    def pop(self) -> CrawlTask | None:
        """Pop the oldest task, or `None` when the queue is empty."""

        with self._lock:
            if not self._queue:
                return None
            item = self._queue.popleft()

            if item.url not in self._seen_urls:
                raise CrawlInvariantError(f"Dequeued {item.url} which was never marked visited")
            if item.depth < self._last_popped_depth:
                raise CrawlInvariantError(
                    f"Dequeued depth {item.depth} after depth {self._last_popped_depth} ({item.url})"
                )

            self._last_popped_depth = item.depth
            self._dequeued_count += 1
        return item

    def close(self) -> None:
        """Refuse further pushes; queued tasks can still be popped."""

        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def qsize(self) -> int:
        with self._lock:
            return len(self._queue)

    def empty(self) -> bool:
        with self._lock:
            return not self._queue

    def is_visited(self, url: str) -> bool:
        with self._lock:
            return url in self._seen_urls

    def discovered_count(self) -> int:
        """Number of visited directories found below the seed page."""

        with self._lock:
            seeded = 1 if self._seed_url is not None else 0
            return len(self._seen_urls) - seeded

    def snapshot(self) -> dict[str, int | bool]:
        """Queue and visited-set sizes for the run summary."""

        with self._lock:
            return {
                "closed": self._closed,
                "queue_size": len(self._queue),
                "seen_urls": len(self._seen_urls),
                "enqueued": self._enqueued_count,
                "dequeued": self._dequeued_count,
                "skipped_seen": self._skipped_seen_count,
                "skipped_invalid": self._skipped_invalid_count,
            }


__all__ = [
    "CrawlInvariantError",
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
