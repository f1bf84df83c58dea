"""Run counters for the crawl summary."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
import threading
from typing import Any, Iterable, Mapping

from .frontier import EnqueueResult, EnqueueStatus
from .types import CrawlStats, ErrorKind, FetchResult, ListingPage


class StatsCollector:
    """Accumulates per-session counters.

    The crawl loop writes; `to_json` may be called from another thread while
    the loop is still running.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._core = CrawlStats()

        self._pages_by_depth: Counter[int] = Counter()
        self._http_statuses: Counter[int] = Counter()
        self._fetch_error_types: Counter[str] = Counter()
        self._error_kinds: Counter[str] = Counter()
        self._enqueue_skips: Counter[str] = Counter()

        self._fetch_ms_total = 0
        self._fetch_ms_count = 0
        self._bytes_fetched = 0
        self._frontier_snapshot: dict[str, int | bool] = {}

    def record_enqueue(self, outcome: EnqueueResult | EnqueueStatus) -> None:
        status = outcome.status if isinstance(outcome, EnqueueResult) else outcome

        with self._lock:
            if status == EnqueueStatus.ENQUEUED:
                self._core.directories_enqueued += 1
            elif status == EnqueueStatus.SKIPPED_SEEN:
                self._core.directories_skipped_visited += 1
            else:
                self._enqueue_skips[status.value] += 1

    def record_enqueue_many(self, outcomes: Iterable[EnqueueResult]) -> None:
        for outcome in outcomes:
            self.record_enqueue(outcome)

    def record_frontier_snapshot(self, snapshot: Mapping[str, int | bool]) -> None:
        with self._lock:
            self._frontier_snapshot = dict(snapshot)

    def record_fetch(self, result: FetchResult, *, depth: int | None = None) -> None:
        """Count one fetch attempt, successful or not."""

        with self._lock:
            if result.ok:
                self._core.pages_fetched += 1
                if depth is not None:
                    self._pages_by_depth[depth] += 1
            else:
                self._core.fetch_errors += 1

            if result.status_code is not None:
                self._http_statuses[result.status_code] += 1
            if result.error:
                # Errors are formatted "ExceptionName: detail".
                self._fetch_error_types[result.error.partition(":")[0].strip() or "Unknown"] += 1
            if result.elapsed_ms is not None:
                self._fetch_ms_total += result.elapsed_ms
                self._fetch_ms_count += 1
            if result.content_length:
                self._bytes_fetched += result.content_length

    def record_page(self, page: ListingPage, *, new_files: int) -> None:
        with self._lock:
            if page.empty:
                self._core.pages_empty += 1
            self._core.files_found += max(0, new_files)
            self._core.links_ignored += page.ignored_count
            self._core.links_rejected += len(page.rejected)

    def record_error(self, kind: ErrorKind) -> None:
        with self._lock:
            self._error_kinds[kind.value] += 1
            if kind == ErrorKind.DEPTH_EXCEEDED:
                self._core.skipped_depth += 1

    def finish(self) -> None:
        with self._lock:
            self._core.finish()

    def to_json(self) -> dict[str, Any]:
        """Core counters plus breakdowns, as written to the run summary."""

        with self._lock:
            started = _parse_iso_utc(self._core.started_at)
            ended = _parse_iso_utc(self._core.finished_at)
            duration = max(0.0, (ended - started).total_seconds())

            return {
                **self._core.to_json(),
                "duration_seconds": duration,
                "max_depth_reached": max(self._pages_by_depth, default=0),
                "pages_by_depth": {str(depth): n for depth, n in sorted(self._pages_by_depth.items())},
                "http_status_counts": {str(code): n for code, n in sorted(self._http_statuses.items())},
                "fetch_error_types": dict(self._fetch_error_types),
                "avg_fetch_ms": (
                    self._fetch_ms_total / self._fetch_ms_count if self._fetch_ms_count else 0.0
                ),
                "bytes_fetched": self._bytes_fetched,
                "errors": dict(self._error_kinds),
                "enqueue_skips": dict(self._enqueue_skips),
                "frontier": dict(self._frontier_snapshot),
            }


def _parse_iso_utc(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["StatsCollector"]
