"""Breadth-first crawl scheduler and its session state machine.

Run lifecycle::

    idle --start--> running --frontier empty----------> done --export--> idle
                       |                                 ^
                       +--stop--> stopping --loop check--+

Every path into `done` goes through the exporter, so a stopped or aborted
session still hands over whatever it discovered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Any, Callable

from .config import CrawlConfig
from .exporter import Exporter, FileListExporter
from .fetcher import Fetcher
from .frontier import CrawlInvariantError, Frontier
from .parsers import ListingParser
from .stats import StatsCollector
from .types import (
    CompletionReason,
    CrawlReport,
    CrawlStatus,
    CrawlTask,
    ErrorKind,
    ErrorRecord,
    FetchResult,
    ListingPage,
    RunState,
    utc_now_iso,
)
from .url import is_http_url


LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[CrawlStatus], None]


class ExportError(RuntimeError):
    """The exporter raised; the session's report is still in `last_report`."""


@dataclass(slots=True)
class CrawlSession:
    """All mutable state of one crawl, from start request to export."""

    seed_url: str
    frontier: Frontier = field(default_factory=Frontier)
    discovered_files: set[str] = field(default_factory=set)
    errors: list[ErrorRecord] = field(default_factory=list)
    stats: StatsCollector = field(default_factory=StatsCollector)
    stop_event: threading.Event = field(default_factory=threading.Event)
    started_at: str = field(default_factory=utc_now_iso)
    _files_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add_files(self, files: set[str]) -> int:
        """Union `files` into the discovered set; return how many were new."""

        with self._files_lock:
            before = len(self.discovered_files)
            self.discovered_files.update(files)
            return len(self.discovered_files) - before

    def file_count(self) -> int:
        with self._files_lock:
            return len(self.discovered_files)

    def sorted_files(self) -> tuple[str, ...]:
        with self._files_lock:
            return tuple(sorted(self.discovered_files))

    def record_error(self, record: ErrorRecord) -> None:
        self.errors.append(record)
        self.stats.record_error(record.kind)


class Crawler:
    """Sequential breadth-first crawler over one host's directory listings.

    One request is in flight at a time and consecutive requests are separated
    by `config.crawl_delay_seconds`. A stop request is honoured only between
    iterations: the fetch and parse already under way always complete.

    `fetcher` is any object with `fetch(url, *, depth=None) -> FetchResult`;
    `exporter` is any callable taking a `CrawlReport`.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        fetcher: Any | None = None,
        parser: ListingParser | None = None,
        exporter: Exporter | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.config = config

        self.fetcher = fetcher or Fetcher(config)
        self.parser = parser or ListingParser()
        self.exporter = exporter if exporter is not None else FileListExporter(config.output_dir)
        self.progress_callback = progress_callback

        self._owns_fetcher = fetcher is None

        self._lock = threading.Lock()
        self._state = RunState.IDLE
        self._session: CrawlSession | None = None
        self._worker: threading.Thread | None = None
        self._idle = threading.Event()
        self._idle.set()

        self.last_report: CrawlReport | None = None
        self.last_export_error: Exception | None = None

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    @property
    def session(self) -> CrawlSession | None:
        with self._lock:
            return self._session

    def start(self, seed_url: str | None = None) -> bool:
        """Start a session on a background worker thread.

        Returns False (and does nothing) when a session is already active.
        """

        session = self._begin(seed_url)
        if session is None:
            return False

        worker = threading.Thread(
            target=self._run_in_worker,
            args=(session,),
            name="dircrawl-worker",
            daemon=True,
        )
        with self._lock:
            self._worker = worker
        worker.start()
        return True

    def run(self, seed_url: str | None = None) -> CrawlReport | None:
        """Run a session on the calling thread and return its report.

        Returns None when a session is already active. Raises `ExportError`
        when the exporter fails.
        """

        session = self._begin(seed_url)
        if session is None:
            return None
        return self._run_session(session)

    def stop(self) -> bool:
        """Request a stop; ignored unless the session is running."""

        with self._lock:
            if self._state != RunState.RUNNING or self._session is None:
                return False
            self._state = RunState.STOPPING
            self._session.stop_event.set()

        LOGGER.info("Stop requested, finishing current request...")
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the crawler is idle again. Returns False on timeout."""

        return self._idle.wait(timeout)

    def status(self) -> CrawlStatus:
        """Return a progress snapshot; safe to call from any thread."""

        with self._lock:
            state = self._state
            session = self._session

        if session is None:
            return CrawlStatus(file_count=0, dir_count=0, queue_length=0, state=state)

        return CrawlStatus(
            file_count=session.file_count(),
            dir_count=session.frontier.discovered_count(),
            queue_length=session.frontier.qsize(),
            state=state,
        )

    def close(self) -> None:
        """Release the fetcher if this crawler created it."""

        if self._owns_fetcher and hasattr(self.fetcher, "close"):
            self.fetcher.close()

    def __enter__(self) -> "Crawler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _begin(self, seed_url: str | None) -> CrawlSession | None:
        start_url = (seed_url or self.config.seed_url).strip()
        if not is_http_url(start_url):
            raise ValueError(f"Seed URL must be an absolute http(s) URL: {start_url!r}")

        with self._lock:
            if self._state != RunState.IDLE:
                LOGGER.debug("Start ignored: crawler is %s", self._state.value)
                return None

            session = CrawlSession(seed_url=start_url)
            session.stats.record_enqueue(session.frontier.seed(start_url))

            self._session = session
            self._state = RunState.RUNNING
            self.last_export_error = None
            self._idle.clear()

        LOGGER.info(
            "Starting crawl: seed=%s max_depth=%d delay=%.2fs",
            start_url,
            self.config.max_depth,
            self.config.crawl_delay_seconds,
        )
        return session

    def _run_in_worker(self, session: CrawlSession) -> None:
        try:
            self._run_session(session)
        except ExportError:
            # Already logged; callers read it from `last_export_error`.
            return

    def _run_session(self, session: CrawlSession) -> CrawlReport:
        try:
            reason = self._process_queue(session)
        except CrawlInvariantError as exc:
            LOGGER.error("Aborting crawl of %s: %s", session.seed_url, exc)
            session.record_error(
                ErrorRecord.from_exception(kind=ErrorKind.INTERNAL, url=session.seed_url, exc=exc)
            )
            reason = CompletionReason.ABORTED
        except Exception as exc:
            LOGGER.exception("Crawl loop failed for %s", session.seed_url)
            session.record_error(
                ErrorRecord.from_exception(kind=ErrorKind.INTERNAL, url=session.seed_url, exc=exc)
            )
            reason = CompletionReason.ABORTED

        return self._finish(session, reason)

    def _process_queue(self, session: CrawlSession) -> CompletionReason:
        frontier = session.frontier

        while True:
            if session.stop_event.is_set():
                return CompletionReason.STOPPED

            task = frontier.pop()
            if task is None:
                return CompletionReason.COMPLETED

            requested = self._crawl_task(session, task)
            self._notify_progress()

            if session.stop_event.is_set() or frontier.empty():
                continue

            if requested and self.config.crawl_delay_seconds > 0:
                # Returns early on stop; the loop check above then exits.
                session.stop_event.wait(self.config.crawl_delay_seconds)

    def _crawl_task(self, session: CrawlSession, task: CrawlTask) -> bool:
        """Process one task. Returns True when a request was issued."""

        if task.depth > self.config.max_depth:
            LOGGER.info("Max depth reached for %s", task.url)
            session.record_error(
                ErrorRecord(
                    kind=ErrorKind.DEPTH_EXCEEDED,
                    url=task.url,
                    message=f"depth {task.depth} > max_depth {self.config.max_depth}",
                    referrer=task.referrer,
                    depth=task.depth,
                )
            )
            return False

        LOGGER.info("Crawling [depth %d]: %s", task.depth, task.url)

        try:
            result = self.fetcher.fetch(task.url, depth=task.depth)
        except Exception as exc:
            LOGGER.warning("Error crawling %s: %s", task.url, exc)
            session.record_error(
                ErrorRecord.from_exception(
                    kind=ErrorKind.FETCH_FAILURE,
                    url=task.url,
                    exc=exc,
                    referrer=task.referrer,
                    depth=task.depth,
                )
            )
            return True

        session.stats.record_fetch(result, depth=task.depth)
        if not result.ok:
            self._record_fetch_error(session, task, result)
            return True

        base_url = result.final_url or task.url
        try:
            page = self.parser.parse(result.text, base_url)
        except Exception as exc:
            LOGGER.warning("Could not parse %s: %s", base_url, exc)
            session.record_error(
                ErrorRecord.from_exception(
                    kind=ErrorKind.INTERNAL,
                    url=base_url,
                    exc=exc,
                    referrer=task.referrer,
                    depth=task.depth,
                )
            )
            return True

        self._merge_page(session, task, page)
        return True

    def _merge_page(self, session: CrawlSession, task: CrawlTask, page: ListingPage) -> None:
        new_files = session.add_files(page.files)
        if LOGGER.isEnabledFor(logging.DEBUG):
            for file_url in sorted(page.files):
                LOGGER.debug("Found file: %s", file_url)

        for href, reason in page.rejected:
            session.record_error(
                ErrorRecord(
                    kind=reason,
                    url=href,
                    message=f"Rejected link on {page.url}",
                    referrer=page.url,
                    depth=task.depth,
                )
            )

        enqueue_results = session.frontier.push_many(
            sorted(page.directories),
            depth=task.depth + 1,
            referrer=page.url,
        )
        session.stats.record_enqueue_many(enqueue_results)
        session.stats.record_page(page, new_files=new_files)

    @staticmethod
    def _record_fetch_error(session: CrawlSession, task: CrawlTask, result: FetchResult) -> None:
        message = result.error or (
            f"HTTP status {result.status_code}" if result.status_code is not None else "Unknown fetch failure"
        )
        LOGGER.warning("Error crawling %s: %s", task.url, message)
        session.record_error(
            ErrorRecord(
                kind=ErrorKind.FETCH_FAILURE,
                url=task.url,
                message=message,
                referrer=task.referrer,
                depth=task.depth,
            )
        )

    def _notify_progress(self) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(self.status())
        except Exception:
            LOGGER.exception("Progress callback failed")

    def _finish(self, session: CrawlSession, reason: CompletionReason) -> CrawlReport:
        with self._lock:
            self._state = RunState.DONE
        session.frontier.close()

        session.stats.record_frontier_snapshot(session.frontier.snapshot())
        session.stats.finish()
        stats = session.stats.to_json()

        report = CrawlReport(
            seed_url=session.seed_url,
            files=session.sorted_files(),
            dir_count=session.frontier.discovered_count(),
            queue_length=session.frontier.qsize(),
            reason=reason,
            started_at=session.started_at,
            finished_at=str(stats.get("finished_at") or utc_now_iso()),
            stats=stats,
            errors=tuple(session.errors),
        )

        if reason == CompletionReason.STOPPED:
            LOGGER.info("Crawl stopped by user")
        elif reason == CompletionReason.COMPLETED:
            LOGGER.info("Crawl complete!")
        LOGGER.info("Found %d files in %d directories", report.file_count, report.dir_count)

        try:
            if self.exporter is not None:
                self.exporter(report)
        except Exception as exc:
            LOGGER.exception("Export failed for %s", session.seed_url)
            self.last_export_error = exc
            raise ExportError(f"Export of {report.file_count} files failed: {exc}") from exc
        finally:
            self.last_report = report
            with self._lock:
                self._state = RunState.IDLE
                self._worker = None
            self._idle.set()

        return report


__all__ = [
    "CrawlSession",
    "ExportError",
    "Crawler",
    "ProgressCallback",
]
