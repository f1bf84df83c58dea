"""Core type definitions for the directory crawler.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .constants import TEXT_CONTENT_TYPE_PREFIXES, TEXT_CONTENT_TYPES


class LinkKind(str, Enum):
    """Classification outcome for one anchor href."""

    IGNORE = "ignore"
    DIRECTORY = "directory"
    FILE = "file"
    REJECT = "reject"


class ErrorKind(str, Enum):
    """Error taxonomy used in reports and logs.

    Everything except `INTERNAL` is a per-item failure that never ends a run.
    """

    MALFORMED_LINK = "malformed_link"
    CROSS_HOST = "cross_host"
    FETCH_FAILURE = "fetch_failure"
    DEPTH_EXCEEDED = "depth_exceeded"
    INTERNAL = "internal"


class RunState(str, Enum):
    """Lifecycle of one crawl session."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    DONE = "done"


class CompletionReason(str, Enum):
    """Why a session reached its terminal transition."""

    COMPLETED = "completed"
    STOPPED = "stopped"
    ABORTED = "aborted"


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for reports."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def is_text_content_type(content_type: str | None) -> bool:
    """Return True when a response content type can hold a listing page.

    A missing header is accepted; many bare listing servers omit it.
    """

    normalized = (content_type or "").split(";", maxsplit=1)[0].strip().lower()
    if not normalized:
        return True
    if normalized in TEXT_CONTENT_TYPES:
        return True
    return normalized.startswith(TEXT_CONTENT_TYPE_PREFIXES)


@dataclass(frozen=True, slots=True)
class LinkClassification:
    """Result of classifying one href against the page it appeared on."""

    kind: LinkKind
    href: str
    url: str | None = None
    reason: ErrorKind | None = None


@dataclass(frozen=True, slots=True)
class CrawlTask:
    """A directory waiting on the frontier."""

    url: str
    depth: int
    referrer: str | None = None


@dataclass(slots=True)
class FetchResult:
    """Result of attempting to download one listing page."""

    requested_url: str
    final_url: str | None
    status_code: int | None
    content_type: str | None
    body: bytes | None
    fetched_at: str = field(default_factory=utc_now_iso)
    elapsed_ms: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return (
            self.error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
            and self.body is not None
        )

    @property
    def content_length(self) -> int | None:
        return None if self.body is None else len(self.body)

    @property
    def text(self) -> str:
        if self.body is None:
            return ""
        return self.body.decode("utf-8", errors="replace")


@dataclass(slots=True)
class ListingPage:
    """Files and sub-directories found on one listing page."""

    url: str
    files: set[str] = field(default_factory=set)
    directories: set[str] = field(default_factory=set)
    rejected: list[tuple[str, ErrorKind]] = field(default_factory=list)
    ignored_count: int = 0

    @property
    def links_found(self) -> int:
        return len(self.files) + len(self.directories)

    @property
    def empty(self) -> bool:
        return not self.files and not self.directories


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """One non-fatal (or fatal) problem observed during a crawl."""

    kind: ErrorKind
    url: str
    message: str
    referrer: str | None = None
    depth: int | None = None
    created_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_exception(
        cls,
        *,
        kind: ErrorKind,
        url: str,
        exc: Exception,
        **kwargs: Any,
    ) -> "ErrorRecord":
        return cls(
            kind=kind,
            url=url,
            message=f"{exc.__class__.__name__}: {exc}",
            **kwargs,
        )

    def to_json(self) -> JSONDict:
        return {
            "kind": self.kind.value,
            "url": self.url,
            "message": self.message,
            "referrer": self.referrer,
            "depth": self.depth,
            "created_at": self.created_at,
        }


@dataclass(frozen=True, slots=True)
class CrawlStatus:
    """Read-only progress snapshot for status displays."""

    file_count: int
    dir_count: int
    queue_length: int
    state: RunState


@dataclass(slots=True)
class CrawlStats:
    """Headline counters of one crawl session."""

    pages_fetched: int = 0
    fetch_errors: int = 0
    pages_empty: int = 0
    files_found: int = 0
    directories_enqueued: int = 0
    directories_skipped_visited: int = 0
    skipped_depth: int = 0
    links_ignored: int = 0
    links_rejected: int = 0

    started_at: str = field(default_factory=utc_now_iso)
    finished_at: str | None = None

    def finish(self) -> None:
        self.finished_at = utc_now_iso()

    def to_json(self) -> JSONDict:
        return {
            "pages_fetched": self.pages_fetched,
            "fetch_errors": self.fetch_errors,
            "pages_empty": self.pages_empty,
            "files_found": self.files_found,
            "directories_enqueued": self.directories_enqueued,
            "directories_skipped_visited": self.directories_skipped_visited,
            "skipped_depth": self.skipped_depth,
            "links_ignored": self.links_ignored,
            "links_rejected": self.links_rejected,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


@dataclass(frozen=True, slots=True)
class CrawlReport:
    """Everything handed to an exporter when a session ends."""

    seed_url: str
    files: tuple[str, ...]
    dir_count: int
    queue_length: int
    reason: CompletionReason
    started_at: str
    finished_at: str
    stats: dict[str, Any] = field(default_factory=dict)
    errors: tuple[ErrorRecord, ...] = ()

    @property
    def file_count(self) -> int:
        return len(self.files)

    def to_json(self) -> JSONDict:
        return {
            "seed_url": self.seed_url,
            "file_count": self.file_count,
            "dir_count": self.dir_count,
            "queue_length": self.queue_length,
            "reason": self.reason.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "stats": self.stats,
            "errors": [error.to_json() for error in self.errors],
        }


__all__ = [
    "CompletionReason",
    "CrawlReport",
    "CrawlStats",
    "CrawlStatus",
    "CrawlTask",
    "ErrorKind",
    "ErrorRecord",
    "FetchResult",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "LinkClassification",
    "LinkKind",
    "ListingPage",
    "RunState",
    "is_text_content_type",
    "utc_now_iso",
]
