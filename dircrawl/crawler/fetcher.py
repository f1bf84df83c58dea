"""HTTP(S) fetching of listing pages over a pooled `requests` session."""

from __future__ import annotations

import logging
import threading
import time
from urllib.parse import urljoin

import requests

from .config import CrawlConfig
from .types import FetchResult, is_text_content_type
from .url import is_http_url, is_same_host


LOGGER = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 429})
REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})
MAX_REDIRECTS = 10


def _failure(
    url: str,
    error: str,
    *,
    response: requests.Response | None = None,
    started: float | None = None,
) -> FetchResult:
    return FetchResult(
        requested_url=url,
        final_url=response.url if response is not None else None,
        status_code=response.status_code if response is not None else None,
        content_type=response.headers.get("Content-Type") if response is not None else None,
        body=None,
        elapsed_ms=_elapsed_ms(started),
        error=error,
    )


def _elapsed_ms(started: float | None) -> int | None:
    if started is None:
        return None
    return int((time.perf_counter() - started) * 1000)


def _redirect_location(response: requests.Response) -> str | None:
    """Absolute target of a redirect response, or None for anything else."""

    if response.status_code not in REDIRECT_STATUS_CODES:
        return None
    location = response.headers.get("Location")
    if not location:
        return None
    try:
        return urljoin(response.url, location)
    except ValueError as exc:
        raise requests.exceptions.InvalidURL(f"Bad redirect location {location!r}") from exc


def should_retry(result: FetchResult) -> bool:
    """Transport errors and throttling/server statuses are worth another try.

    Content errors (cross-host redirect, binary body) carry a status code and
    are final.
    """

    if result.error is not None:
        return result.status_code is None
    if result.status_code is None:
        return True
    return result.status_code in RETRYABLE_STATUS_CODES or result.status_code >= 500


class Fetcher:
    """Fetch listing pages for one crawl.

    `fetch` never raises for network trouble: timeouts, refused connections,
    non-2xx answers, non-text bodies and redirects off the seed host all come
    back as a `FetchResult` with `ok` False. Each thread gets its own
    `requests.Session`; `close` releases all of them.
    """

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config

        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def fetch(self, url: str, *, depth: int | None = None) -> FetchResult:
        """Fetch `url`, retrying up to `config.retries` extra times."""

        if not is_http_url(url):
            return _failure(url, "Invalid or unsupported URL")

        attempts = self.config.retries + 1
        result = _failure(url, "Fetcher is closed")
        for attempt in range(1, attempts + 1):
            if self.closed:
                return _failure(url, "Fetcher is closed")

            result = self._get(url)
            if not should_retry(result) or attempt == attempts:
                break

            LOGGER.debug(
                "Retrying %s (attempt %d/%d, depth=%s): %s",
                url,
                attempt + 1,
                attempts,
                depth,
                result.error or f"HTTP status {result.status_code}",
            )
            if self.config.retry_backoff_seconds > 0:
                time.sleep(self.config.retry_backoff_seconds * attempt)

        return result

    def close(self) -> None:
        with self._lock:
            self._closed = True
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _get(self, url: str) -> FetchResult:
        started = time.perf_counter()
        session = self._session()
        target = url
        response: requests.Response | None = None
        try:
            for _ in range(MAX_REDIRECTS + 1):
                with session.get(
                    target,
                    headers=self.config.headers(),
                    timeout=self.config.timeout_seconds,
                    proxies=self.config.proxies,
                    allow_redirects=False,
                    stream=True,
                ) as response:
                    location = _redirect_location(response)
                    if location is not None:
                        # Checked before the hop so no other host is ever contacted.
                        if not is_same_host(location, url):
                            return _failure(
                                url,
                                f"CrossHostRedirect: redirected to {location}",
                                response=response,
                                started=started,
                            )
                        target = location
                        continue

                    content_type = response.headers.get("Content-Type")
                    if not is_text_content_type(content_type):
                        return _failure(
                            url,
                            f"NonTextResponse: {content_type}",
                            response=response,
                            started=started,
                        )

                    return FetchResult(
                        requested_url=url,
                        final_url=target,
                        status_code=response.status_code,
                        content_type=content_type,
                        body=response.content or b"",
                        elapsed_ms=_elapsed_ms(started),
                    )
        except requests.RequestException as exc:
            return _failure(url, f"{exc.__class__.__name__}: {exc}", started=started)

        return _failure(
            url,
            f"TooManyRedirects: more than {MAX_REDIRECTS} hops (last {target})",
            response=response,
            started=started,
        )

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session


__all__ = ["Fetcher", "RETRYABLE_STATUS_CODES", "should_retry"]
