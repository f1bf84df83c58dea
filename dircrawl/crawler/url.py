"""Href classification and same-host helpers."""

from __future__ import annotations

from typing import Iterable, Iterator, Sequence
from urllib.parse import urljoin, urlsplit

from .types import ErrorKind, LinkClassification, LinkKind


DEFAULT_ALLOWED_SCHEMES = ("http", "https")
SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:")
SKIP_HREF_START_CHARS = ("#", "?")
PARENT_HREFS = {"..", "../"}
ABSOLUTE_HREF_PREFIXES = ("http://", "https://")
DIRECTORY_SUFFIX = "/"


def host_from_url(url: str) -> str:
    """Extract the lowercased hostname from URL.

    No `www.` folding or suffix matching is done: two URLs are on the same host
    only when their hostnames are identical.
    """

    try:
        return (urlsplit(url).hostname or "").strip().lower()
    except ValueError:
        return ""


def is_http_url(url: str, allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES) -> bool:
    """Return True if URL is absolute and has an allowed HTTP-like scheme."""

    try:
        parsed = urlsplit(url)
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    return parsed.scheme.lower() in {scheme.lower() for scheme in allowed_schemes}


def is_same_host(url: str, other_url: str) -> bool:
    """Return True when both URLs carry the same non-empty hostname."""

    host = host_from_url(url)
    return bool(host) and host == host_from_url(other_url)


def _is_ignored_href(candidate: str) -> bool:
    if not candidate or candidate in PARENT_HREFS:
        return True
    if candidate.startswith(SKIP_HREF_START_CHARS):
        return True
    lowered = candidate.lower()
    return any(lowered.startswith(prefix) for prefix in SKIP_HREF_PREFIXES)


def classify_href(href: str | None, base_url: str) -> LinkClassification:
    """Decide whether an href is a same-host directory, file, or neither.

    Directory-ness is read from the href text as written (trailing `/`), not
    from the resolved URL. Never raises; unusable links come back as
    `LinkKind.REJECT` with a reason.
    """

    candidate = (href or "").strip()

    if _is_ignored_href(candidate):
        return LinkClassification(LinkKind.IGNORE, href=candidate)

    if candidate.lower().startswith(ABSOLUTE_HREF_PREFIXES):
        return LinkClassification(
            LinkKind.REJECT,
            href=candidate,
            reason=ErrorKind.CROSS_HOST,
        )

    try:
        absolute = urljoin(base_url, candidate)
        parsed = urlsplit(absolute)
        resolved_host = (parsed.hostname or "").lower()
    except ValueError:
        return LinkClassification(
            LinkKind.REJECT,
            href=candidate,
            reason=ErrorKind.MALFORMED_LINK,
        )

    if parsed.scheme.lower() not in DEFAULT_ALLOWED_SCHEMES:
        return LinkClassification(
            LinkKind.REJECT,
            href=candidate,
            url=absolute,
            reason=ErrorKind.MALFORMED_LINK,
        )

    base_host = host_from_url(base_url)
    if not resolved_host or resolved_host != base_host:
        return LinkClassification(
            LinkKind.REJECT,
            href=candidate,
            url=absolute,
            reason=ErrorKind.CROSS_HOST,
        )

    kind = LinkKind.DIRECTORY if candidate.endswith(DIRECTORY_SUFFIX) else LinkKind.FILE
    return LinkClassification(kind, href=candidate, url=absolute)


def classify_hrefs(hrefs: Iterable[str | None], base_url: str) -> Iterator[LinkClassification]:
    """Classify many hrefs lazily, preserving input order."""

    for href in hrefs:
        yield classify_href(href, base_url)


__all__ = [
    "ABSOLUTE_HREF_PREFIXES",
    "DEFAULT_ALLOWED_SCHEMES",
    "DIRECTORY_SUFFIX",
    "PARENT_HREFS",
    "SKIP_HREF_PREFIXES",
    "classify_href",
    "classify_hrefs",
    "host_from_url",
    "is_http_url",
    "is_same_host",
]
