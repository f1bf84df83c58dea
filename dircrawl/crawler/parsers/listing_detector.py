"""Heuristic check for "is this page an auto-generated directory listing"."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup


LISTING_TITLE_PHRASES = ("index of", "directory listing")
PARENT_DIRECTORY_PATTERN = re.compile(r"parent directory|\.\./", re.IGNORECASE)
MIN_TABLE_ANCHORS = 4


def _title_signal(soup: BeautifulSoup) -> bool:
    if soup.title is None:
        return False
    title = soup.title.get_text(" ", strip=True).lower()
    return any(phrase in title for phrase in LISTING_TITLE_PHRASES)


def _pre_anchor_signal(soup: BeautifulSoup) -> bool:
    # Apache/nginx autoindex output.
    return soup.select_one("pre a[href]") is not None


def _table_anchor_signal(soup: BeautifulSoup) -> bool:
    return len(soup.select("table a[href]")) >= MIN_TABLE_ANCHORS


def _parent_directory_signal(soup: BeautifulSoup) -> bool:
    body = soup.body if soup.body is not None else soup
    return PARENT_DIRECTORY_PATTERN.search(body.get_text(" ")) is not None


def is_directory_listing(html: str | bytes | BeautifulSoup) -> bool:
    """Return True when any listing signal fires.

    Signals are evaluated in order and short-circuit. This predicate has no
    side effects and does not decide what the parser extracts.
    """

    if isinstance(html, BeautifulSoup):
        soup = html
    else:
        if isinstance(html, bytes):
            html = html.decode("utf-8", errors="replace")
        soup = BeautifulSoup(html, "lxml")

    signals = (
        _title_signal,
        _pre_anchor_signal,
        _table_anchor_signal,
        _parent_directory_signal,
    )
    return any(signal(soup) for signal in signals)


__all__ = [
    "LISTING_TITLE_PHRASES",
    "MIN_TABLE_ANCHORS",
    "PARENT_DIRECTORY_PATTERN",
    "is_directory_listing",
]
