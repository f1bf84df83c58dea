"""Listing page parser: anchor discovery + href classification."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from bs4 import BeautifulSoup

from ..types import LinkKind, ListingPage
from ..url import classify_href


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ListingParserConfig:
    """Config for listing extraction."""

    markup_backend: str = "lxml"
    anchor_tags: tuple[str, ...] = ("a",)


class ListingParser:
    """Split the anchors of a listing page into files and sub-directories.

    `parse` never raises: unparseable markup or hrefs simply contribute
    nothing to the result.
    """

    def __init__(self, config: ListingParserConfig | None = None) -> None:
        self.config = config or ListingParserConfig()

    def parse(self, html: str | bytes, base_url: str) -> ListingPage:
        page = ListingPage(url=base_url)

        try:
            soup = BeautifulSoup(self._coerce_html_text(html), self.config.markup_backend)
            anchors = soup.find_all(list(self.config.anchor_tags))
        except Exception as exc:
            LOGGER.warning("Could not parse listing markup for %s: %s", base_url, exc)
            return page

        for anchor in anchors:
            href = anchor.get("href")
            if isinstance(href, list):
                href = " ".join(href)

            link = classify_href(href, base_url)
            if link.kind == LinkKind.FILE and link.url:
                page.files.add(link.url)
            elif link.kind == LinkKind.DIRECTORY and link.url:
                page.directories.add(link.url)
            elif link.kind == LinkKind.REJECT and link.reason is not None:
                LOGGER.debug("Rejected href %r on %s (%s)", link.href, base_url, link.reason.value)
                page.rejected.append((link.href, link.reason))
            else:
                page.ignored_count += 1

        return page

    @staticmethod
    def _coerce_html_text(html: str | bytes) -> str:
        if isinstance(html, bytes):
            return html.decode("utf-8", errors="replace")
        return html


def parse_listing(html: str | bytes, base_url: str) -> ListingPage:
    """Parse with the default parser configuration."""

    return ListingParser().parse(html, base_url)


__all__ = [
    "ListingParser",
    "ListingParserConfig",
    "parse_listing",
]
