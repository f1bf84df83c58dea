"""Default values shared by crawler config, fetcher, and CLI."""

from __future__ import annotations


DEFAULT_MAX_DEPTH = 50
DEFAULT_CRAWL_DELAY_SECONDS = 0.5

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 0
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0

DEFAULT_USER_AGENT = "dircrawl/0.1 (+directory listing crawler)"
DEFAULT_HTTP_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,text/plain;q=0.9,*/*;q=0.5",
    "Accept-Language": "en-US,en;q=0.8",
}
DEFAULT_PROXY_URL: str | None = None

DEFAULT_OUTPUT_DIR = "crawl_output"
DEFAULT_REQUIRE_LISTING = True

SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
JSON_INDENT = 2

# Content types accepted as listing bodies; anything else is a dead end.
TEXT_CONTENT_TYPE_PREFIXES = ("text/",)
TEXT_CONTENT_TYPES = {
    "application/xhtml+xml",
    "application/xml",
}
