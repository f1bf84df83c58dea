"""Crawler package: config, shared types, and crawl engine components."""

from .config import CrawlConfig, load_config, load_config_payload, save_config
from .exporter import (
    Exporter,
    FileListExporter,
    StreamExporter,
    export_host_label,
    render_file_list,
    write_file_list,
)
from .fetcher import Fetcher
from .frontier import CrawlInvariantError, EnqueueResult, EnqueueStatus, Frontier
from .parsers import ListingParser, ListingParserConfig, is_directory_listing, parse_listing
from .scheduler import CrawlSession, Crawler, ExportError, ProgressCallback
from .stats import StatsCollector
from .types import (
    CompletionReason,
    CrawlReport,
    CrawlStats,
    CrawlStatus,
    CrawlTask,
    ErrorKind,
    ErrorRecord,
    FetchResult,
    LinkClassification,
    LinkKind,
    ListingPage,
    RunState,
    is_text_content_type,
    utc_now_iso,
)
from .url import classify_href, classify_hrefs, host_from_url, is_http_url, is_same_host

__all__ = [
    "CompletionReason",
    "CrawlConfig",
    "CrawlInvariantError",
    "CrawlReport",
    "CrawlSession",
    "CrawlStats",
    "CrawlStatus",
    "CrawlTask",
    "Crawler",
    "EnqueueResult",
    "EnqueueStatus",
    "ErrorKind",
    "ErrorRecord",
    "ExportError",
    "Exporter",
    "FetchResult",
    "Fetcher",
    "FileListExporter",
    "Frontier",
    "LinkClassification",
    "LinkKind",
    "ListingPage",
    "ListingParser",
    "ListingParserConfig",
    "ProgressCallback",
    "RunState",
    "StatsCollector",
    "StreamExporter",
    "classify_href",
    "classify_hrefs",
    "export_host_label",
    "host_from_url",
    "is_directory_listing",
    "is_http_url",
    "is_same_host",
    "is_text_content_type",
    "load_config",
    "load_config_payload",
    "parse_listing",
    "render_file_list",
    "save_config",
    "utc_now_iso",
    "write_file_list",
]
