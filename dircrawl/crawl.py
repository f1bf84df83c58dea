"""CLI entrypoint for crawling a directory listing host.

Ctrl-C stops the crawl after the in-flight request and still exports
everything found so far; a second Ctrl-C abandons the export wait.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from dircrawl.crawler import (
    CrawlConfig,
    CrawlReport,
    CrawlStatus,
    Crawler,
    Fetcher,
    FetchResult,
    FileListExporter,
    StreamExporter,
    is_directory_listing,
    load_config_payload,
)


LOGGER = logging.getLogger("dircrawl")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recursively list every file reachable from a directory listing page.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--seed",
        type=str,
        default=None,
        help="Listing page to start from. Overrides config seed_url if provided.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=None,
        help="Directory for the exported file list, summary, and logs.",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Also write the sorted file list here; use '-' for stdout.",
    )

    parser.add_argument("--max_depth", type=int, default=None)
    parser.add_argument(
        "--crawl_delay_seconds",
        type=float,
        default=None,
        help="Pause between consecutive requests.",
    )
    parser.add_argument("--timeout_seconds", type=float, default=None)
    parser.add_argument("--retries", type=int, default=None)
    parser.add_argument("--retry_backoff_seconds", type=float, default=None)

    parser.add_argument("--user_agent", type=str, default=None)
    parser.add_argument(
        "--proxy_url",
        type=str,
        default=None,
        help="HTTP(S)/SOCKS proxy, e.g. socks5h://127.0.0.1:9050 for .onion hosts.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Crawl even if the seed page does not look like a directory listing.",
    )
    parser.add_argument(
        "--status_every",
        type=int,
        default=10,
        help="Log a progress line every N processed directories (0 disables).",
    )

    parser.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Append the full stats JSON to the stderr summary.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    payload: dict[str, Any] = {}
    if args.config is not None:
        payload = load_config_payload(args.config)

    if args.seed:
        payload["seed_url"] = args.seed

    if not payload.get("seed_url") and not payload.get("seeds"):
        raise ValueError("No seed provided. Use --config or --seed.")

    if args.output_dir is not None:
        payload["output_dir"] = str(args.output_dir)
    if args.max_depth is not None:
        payload["max_depth"] = args.max_depth
    if args.crawl_delay_seconds is not None:
        payload["crawl_delay_seconds"] = args.crawl_delay_seconds
    if args.timeout_seconds is not None:
        payload["timeout_seconds"] = args.timeout_seconds
    if args.retries is not None:
        payload["retries"] = args.retries
    if args.retry_backoff_seconds is not None:
        payload["retry_backoff_seconds"] = args.retry_backoff_seconds
    if args.user_agent is not None:
        payload["user_agent"] = args.user_agent
    if args.proxy_url is not None:
        payload["proxy_url"] = args.proxy_url
    if args.force:
        payload["require_listing"] = False

    return CrawlConfig.from_dict(payload)


def setup_logging(output_dir: Path, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "crawl.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    # Keep stdout free for `--output -`.
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # Connection pool chatter drowns out per-directory progress lines.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def check_seed_listing(fetcher: Fetcher, url: str) -> tuple[bool, FetchResult]:
    """Fetch the seed page once and run the listing heuristic on it."""

    result = fetcher.fetch(url, depth=0)
    if not result.ok:
        return False, result
    return is_directory_listing(result.text), result


class PrimedFetcher:
    """Answer the first request for an already-checked page from memory.

    Keeps the seed from being downloaded twice when the CLI checked it for
    listing markup before starting the crawl.
    """

    def __init__(self, fetcher: Fetcher, primed: FetchResult) -> None:
        self.fetcher = fetcher
        self._primed: FetchResult | None = primed

    def fetch(self, url: str, *, depth: int | None = None) -> FetchResult:
        primed = self._primed
        if primed is not None and url == primed.requested_url:
            self._primed = None
            return primed
        return self.fetcher.fetch(url, depth=depth)


class StatusLogger:
    """Progress callback that logs a status line every `every` directories."""

    def __init__(self, every: int) -> None:
        self.every = every
        self._calls = 0

    def __call__(self, status: CrawlStatus) -> None:
        self._calls += 1
        if self.every <= 0 or self._calls % self.every:
            return
        LOGGER.info(
            "Files: %d | Directories: %d | Queue: %d",
            status.file_count,
            status.dir_count,
            status.queue_length,
        )


class ReportExporter:
    """Write the file list/summary to disk and optionally to `--output`."""

    def __init__(self, output_dir: Path, output: str | None) -> None:
        self.file_exporter = FileListExporter(output_dir)
        self.output = output
        self.paths: dict[str, str] = {}

    def __call__(self, report: CrawlReport) -> dict[str, str]:
        self.paths = dict(self.file_exporter(report))

        if self.output == "-":
            StreamExporter(sys.stdout)(report)
        elif self.output:
            output_path = Path(self.output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with output_path.open("w", encoding="utf-8") as handle:
                StreamExporter(handle)(report)
            self.paths["output"] = str(output_path)

        return self.paths


def print_summary(
    report: CrawlReport,
    paths: dict[str, str],
    *,
    print_stats_json: bool,
) -> None:
    out = sys.stderr

    print(f"\n=== Crawl {report.reason.value} ===", file=out)
    print(f"seed: {report.seed_url}", file=out)
    print(f"files found: {report.file_count}", file=out)
    print(f"directories: {report.dir_count}", file=out)
    print(f"left in queue: {report.queue_length}", file=out)
    for name, path in sorted(paths.items()):
        print(f"{name}: {path}", file=out)

    print("\n--- Core Stats ---", file=out)
    for key in [
        "pages_fetched",
        "fetch_errors",
        "pages_empty",
        "directories_enqueued",
        "directories_skipped_visited",
        "skipped_depth",
        "links_rejected",
        "duration_seconds",
    ]:
        if key in report.stats:
            print(f"{key}: {report.stats[key]}", file=out)

    if print_stats_json:
        print("\n--- Full Stats JSON ---", file=out)
        print(json.dumps(report.stats, indent=2, sort_keys=True), file=out)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        config = build_config(args)
    except Exception as exc:
        logging.basicConfig(level=logging.INFO)
        logging.error("Failed to build config: %s", exc)
        return EXIT_USAGE

    output_dir = Path(config.output_dir)
    setup_logging(output_dir, verbose=args.verbose)

    exporter = ReportExporter(output_dir, args.output)

    with Fetcher(config) as fetcher:
        crawl_fetcher: Fetcher | PrimedFetcher = fetcher
        if config.require_listing:
            try:
                is_listing, seed_result = check_seed_listing(fetcher, config.seed_url)
            except KeyboardInterrupt:
                LOGGER.error("Interrupted while checking %s; nothing crawled", config.seed_url)
                return EXIT_INTERRUPTED
            if not seed_result.ok:
                LOGGER.error(
                    "Could not fetch seed %s: %s",
                    config.seed_url,
                    seed_result.error or f"HTTP status {seed_result.status_code}",
                )
                return EXIT_FAILURE
            if not is_listing:
                LOGGER.error(
                    "Not a directory listing: %s (use --force to crawl anyway)",
                    config.seed_url,
                )
                return EXIT_USAGE
            crawl_fetcher = PrimedFetcher(fetcher, seed_result)

        crawler = Crawler(
            config,
            fetcher=crawl_fetcher,
            exporter=exporter,
            progress_callback=StatusLogger(args.status_every),
        )

        try:
            crawler.start()
            while not crawler.wait(timeout=0.5):
                pass
        except KeyboardInterrupt:
            crawler.stop()
            try:
                crawler.wait()
            except KeyboardInterrupt:
                LOGGER.error("Interrupted again; abandoning export")
                return EXIT_INTERRUPTED

    report = crawler.last_report
    if report is None:
        LOGGER.error("Crawl finished without a report")
        return EXIT_FAILURE

    print_summary(report, exporter.paths, print_stats_json=args.print_stats_json)
    if crawler.last_export_error is not None:
        LOGGER.error("Results were not saved: %s", crawler.last_export_error)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
