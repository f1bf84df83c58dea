"""
Crawl scheduler scenarios: traversal order, dedup, depth bound, stop/export.
"""

import threading
import time
import unittest

import requests

from dircrawl.crawler import (
    CompletionReason,
    CrawlConfig,
    CrawlTask,
    Crawler,
    ErrorKind,
    ExportError,
    RunState,
)

from fakes import SEED, FakeFetcher, RecordingExporter, listing_html


def make_config(**overrides):
    payload = {"seed_url": SEED, "crawl_delay_seconds": 0.0, "output_dir": "unused"}
    payload.update(overrides)
    return CrawlConfig(**payload)


SCENARIO_PAGES = {
    SEED: listing_html("f1", "d1/"),
    SEED + "d1/": listing_html("f2", "sub/", title="Index of /a/d1"),
    SEED + "d1/sub/": listing_html(title="Index of /a/d1/sub"),
}


class TestCrawlerScenarios(unittest.TestCase):
    def test_end_to_end_listing(self):
        fetcher = FakeFetcher(SCENARIO_PAGES)
        exporter = RecordingExporter()
        crawler = Crawler(make_config(), fetcher=fetcher, exporter=exporter)

        report = crawler.run()

        self.assertEqual(report.files, ("http://x.onion/a/d1/f2", "http://x.onion/a/f1"))
        self.assertEqual(report.file_count, 2)
        self.assertEqual(report.dir_count, 2)
        self.assertEqual(report.queue_length, 0)
        self.assertEqual(report.reason, CompletionReason.COMPLETED)
        self.assertEqual(exporter.reports, [report])
        self.assertEqual(fetcher.fetched, [SEED, SEED + "d1/", SEED + "d1/sub/"])
        self.assertEqual(crawler.state, RunState.IDLE)
        self.assertIs(crawler.last_report, report)

    def test_state_is_done_while_exporting(self):
        seen = []
        crawler = Crawler(make_config(), fetcher=FakeFetcher(SCENARIO_PAGES), exporter=None)
        crawler.exporter = RecordingExporter(on_export=lambda report: seen.append(crawler.state))

        crawler.run()

        self.assertEqual(seen, [RunState.DONE])
        self.assertEqual(crawler.state, RunState.IDLE)

    def test_directory_reachable_from_two_parents_is_fetched_once(self):
        pages = {
            SEED: listing_html("p1/", "p2/"),
            SEED + "p1/": listing_html("../shared/", "x.txt"),
            SEED + "p2/": listing_html("../shared/", "/a/shared/"),
            SEED + "shared/": listing_html("s.txt", "../p1/"),
        }
        fetcher = FakeFetcher(pages)
        report = Crawler(make_config(), fetcher=fetcher, exporter=RecordingExporter()).run()

        self.assertEqual(fetcher.fetched.count(SEED + "shared/"), 1)
        self.assertEqual(len(fetcher.fetched), len(set(fetcher.fetched)))
        self.assertEqual(report.files, (SEED + "p1/x.txt", SEED + "shared/s.txt"))
        self.assertEqual(report.stats["directories_skipped_visited"], 2)

    def test_breadth_first_order(self):
        pages = {
            SEED: listing_html("a/", "b/"),
            SEED + "a/": listing_html("x/"),
            SEED + "b/": listing_html("y/"),
            SEED + "a/x/": listing_html("deep/"),
            SEED + "b/y/": listing_html(),
            SEED + "a/x/deep/": listing_html(),
        }
        fetcher = FakeFetcher(pages)
        Crawler(make_config(), fetcher=fetcher, exporter=RecordingExporter()).run()

        depths = [url[len(SEED):].count("/") for url in fetcher.fetched]
        self.assertEqual(depths, sorted(depths))
        self.assertEqual(
            fetcher.fetched,
            [SEED, SEED + "a/", SEED + "b/", SEED + "a/x/", SEED + "b/y/", SEED + "a/x/deep/"],
        )

    def test_depth_bound_skips_fetch(self):
        pages = {
            SEED: listing_html("a/"),
            SEED + "a/": listing_html("b/", "a.txt"),
            SEED + "a/b/": listing_html("b.txt"),
        }
        fetcher = FakeFetcher(pages)
        report = Crawler(make_config(max_depth=1), fetcher=fetcher, exporter=RecordingExporter()).run()

        self.assertNotIn(SEED + "a/b/", fetcher.fetched)
        self.assertEqual(report.files, (SEED + "a/a.txt",))
        self.assertEqual(report.reason, CompletionReason.COMPLETED)
        depth_errors = [error for error in report.errors if error.kind == ErrorKind.DEPTH_EXCEEDED]
        self.assertEqual([error.url for error in depth_errors], [SEED + "a/b/"])
        self.assertEqual(report.stats["skipped_depth"], 1)

    def test_max_depth_zero_only_reads_seed(self):
        fetcher = FakeFetcher(SCENARIO_PAGES)
        report = Crawler(make_config(max_depth=0), fetcher=fetcher, exporter=RecordingExporter()).run()

        self.assertEqual(fetcher.fetched, [SEED])
        self.assertEqual(report.files, (SEED + "f1",))

    def test_stop_after_seed_exports_seed_files(self):
        crawler = Crawler(make_config(), exporter=RecordingExporter())

        def stop_on_seed(url):
            if url == SEED:
                self.assertTrue(crawler.stop())

        fetcher = FakeFetcher(SCENARIO_PAGES, on_fetch=stop_on_seed)
        crawler.fetcher = fetcher

        report = crawler.run()

        self.assertEqual(fetcher.fetched, [SEED])
        self.assertEqual(report.reason, CompletionReason.STOPPED)
        self.assertEqual(report.files, (SEED + "f1",))
        self.assertEqual(report.queue_length, 1)
        self.assertEqual(report.dir_count, 1)
        self.assertEqual(len(crawler.exporter.reports), 1)
        self.assertEqual(crawler.state, RunState.IDLE)

    def test_fetch_failures_are_dead_ends(self):
        pages = {
            SEED: listing_html("missing/", "boom/", "ok/", "root.txt"),
            SEED + "ok/": listing_html("deep.txt"),
        }
        fetcher = FakeFetcher(pages, failures={SEED + "boom/": requests.ConnectionError("refused")})
        report = Crawler(make_config(), fetcher=fetcher, exporter=RecordingExporter()).run()

        self.assertEqual(report.reason, CompletionReason.COMPLETED)
        self.assertEqual(report.files, (SEED + "ok/deep.txt", SEED + "root.txt"))
        failures = {error.url: error.message for error in report.errors if error.kind == ErrorKind.FETCH_FAILURE}
        self.assertEqual(failures[SEED + "missing/"], "HTTP status 404")
        self.assertIn("refused", failures[SEED + "boom/"])

    def test_seed_fetch_failure_still_exports(self):
        exporter = RecordingExporter()
        report = Crawler(make_config(), fetcher=FakeFetcher({}), exporter=exporter).run()

        self.assertEqual(report.files, ())
        self.assertEqual(report.reason, CompletionReason.COMPLETED)
        self.assertEqual(len(exporter.reports), 1)

    def test_links_resolve_against_final_url(self):
        pages = {SEED: listing_html("f.txt")}
        fetcher = FakeFetcher(pages, final_urls={SEED: "http://x.onion/moved/"})
        report = Crawler(make_config(), fetcher=fetcher, exporter=RecordingExporter()).run()

        self.assertEqual(report.files, ("http://x.onion/moved/f.txt",))

    def test_rejected_links_are_reported_not_followed(self):
        pages = {SEED: listing_html("https://other.onion/", "//evil.onion/x/", "ok.txt")}
        fetcher = FakeFetcher(pages)
        report = Crawler(make_config(), fetcher=fetcher, exporter=RecordingExporter()).run()

        self.assertEqual(fetcher.fetched, [SEED])
        kinds = sorted(error.kind.value for error in report.errors)
        self.assertEqual(kinds, ["cross_host", "cross_host"])

    def test_invariant_violation_aborts_and_exports(self):
        crawler = Crawler(make_config(), exporter=RecordingExporter())

        def corrupt(url):
            if url == SEED:
                crawler.session.frontier._queue.append(CrawlTask(url=SEED + "ghost/", depth=1))

        crawler.fetcher = FakeFetcher(SCENARIO_PAGES, on_fetch=corrupt)
        report = crawler.run()

        self.assertEqual(report.reason, CompletionReason.ABORTED)
        self.assertEqual(report.files, (SEED + "f1",))
        self.assertEqual(report.errors[-1].kind, ErrorKind.INTERNAL)
        self.assertEqual(len(crawler.exporter.reports), 1)
        self.assertEqual(crawler.state, RunState.IDLE)

    def test_file_count_never_decreases(self):
        counts = []
        crawler = Crawler(
            make_config(),
            fetcher=FakeFetcher(SCENARIO_PAGES),
            exporter=RecordingExporter(),
            progress_callback=lambda status: counts.append(status.file_count),
        )
        report = crawler.run()

        self.assertEqual(counts, sorted(counts))
        self.assertLessEqual(counts[-1], report.file_count)

    def test_progress_callback_errors_do_not_abort(self):
        def broken(status):
            raise RuntimeError("display gone")

        crawler = Crawler(
            make_config(),
            fetcher=FakeFetcher(SCENARIO_PAGES),
            exporter=RecordingExporter(),
            progress_callback=broken,
        )
        report = crawler.run()
        self.assertEqual(report.reason, CompletionReason.COMPLETED)
        self.assertEqual(report.file_count, 2)

    def test_second_run_starts_from_scratch(self):
        fetcher = FakeFetcher(SCENARIO_PAGES)
        exporter = RecordingExporter()
        crawler = Crawler(make_config(), fetcher=fetcher, exporter=exporter)

        first = crawler.run()
        second = crawler.run()

        self.assertEqual(first.files, second.files)
        self.assertEqual(fetcher.fetched.count(SEED), 2)
        self.assertEqual(len(exporter.reports), 2)

    def test_export_failure_raises_and_is_recorded(self):
        def fail(report):
            raise OSError("disk full")

        crawler = Crawler(
            make_config(),
            fetcher=FakeFetcher(SCENARIO_PAGES),
            exporter=RecordingExporter(on_export=fail),
        )

        with self.assertRaises(ExportError):
            crawler.run()

        self.assertIsInstance(crawler.last_export_error, OSError)
        self.assertEqual(crawler.last_report.file_count, 2)
        self.assertEqual(crawler.state, RunState.IDLE)

        crawler.exporter = RecordingExporter()
        crawler.run()
        self.assertIsNone(crawler.last_export_error)

    def test_stop_when_idle_is_ignored(self):
        crawler = Crawler(make_config(), fetcher=FakeFetcher({}), exporter=RecordingExporter())
        self.assertFalse(crawler.stop())
        status = crawler.status()
        self.assertEqual(status.state, RunState.IDLE)
        self.assertEqual(status.file_count, 0)


class TestCrawlerBackgroundSession(unittest.TestCase):
    def test_start_while_running_is_noop_and_stop_exports(self):
        entered = threading.Event()
        release = threading.Event()

        def block_on_subdir(url):
            if url != SEED:
                entered.set()
                release.wait(5)

        fetcher = FakeFetcher(SCENARIO_PAGES, on_fetch=block_on_subdir)
        exporter = RecordingExporter()
        crawler = Crawler(make_config(), fetcher=fetcher, exporter=exporter)

        self.assertTrue(crawler.start())
        self.assertTrue(entered.wait(5))

        self.assertFalse(crawler.start())
        self.assertIsNone(crawler.run())
        self.assertEqual(crawler.status().state, RunState.RUNNING)

        self.assertTrue(crawler.stop())
        self.assertFalse(crawler.stop())
        self.assertEqual(crawler.status().state, RunState.STOPPING)
        release.set()

        self.assertTrue(crawler.wait(5))
        self.assertEqual(len(exporter.reports), 1)
        report = exporter.reports[0]
        self.assertEqual(report.reason, CompletionReason.STOPPED)
        # The in-flight fetch of d1/ completed and was merged before stopping.
        self.assertEqual(report.files, (SEED + "d1/f2", SEED + "f1"))
        self.assertEqual(report.queue_length, 1)
        self.assertEqual(fetcher.fetched, [SEED, SEED + "d1/"])

    def test_pacing_delay_between_requests(self):
        stamps = []
        fetcher = FakeFetcher(SCENARIO_PAGES, on_fetch=lambda url: stamps.append(time.monotonic()))
        crawler = Crawler(make_config(crawl_delay_seconds=0.05), fetcher=fetcher, exporter=RecordingExporter())

        crawler.run()

        gaps = [later - earlier for earlier, later in zip(stamps, stamps[1:])]
        self.assertEqual(len(gaps), 2)
        for gap in gaps:
            self.assertGreaterEqual(gap, 0.045)

    def test_stop_cuts_pacing_wait_short(self):
        crawler = Crawler(make_config(crawl_delay_seconds=30.0), exporter=RecordingExporter())
        crawler.fetcher = FakeFetcher(SCENARIO_PAGES)

        started = time.monotonic()
        self.assertTrue(crawler.start())
        deadline = time.monotonic() + 5
        while crawler.status().file_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        crawler.stop()

        self.assertTrue(crawler.wait(5))
        self.assertLess(time.monotonic() - started, 10)
        self.assertEqual(crawler.last_report.reason, CompletionReason.STOPPED)
        self.assertEqual(crawler.fetcher.fetched, [SEED])

    def test_export_failure_in_worker_is_recorded(self):
        def fail(report):
            raise OSError("disk full")

        crawler = Crawler(
            make_config(),
            fetcher=FakeFetcher(SCENARIO_PAGES),
            exporter=RecordingExporter(on_export=fail),
        )

        self.assertTrue(crawler.start())
        self.assertTrue(crawler.wait(5))

        self.assertIsInstance(crawler.last_export_error, OSError)
        self.assertEqual(crawler.last_report.reason, CompletionReason.COMPLETED)
        self.assertEqual(crawler.state, RunState.IDLE)


if __name__ == "__main__":
    unittest.main()
