"""
Href classification: ignore / directory / file / reject.
"""

import unittest

from dircrawl.crawler import ErrorKind, LinkKind, classify_href, classify_hrefs, host_from_url, is_same_host

BASE = "http://x.onion/a/"


class TestClassifyHref(unittest.TestCase):
    def test_relative_directory(self):
        link = classify_href("sub/", BASE)
        self.assertEqual(link.kind, LinkKind.DIRECTORY)
        self.assertEqual(link.url, "http://x.onion/a/sub/")

    def test_relative_file(self):
        link = classify_href("file.txt", BASE)
        self.assertEqual(link.kind, LinkKind.FILE)
        self.assertEqual(link.url, "http://x.onion/a/file.txt")

    def test_absolute_links_are_rejected(self):
        for href in ("https://other.onion/y", "http://x.onion/a/same-host.txt", "HTTP://x.onion/a/"):
            with self.subTest(href=href):
                link = classify_href(href, BASE)
                self.assertEqual(link.kind, LinkKind.REJECT)
                self.assertEqual(link.reason, ErrorKind.CROSS_HOST)

    def test_ignored_hrefs(self):
        for href in ("", "   ", None, "..", "../", "#top", "?C=N;O=D", "mailto:a@b.c", "JavaScript:void(0)"):
            with self.subTest(href=href):
                self.assertEqual(classify_href(href, BASE).kind, LinkKind.IGNORE)

    def test_scheme_relative_other_host_is_rejected(self):
        link = classify_href("//other.onion/files/", BASE)
        self.assertEqual(link.kind, LinkKind.REJECT)
        self.assertEqual(link.reason, ErrorKind.CROSS_HOST)

    def test_scheme_relative_same_host_is_followed(self):
        link = classify_href("//x.onion/b/", BASE)
        self.assertEqual(link.kind, LinkKind.DIRECTORY)
        self.assertEqual(link.url, "http://x.onion/b/")

    def test_host_comparison_is_exact(self):
        link = classify_href("//sub.x.onion/b/", BASE)
        self.assertEqual(link.kind, LinkKind.REJECT)
        self.assertEqual(link.reason, ErrorKind.CROSS_HOST)

    def test_malformed_href_is_rejected(self):
        link = classify_href("//[bad/", BASE)
        self.assertEqual(link.kind, LinkKind.REJECT)
        self.assertEqual(link.reason, ErrorKind.MALFORMED_LINK)

    def test_non_http_scheme_is_rejected(self):
        link = classify_href("ftp://x.onion/a/file.txt", BASE)
        self.assertEqual(link.kind, LinkKind.REJECT)
        self.assertEqual(link.reason, ErrorKind.MALFORMED_LINK)

    def test_root_relative_and_dot_segments(self):
        self.assertEqual(classify_href("/pub/f.iso", BASE).url, "http://x.onion/pub/f.iso")
        sibling = classify_href("../b/", BASE)
        self.assertEqual(sibling.kind, LinkKind.DIRECTORY)
        self.assertEqual(sibling.url, "http://x.onion/b/")

    def test_directory_decided_by_href_text(self):
        self.assertEqual(classify_href("sub", BASE).kind, LinkKind.FILE)
        self.assertEqual(classify_href(" sub/ ", BASE).kind, LinkKind.DIRECTORY)

    def test_bad_link_does_not_affect_siblings(self):
        kinds = [link.kind for link in classify_hrefs(["//[bad/", "ok.txt", "dir/"], BASE)]
        self.assertEqual(kinds, [LinkKind.REJECT, LinkKind.FILE, LinkKind.DIRECTORY])


class TestHostHelpers(unittest.TestCase):
    def test_host_from_url(self):
        self.assertEqual(host_from_url("http://WWW.X.onion:8080/a/"), "www.x.onion")
        self.assertEqual(host_from_url("not a url"), "")

    def test_is_same_host(self):
        self.assertTrue(is_same_host("http://X.onion/a/", "https://x.onion/b"))
        self.assertFalse(is_same_host("http://x.onion/", "http://y.onion/"))
        self.assertFalse(is_same_host("relative/path", "relative/other"))


if __name__ == "__main__":
    unittest.main()
