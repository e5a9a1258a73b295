import unittest
from types import SimpleNamespace
from unittest import mock

import requests

from assetimport.extraction.fulltext import USER_AGENT
from assetimport.ingestion.discovery import (
    discover_blog_posts,
    discover_feed_posts,
    discover_sitemap_posts,
    is_excluded_url,
    looks_like_post,
    preview_feed,
    sitemap_locations,
)
from assetimport.ingestion.known_records import KnownRecordIndex


def _feed(*entries):
    return SimpleNamespace(entries=list(entries))


class TestFeedDiscovery(unittest.TestCase):
    def test_entries_become_candidates(self):
        feed = _feed(
            {"link": "https://blog.example.com/a", "title": " Post A ", "published": "Tue, 26 Aug 2025 09:00:00 GMT"},
            {"link": "https://blog.example.com/b", "title": "Post B", "updated": "2025-07-01T00:00:00Z"},
            {"link": "https://blog.example.com/a", "title": "Post A (again)"},
            {"link": "mailto:someone@example.com", "title": "Not a post"},
            {"link": "https://blog.example.com/c"},
        )
        with mock.patch("assetimport.ingestion.discovery.feedparser.parse", return_value=feed):
            posts = discover_feed_posts("https://blog.example.com/feed")

        self.assertEqual([p.source_uri for p in posts], ["https://blog.example.com/a", "https://blog.example.com/b"])
        self.assertEqual(posts[0].display_title, "Post A")
        self.assertEqual(posts[0].suggested_kind, "Blog Post")
        self.assertEqual(posts[0].prefetched_published_at.day, 26)
        self.assertEqual(posts[1].prefetched_published_at.month, 7)
        self.assertFalse(posts[0].has_prefetched_content)

    def test_limit(self):
        feed = _feed(*[{"link": f"https://blog.example.com/{i}", "title": f"P{i}"} for i in range(10)])
        with mock.patch("assetimport.ingestion.discovery.feedparser.parse", return_value=feed):
            self.assertEqual(len(discover_feed_posts("https://blog.example.com/feed", limit=3)), 3)

    def test_preview_flags_duplicates(self):
        feed = _feed(
            {"link": "https://blog.example.com/a", "title": "A"},
            {"link": "https://blog.example.com/b", "title": "B"},
        )
        index = KnownRecordIndex({"https://blog.example.com/b"})
        with mock.patch("assetimport.ingestion.discovery.feedparser.parse", return_value=feed):
            posts = preview_feed("https://blog.example.com/feed", index)
        self.assertEqual([p.is_duplicate for p in posts], [False, True])

SITEMAP_INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://blog.example.com/post-sitemap.xml</loc></sitemap>
</sitemapindex>
"""

POST_SITEMAP = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://blog.example.com/blog/shipping-faster-weekly</loc><lastmod>2025-08-26T10:00:00+00:00</lastmod></url>
  <url><loc><![CDATA[https://blog.example.com/2024/03/05/release-notes]]></loc></url>
  <url><loc>https://blog.example.com/blog</loc></url>
  <url><loc>https://blog.example.com/about</loc></url>
  <url><loc>https://blog.example.com/tag/x</loc></url>
  <url><loc>https://blog.example.com/blog/page-2</loc></url>
  <url><loc>https://blog.example.com/files/whitepaper.pdf</loc></url>
  <url><loc>https://blog.example.com/wp-content/uploads/image-large.png</loc></url>
  <url><loc>https://blog.example.com/blog/shipping-faster-weekly</loc></url>
</urlset>
"""


def _http(pages):
    """requests.get stand-in serving `pages` by URL; everything else is a 404."""

    def get(url, **kwargs):
        if url in pages:
            return mock.MagicMock(status_code=200, text=pages[url])
        return mock.MagicMock(status_code=404, text="")

    return mock.MagicMock(side_effect=get)


class TestSitemapDiscovery(unittest.TestCase):
    def test_index_followed_and_utility_pages_dropped(self):
        get = _http(
            {
                "https://blog.example.com/sitemap.xml": SITEMAP_INDEX,
                "https://blog.example.com/post-sitemap.xml": POST_SITEMAP,
            }
        )
        with mock.patch("assetimport.ingestion.discovery.requests.get", get):
            posts = discover_sitemap_posts("https://blog.example.com/blog")

        self.assertEqual(
            [p.source_uri for p in posts],
            ["https://blog.example.com/blog/shipping-faster-weekly", "https://blog.example.com/2024/03/05/release-notes"],
        )
        self.assertEqual(posts[0].display_title, "Shipping Faster Weekly")
        self.assertEqual(posts[0].suggested_kind, "Blog Post")
        self.assertEqual(posts[0].prefetched_published_at.day, 26)
        self.assertEqual(posts[1].display_title, "Release Notes")
        self.assertEqual(posts[1].prefetched_published_at.month, 3)
        fetched = [c[0][0] for c in get.call_args_list]
        self.assertEqual(fetched.count("https://blog.example.com/post-sitemap.xml"), 1)
        self.assertEqual(get.call_args_list[0][1]["headers"]["User-Agent"], USER_AGENT)

    def test_unreachable_sitemaps_are_skipped(self):
        get = mock.MagicMock(side_effect=requests.ConnectionError("refused"))
        with mock.patch("assetimport.ingestion.discovery.requests.get", get):
            self.assertEqual(discover_sitemap_posts("https://blog.example.com/"), [])

    def test_blog_falls_back_to_feed(self):
        feed = _feed(
            {"link": "https://blog.example.com/blog/from-the-feed", "title": "From the feed"},
            {"link": "https://blog.example.com/category/", "title": "Category page"},
        )
        with mock.patch("assetimport.ingestion.discovery.requests.get", _http({})), \
                mock.patch("assetimport.ingestion.discovery.feedparser.parse", return_value=feed) as parse:
            posts = discover_blog_posts("https://blog.example.com/blog")
        self.assertEqual([p.source_uri for p in posts], ["https://blog.example.com/blog/from-the-feed"])
        self.assertEqual(parse.call_args_list[0][0][0], "https://blog.example.com/blog/feed")

    def test_blog_prefers_sitemap_when_it_has_enough(self):
        urls = "".join(
            f"<url><loc>https://blog.example.com/blog/post-number-{i}</loc></url>" for i in range(6)
        )
        get = _http({"https://blog.example.com/sitemap.xml": f"<urlset>{urls}</urlset>"})
        with mock.patch("assetimport.ingestion.discovery.requests.get", get), \
                mock.patch("assetimport.ingestion.discovery.feedparser.parse") as parse:
            posts = discover_blog_posts("https://blog.example.com/blog", limit=10)
        self.assertEqual(len(posts), 6)
        parse.assert_not_called()

    def test_sitemap_locations_try_section_first(self):
        locations = sitemap_locations("https://blog.example.com/news/")
        self.assertEqual(locations[0], "https://blog.example.com/sitemap-news.xml")
        self.assertIn("https://blog.example.com/wp-sitemap.xml", locations)
        self.assertEqual(len(locations), len(set(locations)))


class TestUrlFilters(unittest.TestCase):
    def test_excluded_urls(self):
        for url in (
            "https://blog.example.com/about",
            "https://blog.example.com/blog/page-2",
            "https://blog.example.com/feed",
            "https://blog.example.com/files/report.pdf",
            "https://blog.example.com/wp-admin/edit.php",
            "https://blog.example.com/blog?page=3",
        ):
            self.assertTrue(is_excluded_url(url), url)
        self.assertFalse(is_excluded_url("https://blog.example.com/blog/how-we-ship"))

    def test_looks_like_post(self):
        self.assertTrue(looks_like_post("https://blog.example.com/blog/how-we-ship"))
        self.assertTrue(looks_like_post("https://blog.example.com/how-we-ship-weekly"))
        self.assertTrue(looks_like_post("https://blog.example.com/2024/01/02/x"))
        self.assertFalse(looks_like_post("https://blog.example.com/blog"))
        self.assertFalse(looks_like_post("https://blog.example.com/resources/blog"))
        self.assertFalse(looks_like_post("https://blog.example.com/"))



if __name__ == "__main__":
    unittest.main()
