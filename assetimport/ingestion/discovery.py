"""Blog post discovery: list posts from a site before importing.

Discovery never fetches post bodies; it only yields candidates plus a
duplicate flag so the caller can choose what to import. Sitemaps are tried
first (free, usually complete); RSS/Atom feeds are the fallback.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from urllib.parse import urlparse

import feedparser
import requests

from assetimport.extraction.dates import parse_datetime
from assetimport.extraction.fulltext import USER_AGENT
from assetimport.ingestion.candidate_types import ImportCandidate
from assetimport.ingestion.known_records import KnownRecordIndex
from assetimport.ingestion.url_utils import clean_source_uri, title_from_slug

logger = logging.getLogger(__name__)

BLOG_POST = "Blog Post"
MAX_INDEX_SITEMAPS = 15
# Too few sitemap posts and the feed is worth a look too.
MIN_SITEMAP_POSTS = 5

CONTENT_SECTIONS = frozenset(
    {
        "blog", "blogs", "article", "articles", "post", "posts", "news", "newsroom",
        "press", "press-releases", "announcements", "updates", "insights",
        "case-study", "case-studies", "customer-stories", "success-stories", "use-cases",
        "guide", "guides", "tutorial", "tutorials", "how-to", "learn", "resources",
        "whitepapers", "ebooks", "research", "events", "webinars", "podcasts", "videos",
    }
)

EXCLUDED_PATH_PATTERNS = [
    re.compile(r"^/?(tag|tags|category|categories|author|authors|archive|archives)/?$", re.I),
    re.compile(r"^/?(search|login|logout|signin|signout|register|signup|account|profile)/?$", re.I),
    re.compile(r"^/?(cart|checkout|payment|order|orders)/?$", re.I),
    re.compile(r"^/?(privacy|terms|legal|cookie|cookies|gdpr|imprint|impressum)/?$", re.I),
    re.compile(r"^/?(contact|about|team|careers|jobs|sitemap)/?$", re.I),
    re.compile(r"/page[-_]?\d+/?$", re.I),
    re.compile(r"/p/\d+/?$", re.I),
    re.compile(r"[?&]page=\d+", re.I),
    re.compile(r"/(feed|rss|atom|sitemap)(\.xml)?/?$", re.I),
    re.compile(r"\.(xml|json|txt|css|js)$", re.I),
    re.compile(r"\.(jpg|jpeg|png|gif|svg|webp|pdf|docx?|xlsx?|pptx?)$", re.I),
    re.compile(r"^/(api|wp-admin|wp-content|wp-includes)/", re.I),
]

_URL_BLOCK = re.compile(r"<url>(.*?)</url>", re.S | re.I)
_LOC = re.compile(r"<loc>\s*(?:<!\[CDATA\[)?\s*([^<\]]+?)\s*(?:\]\]>)?\s*</loc>", re.I)
_LASTMOD = re.compile(r"<lastmod>\s*([^<]+?)\s*</lastmod>", re.I)
_URL_DATE = [
    re.compile(r"/(\d{4})/(\d{1,2})/(\d{1,2})/"),
    re.compile(r"/(\d{4})-(\d{1,2})-(\d{1,2})/"),
]


@dataclass(frozen=True)
class DiscoveredPost:
    candidate: ImportCandidate
    is_duplicate: bool


def _entry_field(entry, name: str):
    value = getattr(entry, name, None)
    if value is None and isinstance(entry, dict):
        value = entry.get(name)
    return value


def _base_url(blog_url: str) -> str:
    p = urlparse(blog_url)
    return f"{p.scheme}://{p.netloc}"


def _section(blog_url: str) -> Optional[str]:
    segments = [s for s in urlparse(blog_url).path.split("/") if s]
    return segments[0].lower() if segments else None


def is_excluded_url(url: str) -> bool:
    """Navigation, utility, pagination, feed, media or API URL."""
    try:
        path = urlparse(url).path or "/"
    except ValueError:
        return True
    lowered = url.lower()
    return any(p.search(path) or p.search(lowered) for p in EXCLUDED_PATH_PATTERNS)


def looks_like_post(url: str) -> bool:
    """Heuristic: a URL that points at one piece of content rather than a listing page."""
    if is_excluded_url(url):
        return False
    segments = [s.lower() for s in urlparse(url).path.split("/") if s]
    if not segments:
        return False
    last = segments[-1]
    if len(segments) == 1:
        # root-level slug, e.g. /how-we-ship-weekly
        return "-" in last and len(last) >= 15
    if last in CONTENT_SECTIONS:
        return False
    for seg in segments[:-1]:
        if re.sub(r"[-_]?\d+$", "", seg) in CONTENT_SECTIONS:
            return True
    if re.search(r"/\d{4}/\d{1,2}/", urlparse(url).path):
        return True
    return ("-" in last and len(last) > 10) or len(last) > 5


def _date_from_url(url: str) -> Optional[datetime]:
    for pattern in _URL_DATE:
        m = pattern.search(url)
        if m:
            try:
                return datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)), tzinfo=timezone.utc)
            except ValueError:
                continue
    return None


def sitemap_locations(blog_url: str) -> List[str]:
    """Candidate sitemap URLs, section-specific ones first."""
    base = _base_url(blog_url)
    out = []
    section = _section(blog_url)
    if section:
        out += [
            f"{base}/sitemap-{section}.xml",
            f"{base}/{section}/sitemap.xml",
            f"{base}/sitemap_{section}.xml",
        ]
    out += [
        f"{base}/sitemap.xml",
        f"{base}/sitemap_index.xml",
        f"{base}/sitemap-index.xml",
        f"{base}/wp-sitemap.xml",
        f"{base}/wp-sitemap-posts-post-1.xml",
        f"{base}/post-sitemap.xml",
        f"{base}/sitemap-blog.xml",
        f"{base}/sitemap-posts.xml",
        f"{base}/news-sitemap.xml",
    ]
    return list(dict.fromkeys(out))


def feed_locations(blog_url: str) -> List[str]:
    base = _base_url(blog_url)
    out = []
    section = _section(blog_url)
    if section:
        out += [f"{base}/{section}/feed", f"{base}/{section}/rss", f"{base}/{section}/feed.xml"]
    out += [
        f"{base}/feed",
        f"{base}/rss",
        f"{base}/rss.xml",
        f"{base}/feed.xml",
        f"{base}/atom.xml",
        f"{base}/index.xml",
        f"{base}/blog/feed",
    ]
    return list(dict.fromkeys(out))


def _fetch_xml(url: str, *, timeout: float) -> Optional[str]:
    try:
        resp = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=(5, timeout))
    except requests.RequestException as e:
        logger.debug("[discovery] %s unreachable: %s", url, e)
        return None
    if resp.status_code != 200 or not resp.text:
        return None
    return resp.text


def parse_sitemap(xml_text: str) -> Tuple[bool, List[Tuple[str, Optional[str]]]]:
    """Return (is_index, [(loc, lastmod)]) for a sitemap or sitemap index document."""
    if re.search(r"<sitemapindex\b", xml_text, re.I):
        return True, [(html.unescape(m.group(1)), None) for m in _LOC.finditer(xml_text)]
    entries = []
    for block in _URL_BLOCK.finditer(xml_text):
        loc = _LOC.search(block.group(1))
        if not loc:
            continue
        lastmod = _LASTMOD.search(block.group(1))
        entries.append((html.unescape(loc.group(1)), lastmod.group(1) if lastmod else None))
    return False, entries


def discover_sitemap_posts(blog_url: str, *, limit: int = 100, timeout: float = 10) -> List[ImportCandidate]:
    out: List[ImportCandidate] = []
    seen = set()
    fetched = set()

    def collect(entries) -> None:
        for loc, lastmod in entries:
            link = clean_source_uri(loc)
            if not link or link in seen or not looks_like_post(link):
                continue
            seen.add(link)
            out.append(
                ImportCandidate(
                    source_uri=link,
                    display_title=title_from_slug(link),
                    suggested_kind=BLOG_POST,
                    prefetched_published_at=parse_datetime(lastmod) or _date_from_url(link),
                )
            )

    for sitemap_url in sitemap_locations(blog_url):
        if sitemap_url in fetched:
            continue
        fetched.add(sitemap_url)
        xml_text = _fetch_xml(sitemap_url, timeout=timeout)
        if not xml_text:
            continue
        is_index, entries = parse_sitemap(xml_text)
        if is_index:
            refs = [loc for loc, _ in entries if loc not in fetched][:MAX_INDEX_SITEMAPS]
            for ref in refs:
                fetched.add(ref)
                ref_text = _fetch_xml(ref, timeout=timeout)
                if ref_text:
                    collect(parse_sitemap(ref_text)[1])
        else:
            collect(entries)
        if out:
            logger.info("[discovery] %d posts so far after %s", len(out), sitemap_url)
        if len(out) >= limit:
            break
    return out[:limit]


def discover_feed_posts(feed_url: str, *, limit: int = 100) -> List[ImportCandidate]:
    parsed = feedparser.parse(feed_url)
    out: List[ImportCandidate] = []
    seen = set()
    for entry in parsed.entries or []:
        link = clean_source_uri(_entry_field(entry, "link"))
        title = _entry_field(entry, "title")
        if not link or not title or link in seen or is_excluded_url(link):
            continue
        seen.add(link)
        # published / updated are common feed fields
        published = _entry_field(entry, "published") or _entry_field(entry, "updated")
        out.append(
            ImportCandidate(
                source_uri=link,
                display_title=str(title).strip(),
                suggested_kind=BLOG_POST,
                prefetched_published_at=parse_datetime(published),
            )
        )
        if len(out) >= limit:
            break
    return out


def discover_blog_posts(blog_url: str, *, limit: int = 100, timeout: float = 10) -> List[ImportCandidate]:
    """Sitemap first; fall back to (or top up from) the first feed that yields posts."""
    posts = discover_sitemap_posts(blog_url, limit=limit, timeout=timeout)
    method = "sitemap"
    if len(posts) < MIN_SITEMAP_POSTS:
        for feed_url in feed_locations(blog_url):
            feed_posts = discover_feed_posts(feed_url, limit=limit)
            if feed_posts:
                if len(feed_posts) > len(posts):
                    posts, method = feed_posts, "rss"
                break
    logger.info("[discovery] %s: %d posts via %s", blog_url, len(posts), method)
    return posts


def preview_posts(candidates: List[ImportCandidate], index: KnownRecordIndex) -> List[DiscoveredPost]:
    return [DiscoveredPost(candidate=c, is_duplicate=index.contains(c.source_uri)) for c in candidates]


def preview_feed(feed_url: str, index: KnownRecordIndex, *, limit: int = 100) -> List[DiscoveredPost]:
    return preview_posts(discover_feed_posts(feed_url, limit=limit), index)
