"""In-process fetch + main-text extraction (last-resort provider).

No external service involved, so no rate limit; quality is lower than the
hosted readers, which is reported through the confidence score.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import ipaddress
from urllib.parse import urlparse

import requests
import trafilatura

from assetimport.extraction.dates import parse_datetime

USER_AGENT = "Mozilla/5.0 (compatible; AssetImport/1.0)"


@dataclass(frozen=True)
class FulltextResult:
    text: Optional[str]
    confidence: float
    status: str
    error: Optional[str] = None
    title: Optional[str] = None
    published_at: Optional[datetime] = None
    method: str = "trafilatura"

    @property
    def ok(self) -> bool:
        return self.status == "ok" and bool(self.text)


_PRIVATE_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def _is_private_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return any(ip in net for net in _PRIVATE_NETS)


def validate_fetch_url(url: str) -> Optional[str]:
    """Return error string if URL should not be fetched (SSRF/abuse protections)."""
    try:
        p = urlparse(url)
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    host = (p.hostname or "").strip().lower()
    if not p.netloc or not host:
        return "missing_host"
    if host in ("localhost", "localhost.localdomain"):
        return "blocked_host"
    if _is_private_ip(host):
        return "blocked_private_ip"
    return None


def confidence_for_length(n: int) -> float:
    if n >= 4000:
        return 0.95
    if n >= 1500:
        return 0.80
    if n >= 600:
        return 0.55
    return 0.30


def fetch_and_extract(url: str, *, timeout: float = 25, max_bytes: int = 2_000_000) -> FulltextResult:
    if not url:
        return FulltextResult(text=None, confidence=0.0, status="error", error="empty_url")
    err = validate_fetch_url(url)
    if err:
        return FulltextResult(text=None, confidence=0.0, status="blocked", error=err)
    try:
        resp = requests.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=(5, timeout),
            allow_redirects=True,
            stream=True,
        )
        if resp.status_code >= 400:
            return FulltextResult(
                text=None, confidence=0.0, status=f"http_{resp.status_code}", error=f"http_{resp.status_code}"
            )
        # Size guardrail: read up to max_bytes
        content = b""
        for chunk in resp.iter_content(chunk_size=64 * 1024):
            if not chunk:
                continue
            content += chunk
            if len(content) > max_bytes:
                return FulltextResult(text=None, confidence=0.0, status="too_large", error="too_large")
    except requests.RequestException as e:
        return FulltextResult(text=None, confidence=0.0, status="error", error=str(e))

    try:
        html = content.decode(resp.encoding or "utf-8", errors="replace")
    except LookupError:
        html = content.decode("utf-8", errors="replace")
    if not html.strip():
        return FulltextResult(text=None, confidence=0.0, status="empty", error="empty_html")

    text = trafilatura.extract(html, include_comments=False, include_tables=False)
    if not text or not text.strip():
        return FulltextResult(text=None, confidence=0.0, status="no_extract", error="no_extract")
    text = text.strip()

    title = None
    published_at = None
    meta = trafilatura.extract_metadata(html)
    if meta is not None:
        title = getattr(meta, "title", None) or None
        published_at = parse_datetime(getattr(meta, "date", None))

    return FulltextResult(
        text=text,
        confidence=confidence_for_length(len(text)),
        status="ok",
        title=title,
        published_at=published_at,
    )
