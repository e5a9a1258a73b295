"""Source URI helpers for import dedup."""

from __future__ import annotations

import hashlib
import re
from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


DEFAULT_STRIP_QUERY_PARAMS = {
    # tracking
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "utm_name",
    "utm_referrer",
    # misc common trackers
    "gclid",
    "fbclid",
    "mc_cid",
    "mc_eid",
    "hsa_cam",
    "_hsenc",
    "_hsmi",
    "ref",
    "ref_src",
}


def clean_source_uri(raw: object) -> Optional[str]:
    """Trim a caller-supplied URI; return None when it is not an absolute http(s) URL."""
    if not isinstance(raw, str):
        return None
    uri = raw.strip()
    if not uri or any(ch.isspace() for ch in uri):
        return None
    try:
        p = urlparse(uri)
    except ValueError:
        return None
    if p.scheme.lower() not in ("http", "https"):
        return None
    if not p.netloc or not (p.hostname or "").strip():
        return None
    return uri


def canonicalize_url(url: str, *, strip_params: Optional[Iterable[str]] = None) -> str:
    """Canonicalize a source URL for dedup.

    - Lowercase scheme + hostname
    - Remove fragments and a trailing slash
    - Strip common tracking query parameters
    - Sort remaining query params
    """
    if not url:
        return ""
    strip = set(strip_params) if strip_params is not None else set(DEFAULT_STRIP_QUERY_PARAMS)
    p = urlparse(url.strip())
    scheme = (p.scheme or "https").lower()
    netloc = (p.netloc or "").lower()
    path = p.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"

    kept = []
    for k, v in parse_qsl(p.query, keep_blank_values=True):
        if k.lower() in strip:
            continue
        kept.append((k, v))
    kept.sort(key=lambda kv: (kv[0].lower(), kv[1]))
    query = urlencode(kept, doseq=True)

    return urlunparse((scheme, netloc, path, "", query, ""))


def url_hash(url: str) -> str:
    """Stable hash for a canonicalized URL."""
    canon = canonicalize_url(url)
    return hashlib.sha256(canon.encode("utf-8")).hexdigest()


def title_from_slug(url: str) -> str:
    """Readable title from the last path segment: "/blog/my-first_post" -> "My First Post"."""
    try:
        path = urlparse(url or "").path
    except ValueError:
        return "Blog Post"
    segments = [s for s in path.split("/") if s]
    slug = re.sub(r"\.(html?|php|aspx?)$", "", segments[-1] if segments else "", flags=re.I)
    words = re.sub(r"[-_]+", " ", slug).strip()
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), words) or "Blog Post"
