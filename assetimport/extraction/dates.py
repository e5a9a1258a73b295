"""Published-date helpers for extracted pages."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Mapping, Optional

# In order of preference.
METADATA_DATE_FIELDS = (
    "publishedTime",
    "published_time",
    "article:published_time",
    "og:article:published_time",
    "datePublished",
    "date",
    "pubDate",
    "publishDate",
    "created",
    "createdAt",
    "modifiedTime",
    "article:modified_time",
)

_MONTHS = {m: i for i, m in enumerate(("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"), 1)}

_DAY_MONTH_YEAR = re.compile(r"\b(\d{1,2})\s+(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+(\d{4})\b", re.I)
_MONTH_DAY_YEAR = re.compile(r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+(\d{1,2}),?\s+(\d{4})\b", re.I)
_ISO_DATE = re.compile(r"\b(\d{4})[-/](\d{1,2})[-/](\d{1,2})\b")
_US_DATE = re.compile(r"\b(\d{1,2})[-/](\d{1,2})[-/](\d{4})\b")


def parse_datetime(dt: Any) -> Optional[datetime]:
    if not dt:
        return None
    if isinstance(dt, datetime):
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    s = str(dt).strip()
    if not s:
        return None
    s = s.replace("Z", "+00:00")
    if " " in s and "T" not in s and re.match(r"^\d{4}-\d{2}-\d{2} ", s):
        s = s.replace(" ", "T", 1)
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        # RSS feeds use RFC 2822 dates
        try:
            parsed = parsedate_to_datetime(str(dt))
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def published_from_metadata(metadata: Optional[Mapping[str, Any]]) -> Optional[datetime]:
    if not metadata:
        return None
    for name in METADATA_DATE_FIELDS:
        value = metadata.get(name)
        if isinstance(value, list):
            value = value[0] if value else None
        if isinstance(value, str):
            parsed = parse_datetime(value)
            if parsed is not None:
                return parsed
    return None


def _plausible(year: int, month: int, day: int, now: datetime) -> Optional[datetime]:
    try:
        d = datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None
    if now.year - 10 <= d.year <= now.year + 10:
        return d
    return None


def published_from_content(content: Optional[str], *, now: Optional[datetime] = None) -> Optional[datetime]:
    """First plausible date mentioned in page text (within ten years of now)."""
    if not content:
        return None
    now = now or datetime.now(timezone.utc)

    m = _DAY_MONTH_YEAR.search(content)
    if m:
        d = _plausible(int(m.group(3)), _MONTHS[m.group(2).lower()[:3]], int(m.group(1)), now)
        if d:
            return d
    m = _MONTH_DAY_YEAR.search(content)
    if m:
        d = _plausible(int(m.group(3)), _MONTHS[m.group(1).lower()[:3]], int(m.group(2)), now)
        if d:
            return d
    m = _ISO_DATE.search(content)
    if m:
        d = _plausible(int(m.group(1)), int(m.group(2)), int(m.group(3)), now)
        if d:
            return d
    m = _US_DATE.search(content)
    if m:
        d = _plausible(int(m.group(3)), int(m.group(1)), int(m.group(2)), now)
        if d:
            return d
    return None
