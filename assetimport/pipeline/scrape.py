"""Scrape selected URLs without persisting anything.

Sits between discovery/preview and import: the caller picks which new
posts to pay scrape credits for, reviews the content, then sends the
successful posts back to the import as pre-supplied content.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from assetimport.config import ImportSettings
from assetimport.errors import BatchValidationError
from assetimport.extraction.providers import ProviderChain
from assetimport.ingestion.candidate_types import ImportCandidate, resolve_title
from assetimport.ingestion.known_records import KnownRecordIndex
from assetimport.ingestion.url_utils import clean_source_uri, title_from_slug
from assetimport.pipeline.orchestrator import Retrieved, RetrievalOrchestrator

logger = logging.getLogger(__name__)

MAX_SCRAPE_URLS = 50


@dataclass(frozen=True)
class ScrapedPost:
    url: str
    title: str
    content: str = ""
    published_at: Optional[datetime] = None
    success: bool = False
    error: Optional[str] = None
    warning: Optional[str] = None
    provider_used: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "publishedDate": self.published_at.isoformat() if self.published_at else None,
            "success": self.success,
            "error": self.error,
            "warning": self.warning,
            "provider": self.provider_used,
        }


def _to_scraped(item: Retrieved) -> ScrapedPost:
    cand = item.candidate
    if item.result is not None:
        return ScrapedPost(url=cand.source_uri, title=title_from_slug(cand.source_uri), error=item.result.detail)
    outcome, validation = item.outcome, item.validation
    if outcome is None or validation is None or not validation.passed:
        reason = validation.reason if validation is not None else "no retrieval outcome"
        return ScrapedPost(
            url=cand.source_uri,
            title=resolve_title(cand, outcome),
            error=reason,
            provider_used=outcome.provider_used if outcome is not None else None,
        )
    return ScrapedPost(
        url=cand.source_uri,
        title=resolve_title(cand, outcome),
        content=outcome.content,
        published_at=outcome.published_at,
        success=True,
        warning=validation.reason,
        provider_used=outcome.provider_used,
    )


def scrape_selected(
    uris: Sequence[str],
    chain: ProviderChain,
    *,
    settings: Optional[ImportSettings] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> List[ScrapedPost]:
    """Retrieve and validate content for `uris`, one ScrapedPost per distinct valid URI, in input order.

    Uses the same execution modes as an import (paced when the primary
    provider is rate-limited, grouped otherwise). Invalid URIs are dropped
    with a warning; a batch with none left raises BatchValidationError.
    """
    if not uris:
        raise BatchValidationError("urls array is required and must not be empty")
    if len(uris) > MAX_SCRAPE_URLS:
        raise BatchValidationError(f"maximum {MAX_SCRAPE_URLS} URLs can be scraped at once")

    settings = settings or ImportSettings()
    valid: List[str] = []
    for raw in uris:
        uri = clean_source_uri(raw)
        if uri is None:
            logger.warning("[scrape] invalid URL skipped: %r", raw)
            continue
        if uri not in valid:
            valid.append(uri)
    if not valid:
        raise BatchValidationError("no valid URLs provided")

    orchestrator = RetrievalOrchestrator(
        chain,
        KnownRecordIndex(),
        allow_live_retrieval=True,
        group_width=settings.group_width,
        inter_item_delay=settings.sequential_delay,
        provider_timeout=settings.provider_timeout,
        min_content_chars=settings.min_content_chars,
        batch_deadline=settings.batch_deadline,
        sleep=sleep,
        clock=clock,
    )
    logger.info("[scrape] scraping %d URLs", len(valid))
    by_uri = {}
    for item in orchestrator.run([ImportCandidate(u) for u in valid]):
        by_uri[item.candidate.source_uri] = _to_scraped(item)
    posts = [by_uri[u] for u in valid]
    logger.info("[scrape] completed: %d/%d successful", sum(1 for p in posts if p.success), len(posts))
    return posts


def import_request_from_scrape(posts: Sequence[ScrapedPost]) -> Dict[str, Any]:
    """Import request body carrying the successful posts as pre-supplied content."""
    return {
        "posts": [
            {
                "url": p.url,
                "title": p.title,
                "detectedAssetType": "Blog Post",
                "content": p.content,
                "publishedDate": p.published_at.isoformat() if p.published_at else None,
            }
            for p in posts
            if p.success
        ],
        "scrapeMissingContent": False,
    }
