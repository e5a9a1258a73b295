"""Content-extraction providers and the ordered fallthrough chain.

Providers:
- Firecrawl (hosted scraper, best metadata/date extraction, strict rate limit)
- Jina Reader (hosted reader, markdown output, no rate limit on our plan)
- Direct fetch + trafilatura (in-process, last resort)

A provider either returns a ProviderResult with non-empty content or raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import requests

from assetimport.config import ImportSettings
from assetimport.errors import ProviderError, RateLimitError
from assetimport.extraction.dates import parse_datetime, published_from_content, published_from_metadata
from assetimport.extraction.fulltext import USER_AGENT, fetch_and_extract
from assetimport.ingestion.candidate_types import ProviderResult, RetrievalOutcome, fallback_label

logger = logging.getLogger(__name__)


class BaseProvider:
    name: str = "base"
    is_rate_limited: bool = False

    def fetch(self, uri: str, *, timeout: float) -> ProviderResult:
        raise NotImplementedError


def _raise_for_status(resp: requests.Response, provider: str) -> None:
    if resp.status_code == 429:
        raise RateLimitError(f"{provider} rate limit exceeded", provider=provider, status_code=429)
    if resp.status_code >= 400:
        raise ProviderError(
            f"{provider} API error: {resp.status_code} {resp.reason or ''}".strip(),
            provider=provider,
            status_code=resp.status_code,
        )


@dataclass(frozen=True)
class FirecrawlProvider(BaseProvider):
    api_key: str
    endpoint: str = "https://api.firecrawl.dev/v1/scrape"

    name: str = "firecrawl"
    is_rate_limited: bool = True

    def fetch(self, uri: str, *, timeout: float) -> ProviderResult:
        payload = {
            "url": uri,
            "formats": ["markdown"],
            "onlyMainContent": True,
            "timeout": int(timeout * 1000),
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        # Leave the API its own timeout budget before giving up on the socket.
        resp = requests.post(self.endpoint, json=payload, headers=headers, timeout=(5, timeout + 5))
        _raise_for_status(resp, self.name)
        try:
            body = resp.json() or {}
        except ValueError as e:
            raise ProviderError(f"firecrawl returned non-JSON response: {e}", provider=self.name) from e
        if not body.get("success", True):
            raise ProviderError(f"firecrawl scrape failed: {body.get('error') or 'unknown error'}", provider=self.name)

        data = body.get("data") or {}
        markdown = (data.get("markdown") or "").strip()
        if not markdown:
            raise ProviderError("firecrawl scrape returned empty content", provider=self.name)
        metadata = data.get("metadata") or {}

        published = published_from_metadata(metadata) or published_from_content(markdown)
        warning = None
        status_code = metadata.get("statusCode")
        if isinstance(status_code, int) and status_code >= 400:
            warning = f"source page returned HTTP {status_code}"
        logger.info("[firecrawl] scraped %s chars=%d", uri, len(markdown))
        return ProviderResult(
            content=markdown,
            published_at=published,
            warning=warning,
            title=metadata.get("title") or metadata.get("ogTitle") or None,
        )


# Page chrome Jina should drop, and the containers that usually hold the article body.
JINA_REMOVE_SELECTOR = (
    "nav,footer,header,.navigation,.sidebar,.menu,.breadcrumb,.social-share,.related-posts,"
    ".comments,.newsletter,.subscribe,.cookie-banner,.popup,.modal"
)
JINA_TARGET_SELECTOR = "article,main,.post-content,.entry-content,.article-content,.blog-post,.post-body,.content-main"


def parse_jina_response(text: str) -> Tuple[str, dict]:
    """Split a Jina Reader response into (markdown body, header fields)."""
    headers = {}
    marker = "Markdown Content:"
    idx = text.find(marker)
    if idx < 0:
        return text.strip(), headers
    for line in text[:idx].splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip():
            headers[key.strip().lower()] = value.strip()
    return text[idx + len(marker):].strip(), headers


@dataclass(frozen=True)
class JinaReaderProvider(BaseProvider):
    api_key: Optional[str] = None
    endpoint: str = "https://r.jina.ai"

    name: str = "jina"
    is_rate_limited: bool = False

    def fetch(self, uri: str, *, timeout: float) -> ProviderResult:
        headers = {
            "Accept": "text/plain",
            "X-Respond-With": "markdown",
            "X-With-Generated-Alt": "true",
            "X-No-Cache": "true",
            "X-Remove-Selector": JINA_REMOVE_SELECTOR,
            "X-Target-Selector": JINA_TARGET_SELECTOR,
            "User-Agent": USER_AGENT,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        resp = requests.get(f"{self.endpoint}/{uri}", headers=headers, timeout=(5, timeout))
        _raise_for_status(resp, self.name)
        body, fields = parse_jina_response(resp.text or "")
        if not body:
            raise ProviderError("jina returned empty content", provider=self.name)
        logger.info("[jina] fetched %s chars=%d", uri, len(body))
        return ProviderResult(
            content=body,
            published_at=parse_datetime(fields.get("published time")) or published_from_content(body),
            warning=fields.get("warning") or None,
            title=fields.get("title") or None,
        )


@dataclass(frozen=True)
class DirectFetchProvider(BaseProvider):
    min_confidence: float = 0.55

    name: str = "direct"
    is_rate_limited: bool = False

    def fetch(self, uri: str, *, timeout: float) -> ProviderResult:
        res = fetch_and_extract(uri, timeout=timeout)
        if not res.ok:
            raise ProviderError(f"direct fetch failed: {res.error or res.status}", provider=self.name)
        warning = None
        if res.confidence < self.min_confidence:
            warning = f"low extraction confidence ({res.confidence:.2f})"
        return ProviderResult(content=res.text or "", published_at=res.published_at, warning=warning, title=res.title)


class ProviderChain:
    """Ordered providers; an item falls through to the next provider on any failure."""

    def __init__(self, providers: Sequence[BaseProvider]):
        if not providers:
            raise ValueError("provider chain needs at least one provider")
        self.providers: List[BaseProvider] = list(providers)

    @property
    def primary(self) -> BaseProvider:
        return self.providers[0]

    @property
    def primary_is_rate_limited(self) -> bool:
        return bool(getattr(self.primary, "is_rate_limited", False))

    def retrieve(self, uri: str, *, timeout: float) -> RetrievalOutcome:
        errors = []
        for position, provider in enumerate(self.providers):
            label = fallback_label(position)
            try:
                result = provider.fetch(uri, timeout=timeout)
            except RateLimitError as e:
                logger.warning("[import] %s rate limited for %s, falling through", provider.name, uri)
                errors.append(f"{provider.name}: {e}")
                continue
            except Exception as e:
                logger.warning("[import] %s failed for %s: %s", provider.name, uri, e)
                errors.append(f"{provider.name}: {e}")
                continue
            if result is None or not (result.content or "").strip():
                errors.append(f"{provider.name}: empty content")
                continue
            return RetrievalOutcome(
                content=result.content,
                provider_used=label,
                published_at=result.published_at,
                warning=result.warning,
                provider_name=provider.name,
                title=result.title,
            )
        return RetrievalOutcome.failure("; ".join(errors) or "no provider returned content")

    def __repr__(self) -> str:
        return f"ProviderChain({[p.name for p in self.providers]})"


def build_provider_chain(settings: ImportSettings) -> ProviderChain:
    providers: List[BaseProvider] = []
    if settings.firecrawl_enabled:
        providers.append(FirecrawlProvider(api_key=settings.firecrawl_api_key or ""))
    if settings.jina_api_key:
        providers.append(JinaReaderProvider(api_key=settings.jina_api_key))
    providers.append(DirectFetchProvider())
    return ProviderChain(providers)
