"""Shared import data types.

ItemResult is a closed set of variants built through its named constructors;
BatchReport derives every count from its result list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from assetimport.ingestion.url_utils import title_from_slug

PRE_SUPPLIED = "pre-supplied"
PRIMARY = "primary"


def fallback_label(position: int) -> str:
    """Label for the provider at `position` in the chain (0 is the primary)."""
    return PRIMARY if position == 0 else f"fallback-{position}"


@dataclass(frozen=True)
class ImportCandidate:
    """One source submitted for import."""

    source_uri: str
    display_title: str = ""
    suggested_kind: Optional[str] = None
    prefetched_content: Optional[str] = None
    prefetched_published_at: Optional[datetime] = None

    @property
    def has_prefetched_content(self) -> bool:
        return bool(self.prefetched_content and self.prefetched_content.strip())


@dataclass(frozen=True)
class ProviderResult:
    content: str
    published_at: Optional[datetime] = None
    warning: Optional[str] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class RetrievalOutcome:
    content: str
    provider_used: Optional[str]
    published_at: Optional[datetime] = None
    warning: Optional[str] = None
    errored: bool = False
    error: Optional[str] = None
    provider_name: Optional[str] = None
    title: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "RetrievalOutcome":
        return cls(content="", provider_used=None, errored=True, error=error)

    @property
    def is_live(self) -> bool:
        return self.provider_used not in (None, PRE_SUPPLIED)


def resolve_title(candidate: ImportCandidate, outcome: Optional[RetrievalOutcome] = None) -> str:
    """Caller title, else the extracted page title, else one derived from the URL slug."""
    if candidate.display_title and candidate.display_title.strip():
        return candidate.display_title.strip()
    if outcome is not None and outcome.title and outcome.title.strip():
        return outcome.title.strip()
    return title_from_slug(candidate.source_uri)


class ItemStatus(str, Enum):
    IMPORTED = "imported"
    SKIPPED_DUPLICATE_IN_BATCH = "skipped_duplicate_in_batch"
    SKIPPED_ALREADY_IMPORTED = "skipped_already_imported"
    FAILED = "failed"


@dataclass(frozen=True)
class ItemResult:
    status: ItemStatus
    source_uri: str
    asset_id: Optional[str] = None
    detail: Optional[str] = None
    title: str = ""
    provider_used: Optional[str] = None
    with_warning: bool = False

    @classmethod
    def imported(
        cls,
        candidate: ImportCandidate,
        asset_id: str,
        *,
        provider_used: Optional[str] = None,
        warning: Optional[str] = None,
        title: Optional[str] = None,
    ) -> "ItemResult":
        return cls(
            status=ItemStatus.IMPORTED,
            source_uri=candidate.source_uri,
            asset_id=str(asset_id),
            detail=warning,
            title=title or candidate.display_title,
            provider_used=provider_used,
            with_warning=bool(warning),
        )

    @classmethod
    def skipped_in_batch(cls, candidate: ImportCandidate) -> "ItemResult":
        return cls(
            status=ItemStatus.SKIPPED_DUPLICATE_IN_BATCH,
            source_uri=candidate.source_uri,
            detail="Duplicate selected in this import",
            title=candidate.display_title,
        )

    @classmethod
    def skipped_already_imported(cls, candidate: ImportCandidate) -> "ItemResult":
        return cls(
            status=ItemStatus.SKIPPED_ALREADY_IMPORTED,
            source_uri=candidate.source_uri,
            detail="Already imported",
            title=candidate.display_title,
        )

    @classmethod
    def failed(
        cls,
        candidate: ImportCandidate,
        detail: str,
        *,
        provider_used: Optional[str] = None,
    ) -> "ItemResult":
        return cls(
            status=ItemStatus.FAILED,
            source_uri=candidate.source_uri,
            detail=detail,
            title=candidate.display_title,
            provider_used=provider_used,
        )

    @property
    def is_skipped(self) -> bool:
        return self.status in (ItemStatus.SKIPPED_DUPLICATE_IN_BATCH, ItemStatus.SKIPPED_ALREADY_IMPORTED)


@dataclass
class BatchReport:
    results: List[ItemResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.status is ItemStatus.IMPORTED)

    @property
    def succeeded_with_warning(self) -> int:
        return sum(1 for r in self.results if r.status is ItemStatus.IMPORTED and r.with_warning)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status is ItemStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.is_skipped)

    @property
    def live_retrievals(self) -> int:
        """Items that reached a remote provider (one scrape credit each)."""
        return sum(1 for r in self.results if r.provider_used not in (None, PRE_SUPPLIED))

    @property
    def asset_ids(self) -> List[str]:
        return [r.asset_id for r in self.results if r.asset_id]

    def by_status(self, status: ItemStatus) -> List[ItemResult]:
        return [r for r in self.results if r.status is status]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "success": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "withErrors": self.succeeded_with_warning,
            "liveRetrievals": self.live_retrievals,
            "assets": [
                {"id": r.asset_id, "title": r.title, "url": r.source_uri, "provider": r.provider_used}
                for r in self.results
                if r.status is ItemStatus.IMPORTED
            ],
            "warnings": [
                {"url": r.source_uri, "warning": r.detail}
                for r in self.results
                if r.status is ItemStatus.IMPORTED and r.with_warning
            ],
            "errors": [{"url": r.source_uri, "error": r.detail} for r in self.results if r.status is ItemStatus.FAILED],
            "skippedItems": [
                {"url": r.source_uri, "reason": r.detail, "status": r.status.value}
                for r in self.results
                if r.is_skipped
            ],
        }
