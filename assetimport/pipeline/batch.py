"""Entry point: turn a list of import candidates into a BatchReport."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from assetimport.config import ImportSettings
from assetimport.extraction.providers import ProviderChain
from assetimport.ingestion.candidate_types import BatchReport, ImportCandidate, ItemResult
from assetimport.ingestion.known_records import KnownRecordIndex
from assetimport.ingestion.normalizer import normalize_candidates
from assetimport.ingestion.url_utils import canonicalize_url
from assetimport.pipeline.aggregator import ResultAggregator
from assetimport.pipeline.orchestrator import RetrievalOrchestrator

logger = logging.getLogger(__name__)


def run_import_batch(
    candidates: Sequence[ImportCandidate],
    tenant_scope: str,
    *,
    chain: ProviderChain,
    lookup,
    recorder,
    allow_live_retrieval: bool = True,
    settings: Optional[ImportSettings] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> BatchReport:
    """Import one batch for `tenant_scope`.

    `lookup` provides list_known_source_uris(tenant_scope); `recorder` provides
    create_record(candidate, outcome, tenant_scope). Raises BatchValidationError
    for a malformed batch and KnownRecordsUnavailable when the lookup fails;
    every other problem is reported per item.
    """
    settings = settings or ImportSettings()
    key = canonicalize_url if settings.canonical_dedup else None
    started = clock()

    normalized = normalize_candidates(candidates, max_batch=settings.max_batch, dedup_key=key)
    index = KnownRecordIndex.load(lookup, tenant_scope, key=key)

    aggregator = ResultAggregator(recorder, index, tenant_scope)
    aggregator.add_results(normalized.early_results)

    pending = []
    for cand in normalized.accepted:
        if index.contains(cand.source_uri):
            aggregator.add_results([ItemResult.skipped_already_imported(cand)])
        else:
            pending.append(cand)

    if pending:
        orchestrator = RetrievalOrchestrator(
            chain,
            index,
            allow_live_retrieval=allow_live_retrieval,
            group_width=settings.group_width,
            inter_item_delay=settings.sequential_delay,
            provider_timeout=settings.provider_timeout,
            min_content_chars=settings.min_content_chars,
            batch_deadline=settings.batch_deadline,
            sleep=sleep,
            clock=clock,
        )
        for item in orchestrator.run(pending):
            aggregator.record(item)

    report = aggregator.report()
    logger.info(
        "[import] tenant=%s completed: %d succeeded (%d with warnings), %d failed, %d skipped of %d in %.1fs",
        tenant_scope,
        report.succeeded,
        report.succeeded_with_warning,
        report.failed,
        report.skipped,
        report.total,
        clock() - started,
    )
    return report
