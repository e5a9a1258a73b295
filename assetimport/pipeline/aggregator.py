"""Collects per-item outcomes into a BatchReport and persists passing items."""

from __future__ import annotations

import logging
from typing import Iterable, List

from assetimport.extraction.validation import Verdict
from assetimport.ingestion.candidate_types import BatchReport, ItemResult, ItemStatus, resolve_title
from assetimport.ingestion.known_records import KnownRecordIndex
from assetimport.pipeline.orchestrator import Retrieved

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Only place the persistence collaborator is called from.

    `recorder` must provide create_record(candidate, outcome, tenant_scope) -> asset id.
    """

    def __init__(self, recorder, index: KnownRecordIndex, tenant_scope: str):
        self.recorder = recorder
        self.index = index
        self.tenant_scope = tenant_scope
        self._results: List[ItemResult] = []

    def add_results(self, results: Iterable[ItemResult]) -> None:
        self._results.extend(results)

    def record(self, item: Retrieved) -> ItemResult:
        result = self._classify(item)
        self._results.append(result)
        if result.status is ItemStatus.FAILED:
            logger.warning("[import] failed %s: %s", result.source_uri, result.detail)
        return result

    def _classify(self, item: Retrieved) -> ItemResult:
        if item.result is not None:
            return item.result
        cand, outcome, validation = item.candidate, item.outcome, item.validation
        if outcome is None or validation is None:
            return ItemResult.failed(cand, "no retrieval outcome")
        if validation.verdict is Verdict.FAIL:
            return ItemResult.failed(cand, validation.reason or "content rejected", provider_used=outcome.provider_used)

        try:
            asset_id = self.recorder.create_record(cand, outcome, self.tenant_scope)
        except Exception as e:
            return ItemResult.failed(cand, f"persistence failed: {e}", provider_used=outcome.provider_used)

        self.index.add(cand.source_uri)
        warning = validation.reason if validation.verdict is Verdict.PASS_WITH_WARNING else None
        logger.info(
            "[import] imported %s asset=%s provider=%s%s",
            cand.source_uri,
            asset_id,
            outcome.provider_name or outcome.provider_used,
            f" warning={warning}" if warning else "",
        )
        return ItemResult.imported(
            cand, asset_id, provider_used=outcome.provider_used, warning=warning, title=resolve_title(cand, outcome)
        )

    def report(self) -> BatchReport:
        return BatchReport(results=list(self._results))
