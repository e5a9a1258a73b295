"""Retrieval orchestration for one import batch.

The execution mode is decided once per batch:
- SEQUENTIAL when the primary provider is rate-limited and at least one item
  needs live retrieval; items run in input order with a fixed delay before
  every live retrieval after the first.
- CONCURRENT otherwise; items run in groups of `group_width` on a thread
  pool, each group finishing before the next starts. Completion order within
  a group is not input order.

One item's failure never stops the batch.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence

from assetimport.extraction.providers import ProviderChain
from assetimport.extraction.validation import MIN_CONTENT_CHARS, ValidationResult, validate_outcome
from assetimport.ingestion.candidate_types import PRE_SUPPLIED, ImportCandidate, ItemResult, RetrievalOutcome
from assetimport.ingestion.known_records import KnownRecordIndex

logger = logging.getLogger(__name__)

DEFAULT_GROUP_WIDTH = 5
DEFAULT_SEQUENTIAL_DELAY = 3.5


class ExecutionMode(str, Enum):
    SEQUENTIAL = "sequential"
    CONCURRENT = "concurrent"


@dataclass(frozen=True)
class Retrieved:
    """One candidate after retrieval + validation, or with a terminal result decided earlier."""

    candidate: ImportCandidate
    outcome: Optional[RetrievalOutcome] = None
    validation: Optional[ValidationResult] = None
    result: Optional[ItemResult] = None


def needs_live_retrieval(candidate: ImportCandidate, *, allow_live_retrieval: bool = True) -> bool:
    return allow_live_retrieval and not candidate.has_prefetched_content


def choose_execution_mode(
    candidates: Sequence[ImportCandidate],
    chain: ProviderChain,
    *,
    allow_live_retrieval: bool = True,
) -> ExecutionMode:
    if chain.primary_is_rate_limited and any(
        needs_live_retrieval(c, allow_live_retrieval=allow_live_retrieval) for c in candidates
    ):
        return ExecutionMode.SEQUENTIAL
    return ExecutionMode.CONCURRENT


class RetrievalOrchestrator:
    def __init__(
        self,
        chain: ProviderChain,
        index: KnownRecordIndex,
        *,
        allow_live_retrieval: bool = True,
        group_width: int = DEFAULT_GROUP_WIDTH,
        inter_item_delay: float = DEFAULT_SEQUENTIAL_DELAY,
        provider_timeout: float = 30.0,
        min_content_chars: int = MIN_CONTENT_CHARS,
        batch_deadline: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.chain = chain
        self.index = index
        self.allow_live_retrieval = allow_live_retrieval
        self.group_width = max(1, int(group_width))
        self.inter_item_delay = max(0.0, float(inter_item_delay))
        self.provider_timeout = provider_timeout
        self.min_content_chars = min_content_chars
        self.batch_deadline = batch_deadline
        self._sleep = sleep
        self._clock = clock
        self._deadline_at: Optional[float] = None
        self.mode: Optional[ExecutionMode] = None

    def run(self, candidates: Sequence[ImportCandidate]) -> Iterator[Retrieved]:
        items = list(candidates)
        self.mode = choose_execution_mode(items, self.chain, allow_live_retrieval=self.allow_live_retrieval)
        if self.batch_deadline is not None:
            self._deadline_at = self._clock() + self.batch_deadline
        live = sum(1 for c in items if needs_live_retrieval(c, allow_live_retrieval=self.allow_live_retrieval))
        logger.info(
            "[import] retrieving %d items mode=%s live=%d chain=%r", len(items), self.mode.value, live, self.chain
        )
        if self.mode is ExecutionMode.SEQUENTIAL:
            return self._run_sequential(items)
        return self._run_concurrent(items)

    def _deadline_passed(self) -> bool:
        return self._deadline_at is not None and self._clock() >= self._deadline_at

    def _deadline_result(self, candidate: ImportCandidate) -> Retrieved:
        return Retrieved(candidate, result=ItemResult.failed(candidate, "batch deadline exceeded"))

    def _run_sequential(self, items: List[ImportCandidate]) -> Iterator[Retrieved]:
        live_started = False

        def pace() -> None:
            nonlocal live_started
            if live_started and self.inter_item_delay:
                self._sleep(self.inter_item_delay)
            live_started = True

        for cand in items:
            if self._deadline_passed():
                yield self._deadline_result(cand)
                continue
            yield self._guarded(cand, before_live=pace)

    def _run_concurrent(self, items: List[ImportCandidate]) -> Iterator[Retrieved]:
        with ThreadPoolExecutor(max_workers=self.group_width, thread_name_prefix="import") as pool:
            for start in range(0, len(items), self.group_width):
                group = items[start:start + self.group_width]
                if self._deadline_passed():
                    for cand in group:
                        yield self._deadline_result(cand)
                    continue
                futures = {pool.submit(self._guarded, cand): cand for cand in group}
                for fut in as_completed(futures):
                    yield fut.result()

    def _guarded(self, candidate: ImportCandidate, before_live: Optional[Callable[[], None]] = None) -> Retrieved:
        try:
            return self.retrieve_one(candidate, before_live=before_live)
        except Exception as e:
            logger.exception("[import] unexpected error retrieving %s", candidate.source_uri)
            outcome = RetrievalOutcome.failure(f"unexpected error: {e}")
            return Retrieved(candidate, outcome=outcome, validation=self._validate(outcome))

    def _validate(self, outcome: RetrievalOutcome) -> ValidationResult:
        return validate_outcome(outcome, min_chars=self.min_content_chars)

    def retrieve_one(self, candidate: ImportCandidate, *, before_live: Optional[Callable[[], None]] = None) -> Retrieved:
        if not self.index.claim(candidate.source_uri):
            return Retrieved(candidate, result=ItemResult.skipped_in_batch(candidate))

        if candidate.has_prefetched_content:
            logger.debug("[import] using pre-supplied content for %s", candidate.source_uri)
            outcome = RetrievalOutcome(
                content=candidate.prefetched_content or "",
                provider_used=PRE_SUPPLIED,
                published_at=candidate.prefetched_published_at,
            )
        elif not self.allow_live_retrieval:
            outcome = RetrievalOutcome.failure("no content supplied and live retrieval is disabled")
        else:
            if before_live is not None:
                before_live()
            outcome = self.chain.retrieve(candidate.source_uri, timeout=self.provider_timeout)
            if candidate.prefetched_published_at and not outcome.errored:
                outcome = replace(outcome, published_at=candidate.prefetched_published_at)

        return Retrieved(candidate, outcome=outcome, validation=self._validate(outcome))
