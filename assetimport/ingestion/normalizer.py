"""Batch normalization: trim + validate source URIs, collapse in-batch duplicates.

Pure function; per-item problems become ItemResults, only batch-shape problems raise.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from assetimport.errors import BatchValidationError
from assetimport.ingestion.candidate_types import ImportCandidate, ItemResult
from assetimport.ingestion.url_utils import clean_source_uri

MAX_BATCH_SIZE = 100


@dataclass
class NormalizedBatch:
    accepted: List[ImportCandidate] = field(default_factory=list)
    early_results: List[ItemResult] = field(default_factory=list)


def normalize_candidates(
    candidates: Sequence[ImportCandidate],
    *,
    max_batch: int = MAX_BATCH_SIZE,
    dedup_key: Optional[Callable[[str], str]] = None,
) -> NormalizedBatch:
    if not candidates:
        raise BatchValidationError("at least one candidate is required")
    if len(candidates) > max_batch:
        raise BatchValidationError(f"batch has {len(candidates)} candidates; maximum is {max_batch}")

    key_of = dedup_key or (lambda uri: uri)
    out = NormalizedBatch()
    seen = set()
    for cand in candidates:
        uri = clean_source_uri(cand.source_uri)
        if uri is None:
            out.early_results.append(ItemResult.failed(cand, f"invalid source URI: {cand.source_uri!r}"))
            continue
        if uri != cand.source_uri:
            cand = dataclasses.replace(cand, source_uri=uri)
        key = key_of(uri)
        if key in seen:
            out.early_results.append(ItemResult.skipped_in_batch(cand))
            continue
        seen.add(key)
        out.accepted.append(cand)
    return out
