"""Usability check for retrieved content."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from assetimport.ingestion.candidate_types import RetrievalOutcome

MIN_CONTENT_CHARS = 100


class Verdict(str, Enum):
    PASS = "pass"
    PASS_WITH_WARNING = "pass_with_warning"
    FAIL = "fail"


@dataclass(frozen=True)
class ValidationResult:
    verdict: Verdict
    reason: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.verdict is not Verdict.FAIL


def validate_outcome(outcome: RetrievalOutcome, *, min_chars: int = MIN_CONTENT_CHARS) -> ValidationResult:
    if outcome.errored:
        return ValidationResult(Verdict.FAIL, outcome.error or "content extraction failed")
    n = len((outcome.content or "").strip())
    if n < min_chars:
        return ValidationResult(Verdict.FAIL, f"content too short ({n} chars, minimum {min_chars})")
    if outcome.warning:
        return ValidationResult(Verdict.PASS_WITH_WARNING, outcome.warning)
    return ValidationResult(Verdict.PASS)
