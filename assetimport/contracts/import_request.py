"""Bulk import request contract.

The request is the JSON body the import endpoint and `import_worker.py`
accept:

    {"posts": [{"url": ..., "title": ..., "content": ...?, ...}],
     "scrapeMissingContent": false}

Shape problems reject the whole request; per-post URI validity is checked
later by the normalizer so one bad link does not sink the batch.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from jsonschema import Draft202012Validator

from assetimport.errors import BatchValidationError
from assetimport.extraction.dates import parse_datetime
from assetimport.ingestion.candidate_types import ImportCandidate
from assetimport.ingestion.normalizer import MAX_BATCH_SIZE


IMPORT_REQUEST_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["posts"],
    "properties": {
        "posts": {
            "type": "array",
            "minItems": 1,
            "maxItems": MAX_BATCH_SIZE,
            "items": {
                "type": "object",
                "required": ["url", "title"],
                "properties": {
                    "url": {"type": "string"},
                    "title": {"type": "string"},
                    "detectedAssetType": {"type": ["string", "null"]},
                    "content": {"type": ["string", "null"]},
                    "publishedDate": {"type": ["string", "null"]},
                },
                "additionalProperties": True,
            },
        },
        "scrapeMissingContent": {"type": "boolean"},
    },
    "additionalProperties": True,
}

_VALIDATOR = Draft202012Validator(IMPORT_REQUEST_SCHEMA)


def validate_import_request(payload: Any) -> List[str]:
    """Return a list of human-readable schema errors (empty when valid)."""
    errors = []
    for err in sorted(_VALIDATOR.iter_errors(payload), key=lambda e: list(e.absolute_path)):
        path = "/".join(str(p) for p in err.absolute_path) or "<root>"
        errors.append(f"{path}: {err.message}")
    return errors


def candidates_from_request(payload: Any) -> Tuple[List[ImportCandidate], bool]:
    """Build candidates from a request body; returns (candidates, allow_live_retrieval)."""
    errors = validate_import_request(payload)
    if errors:
        raise BatchValidationError("Validation failed: " + "; ".join(errors))
    candidates = [
        ImportCandidate(
            source_uri=post["url"],
            display_title=post["title"],
            suggested_kind=post.get("detectedAssetType") or None,
            prefetched_content=post.get("content") or None,
            prefetched_published_at=parse_datetime(post.get("publishedDate")),
        )
        for post in payload["posts"]
    ]
    return candidates, bool(payload.get("scrapeMissingContent", False))
