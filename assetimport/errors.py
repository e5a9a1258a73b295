"""Error taxonomy for the bulk import pipeline.

Only BatchValidationError and KnownRecordsUnavailable are allowed to escape
run_import_batch; everything else is recorded against the failing item.
"""

from __future__ import annotations

from typing import Optional


class AssetImportError(Exception):
    """Base class for import pipeline errors."""
    pass


class BatchValidationError(AssetImportError):
    """The submitted batch is malformed (empty, too large, bad payload)."""
    pass


class KnownRecordsUnavailable(AssetImportError):
    """Previously imported source URIs could not be loaded for the tenant."""
    pass


class ProviderError(AssetImportError):
    def __init__(self, message: str, *, provider: str = "unknown", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class RateLimitError(ProviderError):
    """Provider rejected the request because of its rate limit."""
    pass


class PersistenceError(AssetImportError):
    pass
