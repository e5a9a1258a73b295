"""Environment-driven settings for the import pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or not str(value).strip():
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _env_float(value: Optional[str], default: Optional[float]) -> Optional[float]:
    if value is None or not str(value).strip():
        return default
    return float(value)


@dataclass(frozen=True)
class ImportSettings:
    pg_dsn: str = "dbname=assetimport user=assetimport password=assetimport host=localhost port=5432"
    scraping_provider: str = "jina"
    firecrawl_api_key: Optional[str] = None
    jina_api_key: Optional[str] = None
    group_width: int = 5
    # ~17 requests/min, under Firecrawl's 20/min free-tier ceiling
    sequential_delay: float = 3.5
    provider_timeout: float = 30.0
    min_content_chars: int = 100
    max_batch: int = 100
    batch_deadline: Optional[float] = None
    canonical_dedup: bool = False
    s3_bucket: Optional[str] = None
    aws_region: str = "us-east-1"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ImportSettings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            pg_dsn=env.get("PG_DSN", defaults.pg_dsn),
            scraping_provider=(env.get("SCRAPING_PROVIDER") or defaults.scraping_provider).strip().lower(),
            firecrawl_api_key=(env.get("FIRECRAWL_API_KEY") or "").strip() or None,
            jina_api_key=(env.get("JINA_API_KEY") or "").strip() or None,
            group_width=int(env.get("IMPORT_GROUP_WIDTH", defaults.group_width)),
            sequential_delay=float(env.get("IMPORT_SEQUENTIAL_DELAY", defaults.sequential_delay)),
            provider_timeout=float(env.get("IMPORT_PROVIDER_TIMEOUT", defaults.provider_timeout)),
            min_content_chars=int(env.get("IMPORT_MIN_CONTENT_CHARS", defaults.min_content_chars)),
            max_batch=int(env.get("IMPORT_MAX_BATCH", defaults.max_batch)),
            batch_deadline=_env_float(env.get("IMPORT_BATCH_DEADLINE"), None),
            canonical_dedup=_env_bool(env.get("IMPORT_CANONICAL_DEDUP")),
            s3_bucket=(env.get("AWS_S3_BUCKET_NAME") or "").strip() or None,
            aws_region=env.get("AWS_REGION", defaults.aws_region),
        )

    @property
    def firecrawl_enabled(self) -> bool:
        return self.scraping_provider == "firecrawl" and bool(self.firecrawl_api_key)
