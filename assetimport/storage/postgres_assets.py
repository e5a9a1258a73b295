"""Postgres-backed asset records: known-source lookup and record creation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Set

import psycopg
from psycopg import errors as pg_errors

from assetimport.errors import PersistenceError
from assetimport.ingestion.candidate_types import ImportCandidate, RetrievalOutcome, resolve_title
from assetimport.ingestion.url_utils import url_hash
from assetimport.storage.blob_store import S3BlobStore, object_key_for

logger = logging.getLogger(__name__)

DEFAULT_ASSET_TYPE = "Blog Post"


class PostgresAssetStore:
    def __init__(self, pg_dsn: str, blob_store: Optional[S3BlobStore] = None):
        self.pg_dsn = pg_dsn
        self.blob_store = blob_store

    def list_known_source_uris(self, tenant_scope: str) -> Set[str]:
        with psycopg.connect(self.pg_dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT source_url FROM assets WHERE tenant_id = %s", (tenant_scope,))
                return {r[0] for r in cur.fetchall() if r and r[0]}

    def create_record(self, candidate: ImportCandidate, outcome: RetrievalOutcome, tenant_scope: str) -> str:
        """Store content (blob first, then row); return the new asset id."""
        now = datetime.now(timezone.utc)
        title = resolve_title(candidate, outcome)
        blob_key = None
        blob_url = None
        if self.blob_store is not None:
            blob_key = object_key_for(tenant_scope, title, now)
            try:
                blob_url = self.blob_store.put_markdown(
                    blob_key,
                    outcome.content,
                    metadata={
                        "original-title": title,
                        "source-url": candidate.source_uri,
                        "imported-at": now.isoformat(),
                        "published-date": outcome.published_at.isoformat() if outcome.published_at else None,
                        "extraction-warning": outcome.warning,
                    },
                )
            except Exception as e:
                raise PersistenceError(f"blob upload failed: {e}") from e

        try:
            with psycopg.connect(self.pg_dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO assets (
                          tenant_id, title, source_url, source_url_hash, asset_type, blob_key, blob_url,
                          extracted_text, status, provider, extraction_warning, published_at, imported_at
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, 'PROCESSED', %s, %s, %s, %s)
                        RETURNING id
                        """,
                        (
                            tenant_scope,
                            title,
                            candidate.source_uri,
                            url_hash(candidate.source_uri),
                            candidate.suggested_kind or DEFAULT_ASSET_TYPE,
                            blob_key,
                            blob_url,
                            outcome.content,
                            outcome.provider_name or outcome.provider_used,
                            outcome.warning,
                            outcome.published_at,
                            now,
                        ),
                    )
                    row = cur.fetchone()
        except pg_errors.UniqueViolation as e:
            self._discard_blob(blob_key)
            raise PersistenceError("already imported") from e
        except psycopg.Error as e:
            self._discard_blob(blob_key)
            raise PersistenceError(str(e)) from e
        return str(row[0])

    def _discard_blob(self, blob_key: Optional[str]) -> None:
        """Remove an uploaded object whose row was never written."""
        if self.blob_store is None or not blob_key:
            return
        try:
            self.blob_store.delete(blob_key)
        except Exception as e:
            logger.warning("[import] could not remove orphaned blob %s: %s", blob_key, e)
