"""Postgres schema management for imported assets.

Schema creation is idempotent (CREATE IF NOT EXISTS).
"""

from __future__ import annotations

from typing import Iterable, Optional

import psycopg


SCHEMA_STATEMENTS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS assets (
      id BIGSERIAL PRIMARY KEY,
      tenant_id TEXT NOT NULL,
      title TEXT NOT NULL,
      source_url TEXT NOT NULL,
      source_url_hash TEXT NOT NULL,
      asset_type TEXT NOT NULL DEFAULT 'Blog Post',
      file_type TEXT NOT NULL DEFAULT 'text/markdown',
      blob_key TEXT,
      blob_url TEXT,
      extracted_text TEXT,
      status TEXT NOT NULL DEFAULT 'PROCESSED',
      provider TEXT,
      extraction_warning TEXT,
      published_at TIMESTAMPTZ,
      imported_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      UNIQUE (tenant_id, source_url)
    );
    """,
    # Backward-compatible column adds (safe if table already exists)
    "ALTER TABLE assets ADD COLUMN IF NOT EXISTS provider TEXT;",
    "ALTER TABLE assets ADD COLUMN IF NOT EXISTS extraction_warning TEXT;",
    "CREATE INDEX IF NOT EXISTS idx_assets_tenant_created ON assets (tenant_id, created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_assets_tenant_url_hash ON assets (tenant_id, source_url_hash);",
]


def ensure_postgres_schema(pg_dsn: str, *, statements: Optional[Iterable[str]] = None) -> None:
    """Ensure Postgres schema exists."""
    stmts = list(statements) if statements is not None else SCHEMA_STATEMENTS
    with psycopg.connect(pg_dsn, autocommit=True) as conn:
        with conn.cursor() as cur:
            for s in stmts:
                cur.execute(s)
