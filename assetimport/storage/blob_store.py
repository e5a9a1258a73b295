"""S3 storage for imported content (one markdown object per asset)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import boto3

METADATA_MAX_CHARS = 2000
KEY_PREFIX = "blog-imports"


def slugify_title(title: str, *, max_len: int = 50) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (title or "").lower()).strip("-")
    return slug[:max_len].strip("-") or "untitled"


def sanitize_metadata(value: Any, max_len: int = METADATA_MAX_CHARS) -> str:
    """S3 user metadata travels as HTTP headers: printable ASCII only."""
    text = re.sub(r"[^\x20-\x7e]", "", str(value or ""))
    return text.strip()[:max_len]


def object_key_for(tenant_scope: str, title: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    return f"{KEY_PREFIX}/{tenant_scope}/{slugify_title(title)}-{millis}.md"


@dataclass
class S3BlobStore:
    bucket: str
    region: str = "us-east-1"
    client: Any = field(default=None, repr=False)

    def __post_init__(self):
        if self.client is None:
            self.client = boto3.client("s3", region_name=self.region)

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quote(key, safe='/')}"

    def put_markdown(self, key: str, body: str, *, metadata: Optional[Dict[str, Any]] = None) -> str:
        """Upload `body` under `key`; return the object URL."""
        meta = {k: sanitize_metadata(v) for k, v in (metadata or {}).items() if v is not None}
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body.encode("utf-8"),
            ContentType="text/markdown",
            Metadata=meta,
        )
        return self.url_for(key)

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)
