#!/usr/bin/env python3
"""Bulk import worker.

Discover, scrape and import externally hosted posts. The usual flow is
preview -> scrape -> import:

    python import_worker.py --tenant acme --blog https://example.com/blog --preview
    python import_worker.py --scrape https://example.com/blog/a https://example.com/blog/b --output posts.json
    python import_worker.py --tenant acme --input posts.json

`--input` takes the same JSON body the import endpoint accepts; `--feed`
and `--blog` import discovered posts directly.
"""

from __future__ import annotations

import argparse
import json
import logging

from dotenv import load_dotenv

from assetimport.config import ImportSettings
from assetimport.contracts.import_request import candidates_from_request
from assetimport.errors import BatchValidationError, KnownRecordsUnavailable
from assetimport.extraction.providers import build_provider_chain
from assetimport.ingestion.discovery import discover_blog_posts, discover_feed_posts, preview_posts
from assetimport.ingestion.known_records import KnownRecordIndex
from assetimport.ingestion.url_utils import canonicalize_url
from assetimport.pipeline.batch import run_import_batch
from assetimport.pipeline.scrape import import_request_from_scrape, scrape_selected
from assetimport.storage.blob_store import S3BlobStore
from assetimport.storage.postgres_assets import PostgresAssetStore
from assetimport.storage.postgres_schema import ensure_postgres_schema

logger = logging.getLogger("import_worker")


def _parse_args(argv):
    parser = argparse.ArgumentParser(description="Import externally hosted posts as assets")
    parser.add_argument("--tenant", help="account/tenant id to import into (required except with --scrape)")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--input", help="path to a JSON import request")
    src.add_argument("--feed", help="RSS/Atom feed URL to discover posts from")
    src.add_argument("--blog", help="blog URL to discover posts from (sitemaps, then feeds)")
    src.add_argument("--scrape", nargs="+", metavar="URL", help="scrape these URLs without importing")
    parser.add_argument("--output", help="with --scrape: write the import request JSON here instead of stdout")
    parser.add_argument("--preview", action="store_true", help="with --feed/--blog: list posts and duplicates only")
    parser.add_argument("--no-live", action="store_true", help="never call extraction providers")
    parser.add_argument("--ensure-schema", action="store_true", help="create Postgres tables first")
    args = parser.parse_args(argv)
    if not args.scrape and not args.tenant:
        parser.error("--tenant is required unless --scrape is given")
    return args


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2))


def _run_scrape(args, settings: ImportSettings) -> int:
    try:
        posts = scrape_selected(args.scrape, build_provider_chain(settings), settings=settings)
    except BatchValidationError as e:
        logger.error("[scrape] rejected: %s", e)
        return 1
    request = import_request_from_scrape(posts)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(request, f, indent=2)
        logger.info("[scrape] wrote %d posts to %s", len(request["posts"]), args.output)
    _print_json(
        {
            "success": True,
            "posts": [p.to_dict() for p in posts if p.success],
            "failed": [{"url": p.url, "error": p.error} for p in posts if not p.success],
            "total": len(posts),
            "successful": len(request["posts"]),
            "request": None if args.output else request,
        }
    )
    return 0


def main(argv=None) -> int:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = _parse_args(argv)
    settings = ImportSettings.from_env()

    if args.scrape:
        return _run_scrape(args, settings)

    if args.ensure_schema:
        ensure_postgres_schema(settings.pg_dsn)

    blob_store = S3BlobStore(settings.s3_bucket, region=settings.aws_region) if settings.s3_bucket else None
    store = PostgresAssetStore(settings.pg_dsn, blob_store=blob_store)
    key = canonicalize_url if settings.canonical_dedup else None

    try:
        if args.feed or args.blog:
            if args.feed:
                candidates = discover_feed_posts(args.feed, limit=settings.max_batch)
            else:
                candidates = discover_blog_posts(args.blog, limit=settings.max_batch)
            if args.preview:
                index = KnownRecordIndex.load(store, args.tenant, key=key)
                posts = preview_posts(candidates, index)
                _print_json(
                    {
                        "posts": [
                            {
                                "url": p.candidate.source_uri,
                                "title": p.candidate.display_title,
                                "publishedDate": (
                                    p.candidate.prefetched_published_at.isoformat()
                                    if p.candidate.prefetched_published_at
                                    else None
                                ),
                                "isDuplicate": p.is_duplicate,
                            }
                            for p in posts
                        ],
                        "total": len(posts),
                        "duplicates": sum(1 for p in posts if p.is_duplicate),
                    }
                )
                return 0
            allow_live = not args.no_live
        else:
            with open(args.input, "r", encoding="utf-8") as f:
                payload = json.load(f)
            candidates, allow_live = candidates_from_request(payload)
            allow_live = allow_live and not args.no_live

        if not candidates:
            logger.error("[import] no posts discovered")
            return 1

        report = run_import_batch(
            candidates,
            args.tenant,
            chain=build_provider_chain(settings),
            lookup=store,
            recorder=store,
            allow_live_retrieval=allow_live,
            settings=settings,
        )
    except (BatchValidationError, KnownRecordsUnavailable) as e:
        logger.error("[import] batch rejected: %s", e)
        return 1

    _print_json({"success": True, "results": report.to_dict(),
                 "message": f"Imported {report.succeeded} of {report.total} posts"})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
