"""Command-line entrypoint for crawling channels and enriching collections."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from .config import CatalogConfig, CrawlLimits, EnrichmentConfig
from .enrichment import CollectionNotFoundError, EnrichmentScheduler, JobStatus
from .http_client import HttpFetchError, YoutubeClient
from .pagination import ChannelFetcher, build_channel_snapshot
from .parsers import ChannelSnapshot, ParsingError
from .store import CatalogStore, open_store

LOGGER = logging.getLogger(__name__)
_FETCH_FAILURE_LOG = "fetch_failures.ndjson"


@dataclass(slots=True)
class CrawlStats:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass(slots=True)
class CrawlResult:
    channel_ref: str
    snapshot: ChannelSnapshot


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crawl channel catalogs and backfill video details")
    parser.add_argument(
        "--store",
        type=Path,
        default=CatalogConfig().store_path,
        help="Path to the JSON catalog store (ignored when --db-url is given)",
    )
    parser.add_argument("--db-url", type=str, default=None, help="SQLAlchemy database URL for the catalog store")
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=CatalogConfig().log_dir,
        help="Directory for failure logs",
    )
    parser.add_argument(
        "--request-timeout",
        type=float,
        default=None,
        help="Seconds to wait for each HTTP request",
    )
    parser.add_argument(
        "--enrich-concurrency",
        type=int,
        default=EnrichmentConfig().concurrency,
        help="Number of concurrent detail fetches during enrichment",
    )
    parser.add_argument(
        "--enrich-delay",
        type=float,
        default=EnrichmentConfig().delay_seconds,
        help="Seconds each enrichment worker waits between requests",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl = subparsers.add_parser("crawl", help="Crawl one or more channels")
    crawl.add_argument(
        "channels",
        nargs="+",
        help="Channel handles (@name), channel ids or channel URLs; comma-separated values are split",
    )
    crawl.add_argument("--limit", type=int, default=CrawlLimits().count_limit, help="Maximum videos per channel")
    crawl.add_argument(
        "--max-age",
        type=float,
        default=None,
        help="Maximum video age in days (0 or negative disables the limit). Enables the Streams tab.",
    )
    crawl.add_argument(
        "--min-length",
        type=int,
        default=0,
        help="Skip videos shorter than this many seconds (0 disables)",
    )
    crawl.add_argument(
        "--shorts-limit",
        type=int,
        default=0,
        help="Maximum shorts per channel (0 disables the Shorts tab)",
    )
    crawl.add_argument(
        "--max-channels",
        type=int,
        default=CatalogConfig().max_concurrent_channels,
        help="Maximum channels crawled concurrently",
    )
    crawl.add_argument("--collection", type=str, default=None, help="Store snapshots into this collection (id or name)")
    crawl.add_argument("--output", type=Path, default=None, help="Write snapshots as JSON to this file")
    crawl.add_argument(
        "--enrich",
        action="store_true",
        help="Run enrichment on the collection after crawling (requires --collection)",
    )

    enrich = subparsers.add_parser("enrich", help="Backfill publish dates and descriptions for a collection")
    enrich.add_argument("collection", help="Collection id or name")
    return parser


def configure_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def _apply_limit(default: float | None, override: float | None) -> float | None:
    if override is None:
        return default
    if override <= 0:
        return None
    return override


def _split_channels(values: Sequence[str]) -> list[str]:
    channels: list[str] = []
    for value in values:
        channels.extend(part.strip() for part in value.split(",") if part.strip())
    return channels


def build_config(args: argparse.Namespace) -> CatalogConfig:
    config = CatalogConfig(
        store_path=args.store,
        db_url=args.db_url,
        log_dir=args.log_dir,
    )
    if args.request_timeout and args.request_timeout > 0:
        config.timeout.request_timeout = float(args.request_timeout)

    if args.enrich_concurrency < 1:
        raise ValueError("--enrich-concurrency must be at least 1")
    if args.enrich_delay < 0:
        raise ValueError("--enrich-delay must not be negative")
    config.enrichment.concurrency = args.enrich_concurrency
    config.enrichment.delay_seconds = float(args.enrich_delay)

    if args.command == "crawl":
        config.limits = CrawlLimits(
            count_limit=max(0, args.limit),
            max_age_days=_apply_limit(None, args.max_age),
            min_length_seconds=max(0, args.min_length),
            shorts_limit=max(0, args.shorts_limit),
        )
        config.max_concurrent_channels = max(1, args.max_channels)
    return config


def _record_fetch_failure(config: CatalogConfig, channel_ref: str, exc: Exception) -> None:
    payload = {
        "channel": channel_ref,
        "error": str(exc),
        "error_type": type(exc).__name__,
        "status_code": getattr(exc, "status_code", None),
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }

    log_path = config.log_dir / _FETCH_FAILURE_LOG
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False) + "\n")
    except OSError as file_error:  # pragma: no cover - filesystem failure path
        LOGGER.warning("Failed to record fetch failure for %s: %s", channel_ref, file_error)


async def crawl_channels(
    channel_refs: Sequence[str],
    config: CatalogConfig,
    client: ChannelFetcher,
) -> tuple[list[CrawlResult], CrawlStats]:
    """Crawl channels concurrently; failed channels are logged and left out.

    Results keep the order of ``channel_refs``.
    """

    stats = CrawlStats()
    semaphore = asyncio.Semaphore(max(1, config.max_concurrent_channels))
    total = len(channel_refs)

    async def _crawl(index: int, channel_ref: str) -> CrawlResult | None:
        async with semaphore:
            stats.processed += 1
            LOGGER.info("Channel %d/%d: %s", index + 1, total, channel_ref)
            try:
                snapshot = await build_channel_snapshot(channel_ref, config.limits, client)
            except (HttpFetchError, ParsingError, ValueError) as exc:
                LOGGER.error("Failed to process channel %s: %s", channel_ref, exc)
                _record_fetch_failure(config, channel_ref, exc)
                stats.failed += 1
                return None
            except Exception:
                LOGGER.exception("Unhandled error for channel %s", channel_ref)
                stats.failed += 1
                return None
            if snapshot.failed_sources:
                LOGGER.warning(
                    "Channel %s is partial; failed sources: %s",
                    channel_ref,
                    ", ".join(sorted(snapshot.failed_sources)),
                )
            stats.succeeded += 1
            return CrawlResult(channel_ref=channel_ref, snapshot=snapshot)

    outcomes = await asyncio.gather(*(_crawl(index, ref) for index, ref in enumerate(channel_refs)))
    return [outcome for outcome in outcomes if outcome is not None], stats


async def store_results(store: CatalogStore, collection_key: str, results: Sequence[CrawlResult]) -> str:
    """Upsert crawl results into a collection and return the collection id."""

    catalog = await store.load()
    collection = catalog.ensure_collection(collection_key)
    for result in results:
        collection.upsert_channel(result.channel_ref, result.snapshot)
    await store.save(catalog)
    LOGGER.info("Stored %d channel(s) in collection '%s'", len(results), collection.name)
    return collection.id


async def run_enrichment(
    store: CatalogStore,
    client: YoutubeClient,
    config: CatalogConfig,
    collection_key: str,
) -> JobStatus:
    catalog = await store.load()
    collection = catalog.find_collection(collection_key) or catalog.find_collection_by_name(collection_key)
    if collection is None:
        raise CollectionNotFoundError(f"Collection not found: {collection_key}")

    scheduler = EnrichmentScheduler(store, client.fetch_item_detail, config.enrichment)
    await scheduler.start(collection.id)
    job = await scheduler.wait(collection.id)
    print(json.dumps(job.to_dict(), ensure_ascii=False, indent=2))
    return job.status


def _write_output(results: Sequence[CrawlResult], output: Path | None) -> None:
    text = json.dumps([result.snapshot.to_dict() for result in results], ensure_ascii=False, indent=2)
    if output is None:
        sys.stdout.write(text + "\n")
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    LOGGER.info("Wrote %d channel(s) to %s", len(results), output)


async def _run_crawl(args: argparse.Namespace, config: CatalogConfig) -> int:
    channel_refs = _split_channels(args.channels)
    LOGGER.info("Processing %d channel(s): %s", len(channel_refs), ", ".join(channel_refs))
    LOGGER.info(
        "Limits: videos=%d age=%s min_length=%s shorts=%s concurrency=%d",
        config.limits.count_limit,
        f"{config.limits.max_age_days:g} days" if config.limits.max_age_days is not None else "unlimited",
        f"{config.limits.min_length_seconds}s" if config.limits.min_length_seconds else "disabled",
        config.limits.shorts_limit or "disabled",
        config.max_concurrent_channels,
    )

    async with YoutubeClient(config) as client:
        results, stats = await crawl_channels(channel_refs, config, client)
        LOGGER.info(
            "Processed %d channels: %d succeeded, %d failed",
            stats.processed,
            stats.succeeded,
            stats.failed,
        )

        enrich_status = JobStatus.COMPLETE
        if args.collection:
            store = open_store(config.store_path, config.db_url)
            collection_id = await store_results(store, args.collection, results)
            if args.enrich:
                enrich_status = await run_enrichment(store, client, config, collection_id)
        if args.output is not None or not args.collection:
            _write_output(results, args.output)

    if stats.failed or enrich_status is not JobStatus.COMPLETE:
        return 1
    return 0


async def _run_enrich(args: argparse.Namespace, config: CatalogConfig) -> int:
    store = open_store(config.store_path, config.db_url)
    async with YoutubeClient(config) as client:
        status = await run_enrichment(store, client, config, args.collection)
    return 0 if status is JobStatus.COMPLETE else 1


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging()
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    if args.command == "crawl" and args.enrich and not args.collection:
        parser.error("--enrich requires --collection")

    config.ensure_directories()
    try:
        if args.command == "crawl":
            return asyncio.run(_run_crawl(args, config))
        return asyncio.run(_run_enrich(args, config))
    except CollectionNotFoundError as exc:
        LOGGER.error("%s", exc)
        return 1


__all__ = [
    "CrawlResult",
    "CrawlStats",
    "build_arg_parser",
    "build_config",
    "configure_logging",
    "crawl_channels",
    "main",
    "run_enrichment",
    "store_results",
]


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
