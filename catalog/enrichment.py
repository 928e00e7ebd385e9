"""Background backfill of exact publish dates and descriptions.

One job per collection key. A job builds its queue once, then runs a small
pool of cooperative workers that claim queue indexes from a shared cursor.
Any HTTP 429 trips a shared flag that stops every worker after its current
item. Progress is saved at most once per ``save_interval`` while running and
unconditionally once all workers have stopped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .config import EnrichmentConfig
from .http_client import HttpFetchError, RateLimitedError
from .parsers import ContentItem, Enrichment, ParsingError
from .store import Catalog, CatalogStore, Collection, utc_now_iso

LOGGER = logging.getLogger(__name__)

FetchDetail = Callable[[str], Awaitable[Enrichment]]
_LOGGED_FAILURES = 5
_PROGRESS_EVERY = 10


class CollectionNotFoundError(LookupError):
    """Raised when an enrichment start names an unknown collection."""


class JobStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    RATE_LIMITED = "rate-limited"
    ERROR = "error"


@dataclass(slots=True)
class EnrichmentJob:
    collection_key: str
    status: JobStatus = JobStatus.RUNNING
    total: int = 0
    enriched_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    rate_limited: bool = False
    started_at: str = field(default_factory=utc_now_iso)
    completed_at: Optional[str] = None
    error: Optional[str] = None

    def finish(self, status: JobStatus, error: str | None = None) -> None:
        self.status = status
        self.error = error
        self.completed_at = utc_now_iso()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "collectionId": self.collection_key,
            "status": self.status.value,
            "total": self.total,
            "enriched": self.enriched_count,
            "skipped": self.skipped_count,
            "failed": self.failed_count,
            "rateLimited": self.rate_limited,
            "startedAt": self.started_at,
        }
        if self.completed_at:
            payload["completedAt"] = self.completed_at
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class StartResult:
    started: bool
    job: EnrichmentJob
    message: Optional[str] = None


@dataclass(slots=True)
class CollectionStats:
    total_videos: int = 0
    enriched_videos: int = 0
    shorts_count: int = 0

    @property
    def all_enriched(self) -> bool:
        return self.total_videos > 0 and self.enriched_videos == self.total_videos


@dataclass(slots=True)
class EnrichmentStatus:
    status: JobStatus
    total: int
    enriched: int
    skipped: int
    failed: int
    rate_limited: bool
    stats: CollectionStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "total": self.total,
            "enriched": self.enriched,
            "skipped": self.skipped,
            "failed": self.failed,
            "rateLimited": self.rate_limited,
            "allEnriched": self.stats.all_enriched,
            "totalVideos": self.stats.total_videos,
            "enrichedVideos": self.stats.enriched_videos,
            "shortsCount": self.stats.shorts_count,
        }


def collection_stats(collection: Collection) -> CollectionStats:
    stats = CollectionStats()
    for item in collection.iter_items():
        if item.is_short:
            stats.shorts_count += 1
            continue
        stats.total_videos += 1
        if item.is_enriched:
            stats.enriched_videos += 1
    return stats


def build_queue(collection: Collection) -> tuple[list[ContentItem], int]:
    """Return the items needing enrichment and how many were skipped."""

    queue: list[ContentItem] = []
    skipped = 0
    for item in collection.iter_items():
        if item.needs_enrichment:
            queue.append(item)
        else:
            skipped += 1
    return queue, skipped


class _EnrichmentRun:
    """Shared state for the workers of one job run."""

    def __init__(
        self,
        job: EnrichmentJob,
        catalog: Catalog,
        queue: list[ContentItem],
        save: Callable[[Catalog], Awaitable[None]],
        clock: Callable[[], float],
        save_interval: float,
    ) -> None:
        self.job = job
        self.catalog = catalog
        self.queue = queue
        self.next_index = 0
        self.rate_limited = False
        self._save = save
        self._clock = clock
        self._save_interval = save_interval
        self._last_save = clock()
        self._save_task: asyncio.Task | None = None

    def claim(self) -> int | None:
        if self.rate_limited or self.next_index >= len(self.queue):
            return None
        index = self.next_index
        self.next_index += 1
        return index

    def maybe_save(self) -> None:
        now = self._clock()
        if now - self._last_save < self._save_interval:
            return
        if self._save_task is not None and not self._save_task.done():
            return
        self._last_save = now
        self._save_task = asyncio.create_task(self._save(self.catalog))

    async def flush(self) -> None:
        if self._save_task is not None:
            try:
                await self._save_task
            except Exception:
                LOGGER.exception("Periodic enrichment save failed for %s", self.job.collection_key)
            self._save_task = None
        await self._save(self.catalog)


class EnrichmentScheduler:
    """Owns the enrichment jobs of one process, keyed by collection id.

    Concurrent jobs share one loaded :class:`Catalog` so that every save
    carries the progress of all of them; the catalog is reloaded from the
    store only when no job is running. Saves are serialized.
    """

    def __init__(
        self,
        store: CatalogStore,
        fetch_detail: FetchDetail,
        config: EnrichmentConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._store = store
        self._fetch_detail = fetch_detail
        self._config = config or EnrichmentConfig()
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._jobs: dict[str, EnrichmentJob] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._catalog: Catalog | None = None
        self._load_lock = asyncio.Lock()
        self._save_lock = asyncio.Lock()

    def get_status(self, collection_key: str) -> EnrichmentJob | None:
        return self._jobs.get(collection_key)

    def describe(self, collection: Collection) -> EnrichmentStatus:
        job = self._jobs.get(collection.id)
        stats = collection_stats(collection)
        if job is None:
            return EnrichmentStatus(
                status=JobStatus.IDLE,
                total=stats.total_videos,
                enriched=stats.enriched_videos,
                skipped=stats.shorts_count,
                failed=0,
                rate_limited=False,
                stats=stats,
            )
        return EnrichmentStatus(
            status=job.status,
            total=job.total,
            enriched=job.enriched_count,
            skipped=job.skipped_count,
            failed=job.failed_count,
            rate_limited=job.rate_limited,
            stats=stats,
        )

    async def start(self, collection_key: str) -> StartResult:
        existing = self._jobs.get(collection_key)
        if existing is not None and existing.status is JobStatus.RUNNING:
            return StartResult(started=False, job=existing, message="Enrichment already in progress")

        # Registered before the first await so a concurrent start sees it.
        job = EnrichmentJob(collection_key=collection_key)
        self._jobs[collection_key] = job
        try:
            catalog = await self._shared_catalog(collection_key)
        except Exception as exc:
            job.finish(JobStatus.ERROR, str(exc))
            raise

        collection = catalog.find_collection(collection_key)
        if collection is None:
            # Kept as ERROR: a concurrent start may already hold this job.
            message = f"Collection not found: {collection_key}"
            job.finish(JobStatus.ERROR, message)
            raise CollectionNotFoundError(message)

        queue, skipped = build_queue(collection)
        job.total = len(queue)
        job.skipped_count = skipped
        LOGGER.info(
            "Starting enrichment for collection %s: %d to enrich, %d skipped (concurrency=%d, delay=%.2fs)",
            collection_key,
            job.total,
            skipped,
            self._config.concurrency,
            self._config.delay_seconds,
        )
        self._tasks[collection_key] = asyncio.create_task(self._run(job, catalog, queue))
        return StartResult(started=True, job=job)

    async def _shared_catalog(self, collection_key: str) -> Catalog:
        async with self._load_lock:
            busy = any(
                job.status is JobStatus.RUNNING
                for key, job in self._jobs.items()
                if key != collection_key
            )
            if self._catalog is None or not busy:
                self._catalog = await self._store.load()
            return self._catalog

    async def _save(self, catalog: Catalog) -> None:
        async with self._save_lock:
            await self._store.save(catalog)

    async def wait(self, collection_key: str) -> EnrichmentJob | None:
        task = self._tasks.get(collection_key)
        if task is not None:
            await task
        return self._jobs.get(collection_key)

    async def join(self) -> None:
        tasks = [task for task in self._tasks.values() if not task.done()]
        if tasks:
            await asyncio.gather(*tasks)

    async def _run(self, job: EnrichmentJob, catalog: Catalog, queue: list[ContentItem]) -> None:
        try:
            if not queue:
                job.finish(JobStatus.COMPLETE)
                LOGGER.info("Nothing to enrich for collection %s", job.collection_key)
                return

            run = _EnrichmentRun(job, catalog, queue, self._save, self._clock, self._config.save_interval)
            worker_count = min(max(1, self._config.concurrency), len(queue))
            LOGGER.info("Starting %d concurrent workers", worker_count)
            workers = [
                asyncio.create_task(self._worker(run, worker_id, worker_count))
                for worker_id in range(worker_count)
            ]
            try:
                await asyncio.gather(*workers)
            finally:
                # No worker may outlive the job, and the final save always runs.
                for worker in workers:
                    worker.cancel()
                await asyncio.gather(*workers, return_exceptions=True)
                await run.flush()

            job.finish(JobStatus.RATE_LIMITED if run.rate_limited else JobStatus.COMPLETE)
            LOGGER.info(
                "Enrichment %s for %s: %d enriched, %d failed%s",
                job.status.value,
                job.collection_key,
                job.enriched_count,
                job.failed_count,
                " (stopped due to rate limit)" if run.rate_limited else "",
            )
        except Exception as exc:
            LOGGER.exception("Enrichment error for collection %s", job.collection_key)
            job.finish(JobStatus.ERROR, str(exc))

    async def _worker(self, run: _EnrichmentRun, worker_id: int, worker_count: int) -> None:
        delay = max(0.0, self._config.delay_seconds)
        if worker_id > 0:
            await self._sleep(delay / worker_count * worker_id)

        while True:
            index = run.claim()
            if index is None:
                break
            if not await self._process(run, run.queue[index]):
                break
            if not run.rate_limited:
                await self._sleep(delay)

    async def _process(self, run: _EnrichmentRun, item: ContentItem) -> bool:
        """Enrich one item; return False when the worker should stop."""

        job = run.job
        try:
            detail = await self._fetch_detail(item.id)
        except RateLimitedError:
            LOGGER.warning("Rate limited (429) on %s; stopping all workers", item.id)
            run.rate_limited = True
            job.rate_limited = True
            return False
        except Exception as exc:
            job.failed_count += 1
            if job.failed_count <= _LOGGED_FAILURES:
                LOGGER.warning(
                    "Failed to enrich video %s: %s",
                    item.id,
                    exc,
                    exc_info=not isinstance(exc, (HttpFetchError, ParsingError)),
                )
            elif job.failed_count == _LOGGED_FAILURES + 1:
                LOGGER.warning("Suppressing further enrichment failure messages")
            return True

        item.enrichment.publish_date_exact = detail.publish_date_exact
        item.enrichment.description = detail.description
        job.enriched_count += 1
        if job.enriched_count % _PROGRESS_EVERY == 0 or job.enriched_count == job.total:
            LOGGER.info(
                "Progress: %d/%d videos enriched (%d failed)",
                job.enriched_count,
                job.total,
                job.failed_count,
            )
        run.maybe_save()
        return True


__all__ = [
    "CollectionNotFoundError",
    "CollectionStats",
    "EnrichmentJob",
    "EnrichmentScheduler",
    "EnrichmentStatus",
    "JobStatus",
    "StartResult",
    "build_queue",
    "collection_stats",
]
