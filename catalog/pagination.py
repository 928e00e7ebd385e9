"""Cursor-driven paging across a channel's Videos, Streams and Shorts tabs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol
from urllib.parse import urlparse

from .config import PLATFORM_ORIGIN, CrawlLimits
from .http_client import HttpFetchError
from .parsers import (
    ChannelSnapshot,
    ContentItem,
    ContentKind,
    Cursor,
    ExtractionError,
    ParsedPage,
    SourceKind,
)
from .parsers.channel import extract_about_details, extract_channel_details, merge_about_details
from .parsers.initial_data import extract_initial_data
from .parsers.renderers import (
    find_shorts_tab,
    find_streams_tab,
    find_videos_tab,
    parse_continuation_response,
)
from .relative_time import below_min_length, exceeds_max_age, is_upcoming

LOGGER = logging.getLogger(__name__)

_TAB_SUFFIXES = ("videos", "streams", "shorts", "about", "featured", "playlists", "community")


class ChannelFetcher(Protocol):
    async def fetch_page(self, url: str) -> str: ...

    async def fetch_continuation(self, cursor: Cursor) -> dict: ...


class StopReason(str, Enum):
    COUNT_LIMIT = "count_limit"
    AGE_LIMIT = "age_limit"
    NO_MORE_PAGES = "no_more_pages"
    EMPTY_PAGE = "empty_page"
    ERROR = "error"


@dataclass(slots=True)
class ChannelUrls:
    identifier: str
    is_handle: bool
    base_url: str

    @property
    def videos(self) -> str:
        return f"{self.base_url}/videos"

    @property
    def streams(self) -> str:
        return f"{self.base_url}/streams"

    @property
    def shorts(self) -> str:
        return f"{self.base_url}/shorts"

    @property
    def about(self) -> str:
        return f"{self.base_url}/about"

    def for_source(self, source: SourceKind) -> str:
        return {
            SourceKind.VIDEOS: self.videos,
            SourceKind.STREAMS: self.streams,
            SourceKind.SHORTS: self.shorts,
        }[source]


def channel_urls(channel_ref: str) -> ChannelUrls:
    """Derive tab URLs from an ``@handle``, a channel id or a channel URL."""

    ref = channel_ref.strip()
    if ref.startswith(("http://", "https://")):
        segments = [segment for segment in urlparse(ref).path.split("/") if segment]
        if segments and segments[-1] in _TAB_SUFFIXES:
            segments.pop()
        if segments and segments[0] == "channel" and len(segments) > 1:
            ref = segments[1]
        elif segments and segments[0].startswith("@"):
            ref = segments[0]
        else:
            raise ValueError(f"Unsupported channel URL: {channel_ref}")
    if not ref:
        raise ValueError("Channel reference must not be empty")

    is_handle = ref.startswith("@")
    base_url = f"{PLATFORM_ORIGIN}/{ref}" if is_handle else f"{PLATFORM_ORIGIN}/channel/{ref}"
    return ChannelUrls(identifier=ref, is_handle=is_handle, base_url=base_url)


@dataclass(slots=True)
class SourceRun:
    """Outcome of paging one source; ``limit`` is the budget it was given."""

    source: SourceKind
    limit: int
    items: list[ContentItem] = field(default_factory=list)
    stop_reason: StopReason | None = None
    pages: int = 0
    skipped_upcoming: int = 0
    skipped_length: int = 0
    error: str | None = None

    @property
    def accepted(self) -> int:
        return len(self.items)

    @property
    def failed(self) -> bool:
        return self.error is not None


class PaginationAggregator:
    """Page one channel source at a time, applying the stop/skip rules.

    Per item, in order: the count limit stops the run before the item is
    considered; Streams skip upcoming entries; Videos and Streams stop at the
    first item older than ``max_age_days``; items shorter than the minimum
    length are skipped. Shorts only honour the count limit.
    """

    def __init__(self, client: ChannelFetcher, limits: CrawlLimits) -> None:
        self._client = client
        self._limits = limits

    async def run_source(self, source: SourceKind, url: str, limit: int) -> SourceRun:
        run = SourceRun(source=source, limit=limit)
        html = await self._client.fetch_page(url)
        page = _FIRST_PAGE_FINDERS[source](extract_initial_data(html), url)
        if page.items:
            LOGGER.info("Found %d %s on the initial page of %s", len(page.items), source.value, url)
        else:
            LOGGER.warning("No %s found on %s", source.value, url)

        while True:
            run.pages += 1
            if not page.items:
                run.stop_reason = StopReason.EMPTY_PAGE
                break
            if self._consume_page(run, page):
                break
            if page.cursor is None:
                run.stop_reason = StopReason.NO_MORE_PAGES
                break
            if run.accepted >= run.limit:
                run.stop_reason = StopReason.COUNT_LIMIT
                break

            LOGGER.info(
                "Loading more %s (page %d), progress: %d/%d",
                source.value,
                run.pages,
                run.accepted,
                run.limit,
            )
            data = await self._client.fetch_continuation(page.cursor)
            page = parse_continuation_response(data, source, url)

        LOGGER.info(
            "%s fetched: %d (%s) after %d page(s)",
            source.value.capitalize(),
            run.accepted,
            run.stop_reason.value,
            run.pages,
        )
        if run.skipped_upcoming:
            LOGGER.info("Skipped %d upcoming/scheduled streams", run.skipped_upcoming)
        return run

    def _consume_page(self, run: SourceRun, page: ParsedPage) -> bool:
        """Apply the per-item rules; return True once the run has stopped."""

        limits = self._limits
        for item in page.items:
            if run.accepted >= run.limit:
                run.stop_reason = StopReason.COUNT_LIMIT
                return True
            if run.source is SourceKind.SHORTS:
                item.kind = ContentKind.SHORT
                run.items.append(item)
                continue
            if run.source is SourceKind.STREAMS and is_upcoming(item.relative_published_time_text):
                run.skipped_upcoming += 1
                continue
            if exceeds_max_age(item.relative_published_time_text, limits.max_age_days):
                LOGGER.info(
                    "Age limit reached (%s days) at: %s",
                    limits.max_age_days,
                    item.relative_published_time_text,
                )
                run.stop_reason = StopReason.AGE_LIMIT
                return True
            if below_min_length(item.duration_text, limits.min_length_seconds):
                run.skipped_length += 1
                continue
            if run.source is SourceKind.STREAMS:
                item.kind = ContentKind.STREAM
            run.items.append(item)
        return False


_FIRST_PAGE_FINDERS: dict[SourceKind, Callable[[dict, str], ParsedPage]] = {
    SourceKind.VIDEOS: find_videos_tab,
    SourceKind.STREAMS: find_streams_tab,
    SourceKind.SHORTS: find_shorts_tab,
}


async def _isolated_run(
    aggregator: PaginationAggregator,
    source: SourceKind,
    url: str,
    limit: int,
) -> tuple[SourceRun, Exception | None]:
    try:
        return await aggregator.run_source(source, url, limit), None
    except (HttpFetchError, ExtractionError) as exc:
        LOGGER.warning("Could not fetch %s from %s: %s", source.value, url, exc)
        run = SourceRun(source=source, limit=limit, stop_reason=StopReason.ERROR, error=str(exc))
        return run, exc


async def build_channel_snapshot(
    channel_ref: str,
    limits: CrawlLimits,
    client: ChannelFetcher,
) -> ChannelSnapshot:
    """Crawl one channel into a :class:`ChannelSnapshot`.

    The about page is required; its failure propagates. Each content source
    then runs in isolation: a failed source is recorded in
    ``failed_sources`` and the next source still runs. When every attempted
    source fails, the first error propagates.
    """

    urls = channel_urls(channel_ref)
    LOGGER.info("Processing channel %s", urls.identifier)

    about_data = extract_initial_data(await client.fetch_page(urls.about))
    channel = extract_channel_details(about_data)
    if channel.about_continuation_token:
        try:
            extended = await client.fetch_continuation(
                Cursor(token=channel.about_continuation_token, context_url=urls.about)
            )
        except HttpFetchError as exc:
            LOGGER.warning("Could not load extended details for %s: %s", urls.identifier, exc)
        else:
            merge_about_details(channel, extract_about_details(extended))
    if channel.title:
        LOGGER.info(
            "%s (subscribers=%s videos=%s country=%s)",
            channel.title,
            channel.subscriber_count,
            channel.video_count,
            channel.country,
        )

    aggregator = PaginationAggregator(client, limits)
    runs: list[SourceRun] = []
    errors: list[Exception] = []

    videos_run, error = await _isolated_run(aggregator, SourceKind.VIDEOS, urls.videos, limits.count_limit)
    runs.append(videos_run)
    if error is not None:
        errors.append(error)

    if limits.max_age_days is not None and videos_run.stop_reason is not StopReason.COUNT_LIMIT:
        remaining = max(0, limits.count_limit - videos_run.accepted)
        streams_run, error = await _isolated_run(aggregator, SourceKind.STREAMS, urls.streams, remaining)
        runs.append(streams_run)
        if error is not None:
            errors.append(error)

    if limits.shorts_limit > 0:
        shorts_run, error = await _isolated_run(aggregator, SourceKind.SHORTS, urls.shorts, limits.shorts_limit)
        runs.append(shorts_run)
        if error is not None:
            errors.append(error)

    if errors and len(errors) == len(runs):
        raise errors[0]

    snapshot = ChannelSnapshot(channel=channel)
    for run in runs:
        snapshot.videos.extend(run.items)
        snapshot.stop_reasons[run.source.value] = run.stop_reason.value
        if run.error is not None:
            snapshot.failed_sources[run.source.value] = run.error
    LOGGER.info("Final total for %s: %d", urls.identifier, len(snapshot.videos))
    return snapshot


__all__ = [
    "ChannelFetcher",
    "ChannelUrls",
    "PaginationAggregator",
    "SourceRun",
    "StopReason",
    "build_channel_snapshot",
    "channel_urls",
]
