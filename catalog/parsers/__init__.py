"""Data models and error types shared by the channel page parsers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ContentKind(str, Enum):
    VIDEO = "video"
    STREAM = "stream"
    SHORT = "short"


class SourceKind(str, Enum):
    """Channel tab a content item was discovered on."""

    VIDEOS = "videos"
    STREAMS = "streams"
    SHORTS = "shorts"


class PageShape(str, Enum):
    """Known layouts of a content list, in the order they are matched."""

    RICH_GRID = "rich_grid"
    SECTION_LIST = "section_list"
    APPEND_ACTIONS = "append_actions"
    UNRECOGNIZED = "unrecognized"


class ParsingError(RuntimeError):
    """Raised when a platform document cannot be parsed into structured data."""


class ExtractionError(ParsingError):
    """Raised when a page does not carry the embedded data document."""


@dataclass(slots=True)
class Enrichment:
    publish_date_exact: str | None = None
    description: str | None = None

    def is_empty(self) -> bool:
        return not self.publish_date_exact and not self.description


@dataclass(slots=True)
class ContentItem:
    id: str
    title: str | None = None
    view_count_text: str | None = None
    relative_published_time_text: str | None = None
    duration_text: str | None = None
    kind: ContentKind = ContentKind.VIDEO
    enrichment: Enrichment = field(default_factory=Enrichment)

    @property
    def is_short(self) -> bool:
        return self.kind is ContentKind.SHORT

    @property
    def is_enriched(self) -> bool:
        return not self.enrichment.is_empty()

    @property
    def needs_enrichment(self) -> bool:
        return not self.is_short and not self.is_enriched

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "videoId": self.id,
            "title": self.title,
            "viewCount": self.view_count_text,
            "publishedTime": self.relative_published_time_text,
            "duration": self.duration_text,
            "isShort": self.kind is ContentKind.SHORT,
        }
        if self.kind is ContentKind.STREAM:
            payload["isStream"] = True
        if self.enrichment.publish_date_exact:
            payload["publishDate"] = self.enrichment.publish_date_exact
        if self.enrichment.description:
            payload["description"] = self.enrichment.description
        return {key: value for key, value in payload.items() if value is not None}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ContentItem":
        if payload.get("isShort"):
            kind = ContentKind.SHORT
        elif payload.get("isStream"):
            kind = ContentKind.STREAM
        else:
            kind = ContentKind.VIDEO
        return cls(
            id=str(payload["videoId"]),
            title=payload.get("title"),
            view_count_text=payload.get("viewCount"),
            relative_published_time_text=payload.get("publishedTime"),
            duration_text=payload.get("duration"),
            kind=kind,
            enrichment=Enrichment(
                publish_date_exact=payload.get("publishDate"),
                description=payload.get("description"),
            ),
        )


@dataclass(slots=True)
class Cursor:
    """Continuation token together with the page URL it belongs to."""

    token: str
    context_url: str
    source: SourceKind | None = None


@dataclass(slots=True)
class ParsedPage:
    items: list[ContentItem]
    cursor: Cursor | None
    shape: PageShape
    raw_item_count: int = 0
    tab_title: str | None = None

    @property
    def recognized(self) -> bool:
        return self.shape is not PageShape.UNRECOGNIZED


@dataclass(slots=True)
class ChannelLink:
    title: str | None = None
    url: str | None = None


_CHANNEL_FIELDS = {
    "title": "title",
    "description": "description",
    "vanity_url": "vanityUrl",
    "channel_url": "channelUrl",
    "external_id": "externalId",
    "keywords": "keywords",
    "avatar": "avatar",
    "banner": "banner",
    "subscriber_count": "subscriberCount",
    "video_count": "videoCount",
    "view_count": "viewCount",
    "join_date": "joinDate",
    "country": "country",
    "about_continuation_token": "aboutContinuationToken",
    "family_friendly": "familyFriendly",
    "tags": "tags",
}


@dataclass(slots=True)
class ChannelDetails:
    title: str | None = None
    description: str | None = None
    vanity_url: str | None = None
    channel_url: str | None = None
    external_id: str | None = None
    keywords: str | None = None
    avatar: str | None = None
    banner: str | None = None
    subscriber_count: str | None = None
    video_count: str | None = None
    view_count: str | None = None
    join_date: str | None = None
    country: str | None = None
    links: list[ChannelLink] = field(default_factory=list)
    about_continuation_token: str | None = None
    family_friendly: bool | None = None
    tags: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for attribute, key in _CHANNEL_FIELDS.items():
            value = getattr(self, attribute)
            if value is not None:
                payload[key] = value
        payload["links"] = [
            {key: value for key, value in (("title", link.title), ("url", link.url)) if value is not None}
            for link in self.links
        ]
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "ChannelDetails":
        payload = payload or {}
        details = cls(**{attribute: payload.get(key) for attribute, key in _CHANNEL_FIELDS.items()})
        details.links = [
            ChannelLink(title=link.get("title"), url=link.get("url"))
            for link in payload.get("links") or []
            if isinstance(link, dict)
        ]
        return details


@dataclass(slots=True)
class ChannelSnapshot:
    """Channel metadata plus its content items from one crawl.

    Items are ordered Videos, then Streams, then Shorts. ``stop_reasons`` and
    ``failed_sources`` are keyed by :class:`SourceKind` value and record how
    each source run ended; a non-empty ``failed_sources`` marks the snapshot
    as partial.
    """

    channel: ChannelDetails
    videos: list[ContentItem] = field(default_factory=list)
    stop_reasons: dict[str, str] = field(default_factory=dict)
    failed_sources: dict[str, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failed_sources

    def items_of(self, kind: ContentKind) -> list[ContentItem]:
        return [item for item in self.videos if item.kind is kind]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "channel": self.channel.to_dict(),
            "videos": [item.to_dict() for item in self.videos],
        }
        if self.stop_reasons:
            payload["stopReasons"] = dict(self.stop_reasons)
        if self.failed_sources:
            payload["failedSources"] = dict(self.failed_sources)
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ChannelSnapshot":
        return cls(
            channel=ChannelDetails.from_dict(payload.get("channel")),
            videos=[ContentItem.from_dict(item) for item in payload.get("videos") or []],
            stop_reasons=dict(payload.get("stopReasons") or {}),
            failed_sources=dict(payload.get("failedSources") or {}),
        )


__all__ = [
    "ChannelDetails",
    "ChannelLink",
    "ChannelSnapshot",
    "ContentItem",
    "ContentKind",
    "Cursor",
    "Enrichment",
    "ExtractionError",
    "PageShape",
    "ParsedPage",
    "ParsingError",
    "SourceKind",
]
