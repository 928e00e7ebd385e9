"""Channel metadata and watch-page detail parsing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from . import ChannelDetails, ChannelLink, Enrichment
from .renderers import channel_tabs, dig, runs_text

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AboutDetails:
    """Fields only available from the about-panel continuation response."""

    view_count: str | None = None
    join_date: str | None = None
    country: str | None = None
    links: list[ChannelLink] = field(default_factory=list)


def _first_thumbnail(node: Any) -> str | None:
    url = dig(node, "thumbnails", 0, "url")
    return url if isinstance(url, str) else None


def _links_from_view(about_view: dict) -> list[ChannelLink]:
    links: list[ChannelLink] = []
    for entry in about_view.get("links") or []:
        external = dig(entry, "channelExternalLinkViewModel")
        if isinstance(external, dict):
            links.append(
                ChannelLink(
                    title=dig(external, "title", "content"),
                    url=dig(external, "link", "content"),
                )
            )
    return links


def _header_metadata_parts(header_view: dict) -> Iterable[str]:
    rows = dig(header_view, "metadata", "contentMetadataViewModel", "metadataRows") or []
    for row in rows:
        for part in dig(row, "metadataParts") or []:
            text = dig(part, "text", "content")
            if isinstance(text, str) and text:
                yield text


def _about_continuation_token(header_view: dict) -> str | None:
    panel = dig(
        header_view,
        "description",
        "descriptionPreviewViewModel",
        "rendererContext",
        "commandContext",
        "onTap",
        "innertubeCommand",
        "showEngagementPanelEndpoint",
        "engagementPanel",
        "engagementPanelSectionListRenderer",
        "content",
        "sectionListRenderer",
        "contents",
    )
    token: str | None = None
    for content in panel or []:
        candidate = dig(
            content,
            "itemSectionRenderer",
            "contents",
            0,
            "continuationItemRenderer",
            "continuationEndpoint",
            "continuationCommand",
            "token",
        )
        if isinstance(candidate, str) and candidate:
            token = candidate
    return token


def extract_channel_details(data: dict) -> ChannelDetails:
    """Build :class:`ChannelDetails` from a channel page document.

    Values are collected from the channel metadata, the page header (both the
    classic tabbed header and the newer page-header view model), the
    microformat block and any about renderers embedded in the tabs. The first
    source that provides a value wins.
    """

    metadata = dig(data, "metadata", "channelMetadataRenderer") or {}
    header = dig(data, "header", "c4TabbedHeaderRenderer") or dig(data, "header", "pageHeaderRenderer") or {}
    microformat = dig(data, "microformat", "microformatDataRenderer") or {}

    details = ChannelDetails(
        title=metadata.get("title") or header.get("pageTitle") or header.get("title"),
        description=metadata.get("description"),
        vanity_url=metadata.get("vanityChannelUrl"),
        channel_url=metadata.get("channelUrl"),
        external_id=metadata.get("externalId"),
        keywords=metadata.get("keywords"),
        avatar=_first_thumbnail(metadata.get("avatar")) or _first_thumbnail(header.get("avatar")),
        banner=_first_thumbnail(header.get("banner")),
        subscriber_count=dig(header, "subscriberCountText", "simpleText"),
        family_friendly=microformat.get("familySafe"),
        tags=microformat.get("tags"),
    )

    header_view = dig(header, "content", "pageHeaderViewModel")
    if isinstance(header_view, dict):
        for text in _header_metadata_parts(header_view):
            lowered = text.lower()
            if "subscriber" in lowered:
                details.subscriber_count = details.subscriber_count or text
            if "video" in lowered and "view" not in lowered:
                details.video_count = details.video_count or text
        details.about_continuation_token = _about_continuation_token(header_view)

    for tab in channel_tabs(data):
        for section in dig(tab, "content", "sectionListRenderer", "contents") or []:
            first_item = dig(section, "itemSectionRenderer", "contents", 0)
            if not isinstance(first_item, dict):
                continue

            full = first_item.get("channelAboutFullMetadataRenderer")
            if isinstance(full, dict):
                details.view_count = details.view_count or dig(full, "viewCountText", "simpleText")
                details.join_date = details.join_date or runs_text(full.get("joinedDateText"))
                details.country = details.country or dig(full, "country", "simpleText")
                details.video_count = details.video_count or dig(full, "videoCountText", "simpleText")

            about_view = dig(first_item, "aboutChannelRenderer", "metadata", "aboutChannelViewModel")
            if isinstance(about_view, dict):
                details.view_count = details.view_count or about_view.get("viewCountText")
                details.join_date = details.join_date or dig(about_view, "joinedDateText", "content")
                details.country = details.country or about_view.get("country")
                details.video_count = details.video_count or about_view.get("videoCountText")
                details.subscriber_count = details.subscriber_count or about_view.get("subscriberCountText")
                details.links.extend(_links_from_view(about_view))

    return details


def extract_about_details(data: dict) -> AboutDetails:
    """Read the about-panel continuation response."""

    about = AboutDetails()
    actions = data.get("onResponseReceivedEndpoints") or data.get("onResponseReceivedActions") or []
    for action in actions:
        for item in dig(action, "appendContinuationItemsAction", "continuationItems") or []:
            about_view = dig(item, "aboutChannelRenderer", "metadata", "aboutChannelViewModel")
            if not isinstance(about_view, dict):
                continue
            about.view_count = about_view.get("viewCountText")
            about.join_date = dig(about_view, "joinedDateText", "content")
            about.country = about_view.get("country")
            about.links.extend(_links_from_view(about_view))
    return about


def merge_about_details(details: ChannelDetails, about: AboutDetails) -> ChannelDetails:
    """Fill gaps in ``details`` from ``about``; known values are kept.

    Links from the about panel replace the header links when present, since
    the panel carries the complete list.
    """

    details.view_count = details.view_count or about.view_count
    details.join_date = details.join_date or about.join_date
    details.country = details.country or about.country
    if about.links:
        details.links = list(about.links)
    return details


def extract_item_detail(data: dict) -> Enrichment:
    """Return the exact publish date and description from a watch page document."""

    contents = dig(data, "contents", "twoColumnWatchNextResults", "results", "results", "contents") or []
    enrichment = Enrichment()
    for content in contents:
        if not isinstance(content, dict):
            continue
        primary = content.get("videoPrimaryInfoRenderer")
        if isinstance(primary, dict):
            enrichment.publish_date_exact = dig(primary, "dateText", "simpleText") or enrichment.publish_date_exact
        secondary = content.get("videoSecondaryInfoRenderer")
        if isinstance(secondary, dict):
            description = dig(secondary, "attributedDescription", "content")
            if description:
                enrichment.description = description
    if enrichment.is_empty():
        LOGGER.debug("Watch page carried neither date nor description")
    return enrichment


__all__ = [
    "AboutDetails",
    "extract_about_details",
    "extract_channel_details",
    "extract_item_detail",
    "merge_about_details",
]
