"""Builders for the platform documents used across the test suite."""

from __future__ import annotations

import json
from typing import Any

from catalog.parsers import Cursor


def video_renderer(
    video_id: str,
    *,
    title: str | None = None,
    published: str | None = "1 day ago",
    duration: str | None = "10:00",
    views: str = "1,234 views",
    shorts: bool = False,
    members_only: bool = False,
) -> dict[str, Any]:
    renderer: dict[str, Any] = {
        "videoId": video_id,
        "title": {"runs": [{"text": title or f"Video {video_id}"}]},
        "viewCountText": {"simpleText": views},
        "navigationEndpoint": {
            "commandMetadata": {
                "webCommandMetadata": {"url": f"/shorts/{video_id}" if shorts else f"/watch?v={video_id}"}
            }
        },
    }
    if published is not None:
        renderer["publishedTimeText"] = {"simpleText": published}
    if duration is not None:
        renderer["lengthText"] = {
            "simpleText": duration,
            "accessibility": {"accessibilityData": {"label": f"{duration} long"}},
        }
    if members_only:
        renderer["badges"] = [
            {"metadataBadgeRenderer": {"style": "BADGE_STYLE_TYPE_MEMBERS_ONLY", "label": "Members only"}}
        ]
    return renderer


def rich_item(renderer: dict[str, Any], key: str = "videoRenderer") -> dict[str, Any]:
    return {"richItemRenderer": {"content": {key: renderer}}}


def continuation_node(token: str) -> dict[str, Any]:
    return {
        "continuationItemRenderer": {
            "continuationEndpoint": {"continuationCommand": {"token": token}},
        }
    }


def rich_grid_tab(title: str, nodes: list[dict[str, Any]], *, selected: bool = True) -> dict[str, Any]:
    return {
        "tabRenderer": {
            "title": title,
            "selected": selected,
            "content": {"richGridRenderer": {"contents": nodes}},
        }
    }


def channel_page(*tabs: dict[str, Any], title: str = "Test Channel") -> dict[str, Any]:
    return {
        "metadata": {"channelMetadataRenderer": {"title": title, "externalId": "UC123"}},
        "contents": {"twoColumnBrowseResultsRenderer": {"tabs": [{"tabRenderer": {"title": "Home"}}, *tabs]}},
    }


def videos_page(videos: list[dict[str, Any]], token: str | None = None, *, title: str = "Videos") -> dict[str, Any]:
    nodes = [rich_item(video) for video in videos]
    if token:
        nodes.append(continuation_node(token))
    return channel_page(rich_grid_tab(title, nodes))


def browse_response(videos: list[dict[str, Any]], token: str | None = None) -> dict[str, Any]:
    nodes: list[dict[str, Any]] = [rich_item(video) for video in videos]
    if token:
        nodes.append(continuation_node(token))
    return {"onResponseReceivedActions": [{"appendContinuationItemsAction": {"continuationItems": nodes}}]}


def about_page(title: str = "Test Channel") -> dict[str, Any]:
    return {
        "metadata": {
            "channelMetadataRenderer": {
                "title": title,
                "description": "About text",
                "vanityChannelUrl": "http://www.youtube.com/@test",
                "externalId": "UC123",
            }
        }
    }


def page_html(data: dict[str, Any]) -> str:
    return (
        "<!DOCTYPE html><html><head><title>Channel</title>"
        "<script>var ytcfg = {};</script>"
        f"<script nonce=\"abc\">var ytInitialData = {json.dumps(data)};</script>"
        "</head><body></body></html>"
    )


def legacy_page_html(data: dict[str, Any]) -> str:
    text = json.dumps(data)
    escaped = "".join(char if char.isalnum() or char == " " else f"\\x{ord(char):02x}" for char in text)
    return f"<html><script>var ytInitialData = '{escaped}';</script></html>"


class FakeChannelClient:
    """In-memory stand-in for the page/continuation fetch primitives."""

    def __init__(
        self,
        pages: dict[str, Any] | None = None,
        continuations: dict[str, Any] | None = None,
    ) -> None:
        self.pages = pages or {}
        self.continuations = continuations or {}
        self.page_requests: list[str] = []
        self.continuation_requests: list[Cursor] = []

    async def fetch_page(self, url: str) -> str:
        self.page_requests.append(url)
        value = self.pages[url]
        if isinstance(value, Exception):
            raise value
        return value if isinstance(value, str) else page_html(value)

    async def fetch_continuation(self, cursor: Cursor) -> dict:
        self.continuation_requests.append(cursor)
        value = self.continuations[cursor.token]
        if isinstance(value, Exception):
            raise value
        return value
