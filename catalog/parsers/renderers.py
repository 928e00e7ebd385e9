"""Normalization of channel tab renderers into content items.

A tab's content list comes in a handful of shapes. They are matched in a
fixed order (rich grid, then section list) and anything else is reported as
:attr:`PageShape.UNRECOGNIZED` so that layout changes on the platform show up
in the logs instead of silently producing empty pages.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from . import ContentItem, ContentKind, Cursor, PageShape, ParsedPage, SourceKind

LOGGER = logging.getLogger(__name__)

_SHORTS_PATH_SEGMENT = "/shorts/"
_SHORTS_MARKER = "SHORTS"
_MEMBERS_ONLY_STYLE = "BADGE_STYLE_TYPE_MEMBERS_ONLY"
_MEMBERS_ONLY_LABEL = "members only"
_SHORTS_ENTITY_PREFIX = "shorts-shelf-item-"
_VIDEO_RENDERER_KEYS = ("videoRenderer", "gridVideoRenderer", "playlistVideoRenderer")


def dig(node: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning ``None`` as soon as a step is missing."""

    current = node
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def runs_text(node: Any) -> str | None:
    """Prefer the concatenated multi-run text, falling back to ``simpleText``."""

    if not isinstance(node, dict):
        return None
    runs = node.get("runs")
    if isinstance(runs, list):
        text = "".join(run.get("text", "") for run in runs if isinstance(run, dict))
        if text:
            return text
    simple = node.get("simpleText")
    return simple if isinstance(simple, str) else None


def simple_text(node: Any) -> str | None:
    """Prefer ``simpleText``, falling back to the first run."""

    if not isinstance(node, dict):
        return None
    simple = node.get("simpleText")
    if isinstance(simple, str):
        return simple
    first = dig(node, "runs", 0, "text")
    return first if isinstance(first, str) else None


def continuation_token(node: Any) -> str | None:
    token = dig(node, "continuationItemRenderer", "continuationEndpoint", "continuationCommand", "token")
    return token if isinstance(token, str) and token else None


def is_short_renderer(renderer: dict) -> bool:
    nav_url = dig(renderer, "navigationEndpoint", "commandMetadata", "webCommandMetadata", "url") or ""
    if _SHORTS_PATH_SEGMENT in nav_url:
        return True

    overlays = [
        overlay.get("thumbnailOverlayTimeStatusRenderer") or {}
        for overlay in renderer.get("thumbnailOverlays") or []
        if isinstance(overlay, dict)
    ]
    if any(status.get("style") == _SHORTS_MARKER for status in overlays):
        return True
    return any(dig(status, "icon", "iconType") == _SHORTS_MARKER for status in overlays)


def is_members_only(renderer: dict) -> bool:
    for badge in renderer.get("badges") or []:
        badge_renderer = badge.get("metadataBadgeRenderer") if isinstance(badge, dict) else None
        if not isinstance(badge_renderer, dict):
            continue
        if badge_renderer.get("style") == _MEMBERS_ONLY_STYLE:
            return True
        label = badge_renderer.get("label")
        if isinstance(label, str) and _MEMBERS_ONLY_LABEL in label.lower():
            return True
    return False


def item_from_video_renderer(renderer: dict, source: SourceKind) -> ContentItem | None:
    """Map a regular video renderer; members-only entries yield ``None``."""

    video_id = renderer.get("videoId")
    if not video_id or is_members_only(renderer):
        return None

    length = renderer.get("lengthText") or {}
    duration = length.get("simpleText") or dig(length, "accessibility", "accessibilityData", "label")

    if source is SourceKind.SHORTS or is_short_renderer(renderer):
        kind = ContentKind.SHORT
    elif source is SourceKind.STREAMS:
        kind = ContentKind.STREAM
    else:
        kind = ContentKind.VIDEO

    return ContentItem(
        id=str(video_id),
        title=runs_text(renderer.get("title")),
        view_count_text=simple_text(renderer.get("viewCountText")),
        relative_published_time_text=simple_text(renderer.get("publishedTimeText")),
        duration_text=duration,
        kind=kind,
    )


def item_from_reel(renderer: dict) -> ContentItem | None:
    video_id = renderer.get("videoId")
    if not video_id:
        return None
    return ContentItem(
        id=str(video_id),
        title=simple_text(renderer.get("headline")),
        view_count_text=simple_text(renderer.get("viewCountText")),
        kind=ContentKind.SHORT,
    )


def item_from_shorts_lockup(view_model: dict) -> ContentItem | None:
    video_id = dig(view_model, "onTap", "innertubeCommand", "reelWatchEndpoint", "videoId")
    if not video_id:
        entity_id = view_model.get("entityId")
        if isinstance(entity_id, str) and entity_id:
            video_id = entity_id.replace(_SHORTS_ENTITY_PREFIX, "")
    if not video_id:
        return None
    return ContentItem(
        id=str(video_id),
        title=dig(view_model, "overlayMetadata", "primaryText", "content"),
        view_count_text=dig(view_model, "overlayMetadata", "secondaryText", "content"),
        kind=ContentKind.SHORT,
    )


def item_from_node(node: dict, source: SourceKind) -> ContentItem | None:
    """Map one content-list node, whatever wrapper it comes in."""

    content = dig(node, "richItemRenderer", "content")
    if isinstance(content, dict):
        node = content

    for key in _VIDEO_RENDERER_KEYS:
        renderer = node.get(key)
        if isinstance(renderer, dict):
            return item_from_video_renderer(renderer, source)

    reel = node.get("reelItemRenderer")
    if isinstance(reel, dict):
        return item_from_reel(reel)

    lockup = node.get("shortsLockupViewModel")
    if isinstance(lockup, dict):
        return item_from_shorts_lockup(lockup)

    return None


def normalize_nodes(
    nodes: Iterable[Any],
    source: SourceKind,
    context_url: str,
) -> tuple[list[ContentItem], Cursor | None, int]:
    """Return ``(items, cursor, raw_count)`` for a list of content nodes.

    Continuation markers become the cursor instead of items; order is kept.
    """

    items: list[ContentItem] = []
    token: str | None = None
    raw_count = 0
    for node in nodes:
        if not isinstance(node, dict):
            continue
        raw_count += 1
        marker = continuation_token(node)
        if marker:
            token = marker
            continue
        item = item_from_node(node, source)
        if item is not None:
            items.append(item)

    cursor = Cursor(token=token, context_url=context_url, source=source) if token else None
    return items, cursor, raw_count


def _section_list_nodes(section_list: dict) -> list[Any]:
    nodes: list[Any] = []
    for section in section_list.get("contents") or []:
        for entry in dig(section, "itemSectionRenderer", "contents") or []:
            shelf = dig(entry, "shelfRenderer", "content")
            if isinstance(shelf, dict):
                shelf_items = (
                    dig(shelf, "horizontalListRenderer", "items")
                    or dig(shelf, "expandedShelfContentsRenderer", "items")
                    or dig(shelf, "gridRenderer", "items")
                    or []
                )
                nodes.extend(shelf_items)
            else:
                nodes.append(entry)
    return nodes


def parse_tab_content(
    tab_renderer: dict,
    source: SourceKind,
    context_url: str,
) -> ParsedPage:
    """Normalize one ``tabRenderer`` using the first content shape it matches."""

    content = tab_renderer.get("content") or {}
    title = tab_renderer.get("title")

    rich_grid = content.get("richGridRenderer")
    if isinstance(rich_grid, dict):
        items, cursor, raw = normalize_nodes(rich_grid.get("contents") or [], source, context_url)
        return ParsedPage(items, cursor, PageShape.RICH_GRID, raw, title)

    section_list = content.get("sectionListRenderer")
    if isinstance(section_list, dict):
        items, cursor, raw = normalize_nodes(_section_list_nodes(section_list), source, context_url)
        return ParsedPage(items, cursor, PageShape.SECTION_LIST, raw, title)

    return ParsedPage([], None, PageShape.UNRECOGNIZED, 0, title)


def channel_tabs(data: dict) -> list[dict]:
    tabs = dig(data, "contents", "twoColumnBrowseResultsRenderer", "tabs") or []
    return [tab["tabRenderer"] for tab in tabs if isinstance(tab, dict) and isinstance(tab.get("tabRenderer"), dict)]


def _tab_title(tab_renderer: dict) -> str:
    title = tab_renderer.get("title")
    return title.lower() if isinstance(title, str) else ""


def _first_populated(
    candidates: Sequence[dict],
    source: SourceKind,
    context_url: str,
) -> ParsedPage:
    fallback: ParsedPage | None = None
    for tab_renderer in candidates:
        page = parse_tab_content(tab_renderer, source, context_url)
        if page.items:
            LOGGER.debug("Found %d %s in %r tab", len(page.items), source.value, page.tab_title)
            return page
        if fallback is None and page.recognized:
            fallback = page
    if fallback is not None:
        return fallback
    return ParsedPage([], None, PageShape.UNRECOGNIZED)


def find_videos_tab(data: dict, context_url: str, source: SourceKind = SourceKind.VIDEOS) -> ParsedPage:
    tabs = channel_tabs(data)
    LOGGER.debug("Found %d tabs: %s", len(tabs), ", ".join(_tab_title(tab) or "?" for tab in tabs))
    candidates = [
        tab
        for tab in tabs
        if _tab_title(tab) == "videos"
        or "richGridRenderer" in (tab.get("content") or {})
        or "sectionListRenderer" in (tab.get("content") or {})
    ]
    page = _first_populated(candidates, source, context_url)
    if not page.recognized:
        LOGGER.warning("No recognizable %s list in channel page %s", source.value, context_url)
    return page


def find_streams_tab(data: dict, context_url: str) -> ParsedPage:
    tabs = channel_tabs(data)
    preferred = [
        tab
        for tab in tabs
        if (tab.get("selected") is True or _tab_title(tab) == "live")
        and "richGridRenderer" in (tab.get("content") or {})
    ]
    page = _first_populated(preferred, SourceKind.STREAMS, context_url)
    if page.items:
        return page
    return find_videos_tab(data, context_url, SourceKind.STREAMS)


def find_shorts_tab(data: dict, context_url: str) -> ParsedPage:
    tabs = channel_tabs(data)
    candidates = [
        tab
        for tab in tabs
        if (_tab_title(tab) == "shorts" or tab.get("selected") is True)
        and "richGridRenderer" in (tab.get("content") or {})
    ]
    page = _first_populated(candidates, SourceKind.SHORTS, context_url)
    if not page.recognized:
        LOGGER.warning("No recognizable shorts list in channel page %s", context_url)
    return page


def parse_continuation_response(data: dict, source: SourceKind, context_url: str) -> ParsedPage:
    """Normalize a continuation (browse) response for ``source``."""

    actions = data.get("onResponseReceivedActions") or data.get("onResponseReceivedEndpoints")
    if not isinstance(actions, list):
        LOGGER.warning("Continuation response for %s has no item actions", context_url)
        return ParsedPage([], None, PageShape.UNRECOGNIZED)

    nodes: list[Any] = []
    for action in actions:
        if not isinstance(action, dict):
            continue
        nodes = (
            dig(action, "appendContinuationItemsAction", "continuationItems")
            or dig(action, "reloadContinuationItemsCommand", "continuationItems")
            or []
        )
        if nodes:
            break

    items, cursor, raw = normalize_nodes(nodes, source, context_url)
    return ParsedPage(items, cursor, PageShape.APPEND_ACTIONS, raw)


__all__ = [
    "channel_tabs",
    "dig",
    "find_shorts_tab",
    "find_streams_tab",
    "find_videos_tab",
    "is_members_only",
    "is_short_renderer",
    "item_from_node",
    "normalize_nodes",
    "parse_continuation_response",
    "parse_tab_content",
    "runs_text",
    "simple_text",
]
