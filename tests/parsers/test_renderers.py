import unittest

from catalog.parsers import ContentKind, PageShape, SourceKind
from catalog.parsers.renderers import (
    find_shorts_tab,
    find_streams_tab,
    find_videos_tab,
    is_short_renderer,
    item_from_node,
    parse_continuation_response,
)

from youtube_payloads import (
    browse_response,
    channel_page,
    continuation_node,
    rich_grid_tab,
    rich_item,
    video_renderer,
    videos_page,
)

VIDEOS_URL = "https://www.youtube.com/@test/videos"


class VideoRendererTestCase(unittest.TestCase):
    def test_maps_fields_preferring_runs_for_title(self) -> None:
        renderer = video_renderer("v1", published="2 weeks ago", duration="1:02:03")
        renderer["title"] = {"runs": [{"text": "Part "}, {"text": "one"}], "simpleText": "ignored"}
        item = item_from_node(rich_item(renderer), SourceKind.VIDEOS)

        self.assertEqual(item.id, "v1")
        self.assertEqual(item.title, "Part one")
        self.assertEqual(item.view_count_text, "1,234 views")
        self.assertEqual(item.relative_published_time_text, "2 weeks ago")
        self.assertEqual(item.duration_text, "1:02:03")
        self.assertIs(item.kind, ContentKind.VIDEO)

    def test_title_falls_back_to_simple_text(self) -> None:
        renderer = video_renderer("v1")
        renderer["title"] = {"simpleText": "Plain"}
        self.assertEqual(item_from_node({"gridVideoRenderer": renderer}, SourceKind.VIDEOS).title, "Plain")

    def test_duration_falls_back_to_accessibility_label(self) -> None:
        renderer = video_renderer("v1")
        renderer["lengthText"] = {"accessibility": {"accessibilityData": {"label": "5 minutes, 3 seconds"}}}
        item = item_from_node(rich_item(renderer), SourceKind.VIDEOS)
        self.assertEqual(item.duration_text, "5 minutes, 3 seconds")

    def test_members_only_items_are_dropped(self) -> None:
        self.assertIsNone(item_from_node(rich_item(video_renderer("m1", members_only=True)), SourceKind.VIDEOS))

        labelled = video_renderer("m2")
        labelled["badges"] = [{"metadataBadgeRenderer": {"label": "Members only"}}]
        self.assertIsNone(item_from_node(rich_item(labelled), SourceKind.VIDEOS))

    def test_short_classification(self) -> None:
        self.assertTrue(is_short_renderer(video_renderer("s1", shorts=True)))

        styled = video_renderer("s2")
        styled["thumbnailOverlays"] = [{"thumbnailOverlayTimeStatusRenderer": {"style": "SHORTS"}}]
        self.assertTrue(is_short_renderer(styled))

        iconed = video_renderer("s3")
        iconed["thumbnailOverlays"] = [{"thumbnailOverlayTimeStatusRenderer": {"icon": {"iconType": "SHORTS"}}}]
        self.assertTrue(is_short_renderer(iconed))

        self.assertFalse(is_short_renderer(video_renderer("v1")))
        self.assertIs(item_from_node(rich_item(styled), SourceKind.VIDEOS).kind, ContentKind.SHORT)

    def test_reel_and_lockup_view_models(self) -> None:
        reel = {"reelItemRenderer": {"videoId": "r1", "headline": {"simpleText": "Reel"}, "viewCountText": {"simpleText": "5 views"}}}
        item = item_from_node(reel, SourceKind.SHORTS)
        self.assertEqual((item.id, item.title, item.view_count_text), ("r1", "Reel", "5 views"))
        self.assertIs(item.kind, ContentKind.SHORT)

        lockup = {
            "shortsLockupViewModel": {
                "entityId": "shorts-shelf-item-l1",
                "overlayMetadata": {
                    "primaryText": {"content": "Lockup"},
                    "secondaryText": {"content": "12K views"},
                },
            }
        }
        item = item_from_node({"richItemRenderer": {"content": lockup}}, SourceKind.SHORTS)
        self.assertEqual((item.id, item.title, item.view_count_text), ("l1", "Lockup", "12K views"))

    def test_unknown_node_yields_nothing(self) -> None:
        self.assertIsNone(item_from_node({"adSlotRenderer": {}}, SourceKind.VIDEOS))


class TabFinderTestCase(unittest.TestCase):
    def test_rich_grid_keeps_order_and_extracts_cursor(self) -> None:
        data = videos_page(
            [video_renderer("a"), video_renderer("m", members_only=True), video_renderer("b")],
            token="tok-1",
        )
        page = find_videos_tab(data, VIDEOS_URL)

        self.assertIs(page.shape, PageShape.RICH_GRID)
        self.assertEqual([item.id for item in page.items], ["a", "b"])
        self.assertEqual(page.cursor.token, "tok-1")
        self.assertEqual(page.cursor.context_url, VIDEOS_URL)
        self.assertIs(page.cursor.source, SourceKind.VIDEOS)

    def test_section_list_shelves(self) -> None:
        shelf = {
            "itemSectionRenderer": {
                "contents": [
                    {
                        "shelfRenderer": {
                            "content": {
                                "horizontalListRenderer": {
                                    "items": [
                                        {"gridVideoRenderer": video_renderer("g1")},
                                        {"gridVideoRenderer": video_renderer("g2")},
                                    ]
                                }
                            }
                        }
                    }
                ]
            }
        }
        data = channel_page(
            {"tabRenderer": {"title": "Home", "content": {"sectionListRenderer": {"contents": [shelf]}}}}
        )
        page = find_videos_tab(data, VIDEOS_URL)

        self.assertIs(page.shape, PageShape.SECTION_LIST)
        self.assertEqual([item.id for item in page.items], ["g1", "g2"])
        self.assertIsNone(page.cursor)

    def test_unrecognized_layout_is_reported(self) -> None:
        data = channel_page({"tabRenderer": {"title": "Videos", "content": {"somethingNewRenderer": {}}}})
        with self.assertLogs("catalog.parsers.renderers", level="WARNING"):
            page = find_videos_tab(data, VIDEOS_URL)
        self.assertIs(page.shape, PageShape.UNRECOGNIZED)
        self.assertEqual(page.items, [])

    def test_streams_prefers_selected_live_tab(self) -> None:
        data = channel_page(
            rich_grid_tab("Videos", [rich_item(video_renderer("v1"))], selected=False),
            rich_grid_tab("Live", [rich_item(video_renderer("s1")), continuation_node("st")], selected=True),
        )
        page = find_streams_tab(data, "https://www.youtube.com/@test/streams")

        self.assertEqual([item.id for item in page.items], ["s1"])
        self.assertIs(page.items[0].kind, ContentKind.STREAM)
        self.assertIs(page.cursor.source, SourceKind.STREAMS)

    def test_streams_falls_back_to_videos_finder(self) -> None:
        data = videos_page([video_renderer("v1")])
        data["contents"]["twoColumnBrowseResultsRenderer"]["tabs"][1]["tabRenderer"]["selected"] = False
        page = find_streams_tab(data, "https://www.youtube.com/@test/streams")
        self.assertEqual([item.id for item in page.items], ["v1"])

    def test_shorts_tab(self) -> None:
        data = channel_page(
            rich_grid_tab(
                "Shorts",
                [
                    {"richItemRenderer": {"content": {"shortsLockupViewModel": {
                        "onTap": {"innertubeCommand": {"reelWatchEndpoint": {"videoId": "sh1"}}},
                    }}}},
                    continuation_node("sh-next"),
                ],
            )
        )
        page = find_shorts_tab(data, "https://www.youtube.com/@test/shorts")
        self.assertEqual([item.id for item in page.items], ["sh1"])
        self.assertTrue(page.items[0].is_short)
        self.assertEqual(page.cursor.token, "sh-next")


class ContinuationResponseTestCase(unittest.TestCase):
    def test_append_actions(self) -> None:
        data = browse_response([video_renderer("c1"), video_renderer("c2")], token="tok-2")
        page = parse_continuation_response(data, SourceKind.VIDEOS, VIDEOS_URL)

        self.assertIs(page.shape, PageShape.APPEND_ACTIONS)
        self.assertEqual([item.id for item in page.items], ["c1", "c2"])
        self.assertEqual(page.cursor.token, "tok-2")

    def test_reload_command_on_endpoints(self) -> None:
        data = {
            "onResponseReceivedEndpoints": [
                {"reloadContinuationItemsCommand": {"continuationItems": [rich_item(video_renderer("r1"))]}}
            ]
        }
        page = parse_continuation_response(data, SourceKind.VIDEOS, VIDEOS_URL)
        self.assertEqual([item.id for item in page.items], ["r1"])
        self.assertIsNone(page.cursor)

    def test_missing_actions_are_unrecognized(self) -> None:
        with self.assertLogs("catalog.parsers.renderers", level="WARNING"):
            page = parse_continuation_response({"responseContext": {}}, SourceKind.VIDEOS, VIDEOS_URL)
        self.assertIs(page.shape, PageShape.UNRECOGNIZED)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
