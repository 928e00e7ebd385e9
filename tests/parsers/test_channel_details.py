import unittest

from catalog.parsers import ChannelLink
from catalog.parsers.channel import (
    AboutDetails,
    extract_about_details,
    extract_channel_details,
    extract_item_detail,
    merge_about_details,
)


def _about_view(**overrides) -> dict:
    view = {
        "viewCountText": "1,000,000 views",
        "joinedDateText": {"content": "Joined Jan 1, 2015"},
        "country": "Canada",
        "links": [
            {"channelExternalLinkViewModel": {"title": {"content": "Site"}, "link": {"content": "example.com"}}}
        ],
    }
    view.update(overrides)
    return view


class ChannelDetailsTestCase(unittest.TestCase):
    def test_page_header_view_model(self) -> None:
        data = {
            "metadata": {
                "channelMetadataRenderer": {
                    "title": "Maker Lab",
                    "description": "We build things",
                    "vanityChannelUrl": "http://www.youtube.com/@makerlab",
                    "channelUrl": "https://www.youtube.com/channel/UCmaker",
                    "externalId": "UCmaker",
                    "keywords": "maker diy",
                    "avatar": {"thumbnails": [{"url": "https://img/avatar.jpg"}]},
                }
            },
            "header": {
                "pageHeaderRenderer": {
                    "pageTitle": "Maker Lab (header)",
                    "content": {
                        "pageHeaderViewModel": {
                            "metadata": {
                                "contentMetadataViewModel": {
                                    "metadataRows": [
                                        {"metadataParts": [{"text": {"content": "@makerlab"}}]},
                                        {
                                            "metadataParts": [
                                                {"text": {"content": "1.2M subscribers"}},
                                                {"text": {"content": "345 videos"}},
                                            ]
                                        },
                                    ]
                                }
                            },
                            "description": {
                                "descriptionPreviewViewModel": {
                                    "rendererContext": {
                                        "commandContext": {
                                            "onTap": {
                                                "innertubeCommand": {
                                                    "showEngagementPanelEndpoint": {
                                                        "engagementPanel": {
                                                            "engagementPanelSectionListRenderer": {
                                                                "content": {
                                                                    "sectionListRenderer": {
                                                                        "contents": [
                                                                            {
                                                                                "itemSectionRenderer": {
                                                                                    "contents": [
                                                                                        {
                                                                                            "continuationItemRenderer": {
                                                                                                "continuationEndpoint": {
                                                                                                    "continuationCommand": {"token": "about-token"}
                                                                                                }
                                                                                            }
                                                                                        }
                                                                                    ]
                                                                                }
                                                                            }
                                                                        ]
                                                                    }
                                                                }
                                                            }
                                                        }
                                                    }
                                                }
                                            }
                                        }
                                    }
                                }
                            },
                        }
                    },
                }
            },
            "microformat": {"microformatDataRenderer": {"familySafe": True, "tags": ["diy", "tools"]}},
        }

        details = extract_channel_details(data)

        self.assertEqual(details.title, "Maker Lab")
        self.assertEqual(details.external_id, "UCmaker")
        self.assertEqual(details.avatar, "https://img/avatar.jpg")
        self.assertEqual(details.subscriber_count, "1.2M subscribers")
        self.assertEqual(details.video_count, "345 videos")
        self.assertEqual(details.about_continuation_token, "about-token")
        self.assertTrue(details.family_friendly)
        self.assertEqual(details.tags, ["diy", "tools"])

    def test_about_renderers_in_tabs(self) -> None:
        data = {
            "header": {
                "c4TabbedHeaderRenderer": {
                    "title": "Classic",
                    "subscriberCountText": {"simpleText": "10K subscribers"},
                    "banner": {"thumbnails": [{"url": "https://img/banner.jpg"}]},
                }
            },
            "contents": {
                "twoColumnBrowseResultsRenderer": {
                    "tabs": [
                        {
                            "tabRenderer": {
                                "title": "About",
                                "content": {
                                    "sectionListRenderer": {
                                        "contents": [
                                            {
                                                "itemSectionRenderer": {
                                                    "contents": [
                                                        {"aboutChannelRenderer": {"metadata": {"aboutChannelViewModel": _about_view()}}}
                                                    ]
                                                }
                                            }
                                        ]
                                    }
                                },
                            }
                        }
                    ]
                }
            },
        }

        details = extract_channel_details(data)

        self.assertEqual(details.title, "Classic")
        self.assertEqual(details.banner, "https://img/banner.jpg")
        self.assertEqual(details.subscriber_count, "10K subscribers")
        self.assertEqual(details.view_count, "1,000,000 views")
        self.assertEqual(details.join_date, "Joined Jan 1, 2015")
        self.assertEqual(details.country, "Canada")
        self.assertEqual(details.links, [ChannelLink(title="Site", url="example.com")])

    def test_empty_document(self) -> None:
        details = extract_channel_details({})
        self.assertIsNone(details.title)
        self.assertEqual(details.links, [])


class AboutDetailsTestCase(unittest.TestCase):
    def test_extract_and_merge_keep_known_values(self) -> None:
        response = {
            "onResponseReceivedEndpoints": [
                {
                    "appendContinuationItemsAction": {
                        "continuationItems": [
                            {"aboutChannelRenderer": {"metadata": {"aboutChannelViewModel": _about_view(country="Norway")}}}
                        ]
                    }
                }
            ]
        }
        about = extract_about_details(response)
        self.assertEqual(about.country, "Norway")
        self.assertEqual(len(about.links), 1)

        details = extract_channel_details({})
        details.country = "Canada"
        merged = merge_about_details(details, about)

        self.assertEqual(merged.country, "Canada")
        self.assertEqual(merged.view_count, "1,000,000 views")
        self.assertEqual(merged.join_date, "Joined Jan 1, 2015")
        self.assertEqual(merged.links, [ChannelLink(title="Site", url="example.com")])

    def test_merge_without_links_keeps_existing(self) -> None:
        details = extract_channel_details({})
        details.links = [ChannelLink(title="Old", url="old.example")]
        merge_about_details(details, AboutDetails())
        self.assertEqual(details.links, [ChannelLink(title="Old", url="old.example")])


class ItemDetailTestCase(unittest.TestCase):
    def test_watch_page_date_and_description(self) -> None:
        data = {
            "contents": {
                "twoColumnWatchNextResults": {
                    "results": {
                        "results": {
                            "contents": [
                                {"videoPrimaryInfoRenderer": {"dateText": {"simpleText": "Mar 3, 2024"}}},
                                {"videoSecondaryInfoRenderer": {"attributedDescription": {"content": "Full notes"}}},
                            ]
                        }
                    }
                }
            }
        }
        detail = extract_item_detail(data)
        self.assertEqual(detail.publish_date_exact, "Mar 3, 2024")
        self.assertEqual(detail.description, "Full notes")

    def test_missing_sections_give_empty_enrichment(self) -> None:
        self.assertTrue(extract_item_detail({"contents": {}}).is_empty())


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
