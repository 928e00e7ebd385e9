"""Channel catalog crawling and enrichment."""

from .pagination import build_channel_snapshot
from .enrichment import EnrichmentScheduler

__all__ = ["EnrichmentScheduler", "build_channel_snapshot"]
