"""Configuration shared by the crawl and enrichment pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_DATA_ROOT = Path("data")
DEFAULT_STORE_FILE = DEFAULT_DATA_ROOT / "channels.json"
DEFAULT_LOG_DIR = DEFAULT_DATA_ROOT / "logs"

PLATFORM_ORIGIN = "https://www.youtube.com"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9"


@dataclass(slots=True)
class CrawlLimits:
    """Per-channel crawl limits.

    ``max_age_days`` of ``None`` disables the age limit and, with it, the
    Streams source. ``shorts_limit`` of ``0`` disables the Shorts source.
    """

    count_limit: int = 150
    max_age_days: Optional[float] = None
    min_length_seconds: int = 0
    shorts_limit: int = 0


@dataclass(slots=True)
class EnrichmentConfig:
    concurrency: int = 1
    delay_seconds: float = 2.0
    save_interval: float = 5.0


@dataclass(slots=True)
class RetryConfig:
    max_attempts: int = 3
    backoff_factor: float = 1.0


@dataclass(slots=True)
class TimeoutConfig:
    request_timeout: float = 15.0


@dataclass(slots=True)
class ClientContext:
    """Client identity sent with browse (continuation) requests."""

    client_name: str = "WEB"
    client_version: str = "2.20260128.05.00"
    accept_header: str = (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
    )
    browse_url: str = f"{PLATFORM_ORIGIN}/youtubei/v1/browse?prettyPrint=false"

    def browse_payload(self, continuation: str, graft_url: str) -> dict:
        return {
            "context": {
                "client": {
                    "clientName": self.client_name,
                    "clientVersion": self.client_version,
                    "acceptHeader": self.accept_header,
                    "mainAppWebInfo": {
                        "graftUrl": graft_url,
                        "pwaInstallabilityStatus": "PWA_INSTALLABILITY_STATUS_CAN_BE_INSTALLED",
                        "webDisplayMode": "WEB_DISPLAY_MODE_BROWSER",
                        "isWebNativeShareAvailable": True,
                    },
                },
                "user": {"lockedSafetyMode": False},
            },
            "continuation": continuation,
        }


@dataclass(slots=True)
class CatalogConfig:
    store_path: Path = DEFAULT_STORE_FILE
    db_url: Optional[str] = None
    log_dir: Path = DEFAULT_LOG_DIR
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE
    max_concurrent_channels: int = 4
    limits: CrawlLimits = field(default_factory=CrawlLimits)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    client: ClientContext = field(default_factory=ClientContext)

    def ensure_directories(self) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        if self.db_url is None:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)

    def watch_url(self, item_id: str) -> str:
        return f"{PLATFORM_ORIGIN}/watch?v={item_id}"
