"""Durable storage for channel collections and their snapshots."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Protocol

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from models import Base, CatalogChannel, CatalogCollection, generate_uuid7_str

from .parsers import ChannelSnapshot, ContentItem

LOGGER = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "Default"


class CatalogStoreError(RuntimeError):
    """Raised when the catalog cannot be read or written."""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(slots=True)
class StoredChannel:
    id: str
    handle: str
    added_at: str
    snapshot: Optional[ChannelSnapshot] = None
    last_updated: Optional[str] = None

    def items(self) -> list[ContentItem]:
        return self.snapshot.videos if self.snapshot else []

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "handle": self.handle, "addedAt": self.added_at}
        if self.snapshot is not None:
            payload["data"] = self.snapshot.to_dict()
        if self.last_updated:
            payload["lastUpdated"] = self.last_updated
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "StoredChannel":
        data = payload.get("data")
        return cls(
            id=str(payload.get("id") or generate_uuid7_str()),
            handle=str(payload.get("handle") or ""),
            added_at=str(payload.get("addedAt") or utc_now_iso()),
            snapshot=ChannelSnapshot.from_dict(data) if isinstance(data, dict) else None,
            last_updated=payload.get("lastUpdated"),
        )


@dataclass(slots=True)
class Collection:
    id: str
    name: str
    created_at: str
    channels: list[StoredChannel] = field(default_factory=list)

    def iter_items(self) -> Iterator[ContentItem]:
        for channel in self.channels:
            yield from channel.items()

    def find_channel(self, handle: str) -> Optional[StoredChannel]:
        wanted = handle.strip().lower()
        for channel in self.channels:
            if channel.handle.lower() == wanted:
                return channel
        return None

    def upsert_channel(self, handle: str, snapshot: ChannelSnapshot) -> StoredChannel:
        """Replace the snapshot of ``handle`` or append a new channel entry."""

        now = utc_now_iso()
        channel = self.find_channel(handle)
        if channel is None:
            channel = StoredChannel(id=generate_uuid7_str(), handle=handle, added_at=now)
            self.channels.append(channel)
        channel.snapshot = snapshot
        channel.last_updated = now
        return channel

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "channels": [channel.to_dict() for channel in self.channels],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Collection":
        return cls(
            id=str(payload.get("id") or generate_uuid7_str()),
            name=str(payload.get("name") or DEFAULT_COLLECTION_NAME),
            created_at=str(payload.get("createdAt") or utc_now_iso()),
            channels=[
                StoredChannel.from_dict(channel)
                for channel in payload.get("channels") or []
                if isinstance(channel, dict)
            ],
        )


@dataclass(slots=True)
class Catalog:
    collections: list[Collection] = field(default_factory=list)

    def find_collection(self, key: str) -> Optional[Collection]:
        for collection in self.collections:
            if collection.id == key:
                return collection
        return None

    def find_collection_by_name(self, name: str) -> Optional[Collection]:
        wanted = name.strip().lower()
        for collection in self.collections:
            if collection.name.lower() == wanted:
                return collection
        return None

    def ensure_collection(self, key: str) -> Collection:
        """Return the collection with id or name ``key``, creating it by name."""

        collection = self.find_collection(key) or self.find_collection_by_name(key)
        if collection is None:
            collection = Collection(id=generate_uuid7_str(), name=key, created_at=utc_now_iso())
            self.collections.append(collection)
            LOGGER.info("Created collection '%s' (%s)", collection.name, collection.id)
        return collection

    def to_dict(self) -> dict[str, Any]:
        return {"collections": [collection.to_dict() for collection in self.collections]}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Catalog":
        """Build a catalog, moving a legacy top-level ``channels`` list into a default collection."""

        collections = payload.get("collections")
        legacy_channels = payload.get("channels")
        if collections is None and isinstance(legacy_channels, list):
            LOGGER.info("Migrating %d legacy channels into a '%s' collection", len(legacy_channels), DEFAULT_COLLECTION_NAME)
            collections = [
                {
                    "id": generate_uuid7_str(),
                    "name": DEFAULT_COLLECTION_NAME,
                    "channels": legacy_channels,
                    "createdAt": utc_now_iso(),
                }
            ]
        return cls(
            collections=[
                Collection.from_dict(collection)
                for collection in collections or []
                if isinstance(collection, dict)
            ]
        )


class CatalogStore(Protocol):
    async def load(self) -> Catalog: ...

    async def save(self, catalog: Catalog) -> None: ...


class InMemoryCatalogStore:
    """Keeps the serialized catalog in memory; each load returns a fresh copy."""

    def __init__(self, initial: Catalog | dict | None = None) -> None:
        if isinstance(initial, Catalog):
            initial = initial.to_dict()
        self._payload: dict[str, Any] = initial or {"collections": []}
        self.save_count = 0

    async def load(self) -> Catalog:
        return Catalog.from_dict(json.loads(json.dumps(self._payload)))

    async def save(self, catalog: Catalog) -> None:
        self._payload = catalog.to_dict()
        self.save_count += 1

    @property
    def payload(self) -> dict[str, Any]:
        return self._payload


class JsonCatalogStore:
    """Stores the whole catalog as one pretty-printed JSON document."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> Catalog:
        payload = await asyncio.to_thread(self._read)
        migrated = payload.get("collections") is None and isinstance(payload.get("channels"), list)
        catalog = Catalog.from_dict(payload)
        if migrated:
            await self.save(catalog)
        return catalog

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {"collections": []}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.error("Error loading store %s: %s", self._path, exc)
            return {"collections": []}
        if not isinstance(payload, dict):
            LOGGER.error("Store %s does not contain an object; starting empty", self._path)
            return {"collections": []}
        return payload

    async def save(self, catalog: Catalog) -> None:
        # Serialize on the loop so concurrent item mutations cannot interleave with it.
        text = json.dumps(catalog.to_dict(), ensure_ascii=False, indent=2)
        await asyncio.to_thread(self._write, text)

    def _write(self, text: str) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_name(self._path.name + ".tmp")
            tmp_path.write_text(text, encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise CatalogStoreError(f"Failed to write {self._path}: {exc}") from exc


class SqlCatalogStore:
    """Stores collections and channel snapshots in SQL tables via SQLAlchemy."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, db_url: str) -> "SqlCatalogStore":
        engine = create_engine(db_url)
        Base.metadata.create_all(engine)
        return cls(sessionmaker(bind=engine))

    async def load(self) -> Catalog:
        return await asyncio.to_thread(self._load)

    def _load(self) -> Catalog:
        with self._session_factory() as session:
            rows = session.query(CatalogCollection).order_by(CatalogCollection.position).all()
            return Catalog(
                collections=[
                    Collection(
                        id=row.id,
                        name=row.name,
                        created_at=row.created_at,
                        channels=[
                            StoredChannel(
                                id=channel.id,
                                handle=channel.handle,
                                added_at=channel.added_at,
                                snapshot=ChannelSnapshot.from_dict(channel.snapshot) if channel.snapshot else None,
                                last_updated=channel.last_updated,
                            )
                            for channel in row.channels
                        ],
                    )
                    for row in rows
                ]
            )

    async def save(self, catalog: Catalog) -> None:
        payload = catalog.to_dict()
        await asyncio.to_thread(self._save, payload)

    def _save(self, payload: dict[str, Any]) -> None:
        try:
            with self._session_factory() as session:
                session.query(CatalogChannel).delete()
                session.query(CatalogCollection).delete()
                for position, collection in enumerate(payload["collections"]):
                    row = CatalogCollection(
                        id=collection["id"],
                        name=collection["name"],
                        position=position,
                        created_at=collection["createdAt"],
                    )
                    row.channels = [
                        CatalogChannel(
                            id=channel["id"],
                            position=index,
                            handle=channel["handle"],
                            added_at=channel["addedAt"],
                            last_updated=channel.get("lastUpdated"),
                            snapshot=channel.get("data"),
                        )
                        for index, channel in enumerate(collection["channels"])
                    ]
                    session.add(row)
                session.commit()
        except Exception as exc:  # pragma: no cover - failure path
            raise CatalogStoreError(str(exc)) from exc


def open_store(store_path: Path, db_url: str | None = None) -> CatalogStore:
    if db_url:
        return SqlCatalogStore.from_url(db_url)
    return JsonCatalogStore(store_path)


__all__ = [
    "Catalog",
    "CatalogStore",
    "CatalogStoreError",
    "Collection",
    "InMemoryCatalogStore",
    "JsonCatalogStore",
    "SqlCatalogStore",
    "StoredChannel",
    "open_store",
    "utc_now_iso",
]
