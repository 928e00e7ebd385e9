from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import declarative_base, relationship
import uuid_utils
import uuid


def generate_uuid7():
    """Generate UUIDv7 and convert to standard Python UUID"""
    uuid7_obj = uuid_utils.uuid7()
    return uuid.UUID(str(uuid7_obj))


def generate_uuid7_str() -> str:
    return str(generate_uuid7())


Base = declarative_base()


class CatalogCollection(Base):
    __tablename__ = 'catalog_collections'

    id = Column(String(36), primary_key=True, default=generate_uuid7_str)
    name = Column(String(200), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    # ISO-8601 strings, stored as written so JSON and SQL stores round-trip alike
    created_at = Column(String(40), nullable=False)

    channels = relationship(
        "CatalogChannel",
        back_populates="collection",
        cascade="all, delete-orphan",
        order_by="CatalogChannel.position"
    )

    def __repr__(self):
        return f"<CatalogCollection(id={self.id}, name='{self.name}', channels={len(self.channels)})>"


class CatalogChannel(Base):
    __tablename__ = 'catalog_channels'

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), nullable=False, default=generate_uuid7_str)
    collection_id = Column(
        String(36), ForeignKey('catalog_collections.id', ondelete='CASCADE'), nullable=False
    )
    position = Column(Integer, nullable=False)
    handle = Column(String(200), nullable=False)
    added_at = Column(String(40), nullable=False)
    last_updated = Column(String(40))
    snapshot = Column(JSON)

    collection = relationship("CatalogCollection", back_populates="channels")

    __table_args__ = (
        Index('ix_catalog_channels_collection_position', 'collection_id', 'position'),
    )

    def __repr__(self):
        return f"<CatalogChannel(id={self.id}, collection_id={self.collection_id}, handle='{self.handle}')>"
