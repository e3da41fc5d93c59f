"""
SQLAlchemy models for the authoritative dictionary store.
"""

from sqlalchemy import TIMESTAMP, Boolean, Column, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class DictionaryRecord(Base):
    """
    Authoritative dictionary entry.

    ``elastic_synced`` is true iff the row's current ``content_version`` has
    been written to the search index. Every create/update resets it.
    """

    __tablename__ = "dictionary"

    id = Column(Integer, primary_key=True, autoincrement=True)
    word = Column(String(100), nullable=False)
    definition = Column(Text, nullable=False, default="")
    media_ref = Column("video_url", String, nullable=False)
    index_synced = Column("elastic_synced", Boolean, nullable=False, default=False)
    content_version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    __table_args__ = (Index("idx_dictionary_synced", "elastic_synced"),)

    def __repr__(self):
        return (
            f"<DictionaryRecord(id={self.id}, word={self.word}, "
            f"version={self.content_version}, synced={self.index_synced})>"
        )
