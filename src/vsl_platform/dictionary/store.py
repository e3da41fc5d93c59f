"""
Authoritative dictionary store.

Every public method runs in its own transaction and returns detached
``DictionaryEntry`` values, so results can be handed to worker threads.
"""

from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import sessionmaker

from .database import session_scope
from .models import DictionaryRecord
from ..models.dictionary import DictionaryEntry

logger = structlog.get_logger(__name__)


def _to_entry(record: DictionaryRecord) -> DictionaryEntry:
    return DictionaryEntry(
        id=record.id,
        word=record.word,
        definition=record.definition or "",
        media_ref=record.media_ref,
        index_synced=record.index_synced,
        content_version=record.content_version,
    )


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class DictionaryStore:
    """SQLAlchemy-backed store for dictionary entries and their synced flag."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def save(self, entry: DictionaryEntry) -> DictionaryEntry:
        """
        Create or update an entry in a single transaction.

        The synced flag is cleared and the content version bumped in the same
        statement batch as the content write.

        Args:
            entry: Entry content; ``id`` None creates a new row

        Returns:
            The persisted entry with its id and new content version
        """
        with session_scope(self._session_factory) as session:
            record = session.get(DictionaryRecord, entry.id) if entry.id is not None else None

            if record is None:
                record = DictionaryRecord(id=entry.id, content_version=1)
                session.add(record)
            else:
                # Evaluated by the database, so concurrent updates never share a version
                record.content_version = DictionaryRecord.content_version + 1

            record.word = entry.word
            record.definition = entry.definition
            record.media_ref = entry.media_ref
            record.index_synced = False

            session.flush()
            session.refresh(record)
            saved = _to_entry(record)

        logger.info(
            "dictionary_entry_saved",
            entry_id=saved.id,
            content_version=saved.content_version
        )
        return saved

    def get(self, entry_id: int) -> Optional[DictionaryEntry]:
        with session_scope(self._session_factory) as session:
            record = session.get(DictionaryRecord, entry_id)
            return _to_entry(record) if record is not None else None

    def get_many(self, entry_ids: Iterable[int]) -> Dict[int, DictionaryEntry]:
        """Load entries by id; missing ids are absent from the result."""
        ids = list(entry_ids)
        if not ids:
            return {}
        with session_scope(self._session_factory) as session:
            records = session.scalars(
                select(DictionaryRecord).where(DictionaryRecord.id.in_(ids))
            ).all()
            return {record.id: _to_entry(record) for record in records}

    def mark_synced(self, entry_id: int, content_version: int) -> bool:
        """
        Flip the synced flag only if the row still holds ``content_version``.

        Returns:
            True if the row was updated, False if it changed or disappeared
        """
        with session_scope(self._session_factory) as session:
            result = session.execute(
                update(DictionaryRecord)
                .where(
                    DictionaryRecord.id == entry_id,
                    DictionaryRecord.content_version == content_version,
                )
                .values(
                    index_synced=True,
                    updated_at=DictionaryRecord.updated_at,
                )
            )
            return result.rowcount == 1

    def list_unsynced(self, limit: Optional[int] = None, after_id: Optional[int] = None) -> List[int]:
        """Ids of entries whose synced flag is false in id order, optionally after ``after_id``."""
        stmt = (
            select(DictionaryRecord.id)
            .where(DictionaryRecord.index_synced.is_(False))
            .order_by(DictionaryRecord.id)
        )
        if after_id is not None:
            stmt = stmt.where(DictionaryRecord.id > after_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        with session_scope(self._session_factory) as session:
            return list(session.scalars(stmt).all())

    def count_unsynced(self) -> int:
        with session_scope(self._session_factory) as session:
            return session.scalar(
                select(func.count())
                .select_from(DictionaryRecord)
                .where(DictionaryRecord.index_synced.is_(False))
            )

    def mark_all_unsynced(self) -> int:
        """Clear the synced flag on every entry (full reindex)."""
        with session_scope(self._session_factory) as session:
            result = session.execute(
                update(DictionaryRecord).values(
                    index_synced=False,
                    updated_at=DictionaryRecord.updated_at,
                )
            )
            return result.rowcount

    def substring_search(self, query: str, limit: Optional[int] = None) -> List[DictionaryEntry]:
        """
        Case-insensitive containment match over word and definition.

        Results are unranked, in insertion (id) order.
        """
        pattern = _like_pattern(query)
        stmt = (
            select(DictionaryRecord)
            .where(
                or_(
                    DictionaryRecord.word.ilike(pattern, escape="\\"),
                    DictionaryRecord.definition.ilike(pattern, escape="\\"),
                )
            )
            .order_by(DictionaryRecord.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with session_scope(self._session_factory) as session:
            return [_to_entry(record) for record in session.scalars(stmt).all()]
