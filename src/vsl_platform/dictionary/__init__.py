"""Dictionary store, search index and index synchronization.

Provides the authoritative SQLAlchemy store, the Elasticsearch adapter and
the synchronizer that keeps the two eventually consistent.
"""

from .database import build_engine, create_all_tables, drop_all_tables, get_engine, session_scope
from .models import DictionaryRecord
from .search_index import SearchIndex, create_search_index
from .store import DictionaryStore
from .synchronizer import (
    IndexSynchronizer,
    SyncOutcome,
    SyncStatus,
    SyncTask,
    create_index_synchronizer,
)

__all__ = [
    # Database
    "build_engine",
    "get_engine",
    "session_scope",
    "create_all_tables",
    "drop_all_tables",
    "DictionaryRecord",
    # Store and index
    "DictionaryStore",
    "SearchIndex",
    "create_search_index",
    # Synchronization
    "IndexSynchronizer",
    "SyncOutcome",
    "SyncStatus",
    "SyncTask",
    "create_index_synchronizer",
]
