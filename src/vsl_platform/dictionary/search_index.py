"""
Elasticsearch adapter for the derived dictionary search index.

The index is best-effort: every failure is reported as
``ServiceError(INDEX_UNAVAILABLE)`` and callers decide whether to fall back
or retry. Document ids equal entry ids, so re-indexing an entry overwrites
its previous copy instead of adding a duplicate, and the entry's content
version is the document version so an older copy never replaces a newer one.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

import structlog
from elasticsearch import ConflictError, Elasticsearch

from vsl_platform.config import Settings, settings as default_settings
from vsl_platform.errors import ErrorKind, ServiceError
from vsl_platform.integration.external_caller import ExternalCallError, guarded_call
from vsl_platform.models.dictionary import DictionaryEntry

logger = structlog.get_logger(__name__)

SERVICE_NAME = "search-index"

# Accent folding lets "co giao" and "cô giáo" hit the same documents
INDEX_SETTINGS = {
    "analysis": {
        "analyzer": {
            "folding_analyzer": {
                "type": "custom",
                "tokenizer": "standard",
                "filter": ["lowercase", "asciifolding"],
            }
        }
    }
}

INDEX_MAPPINGS = {
    "properties": {
        "id": {"type": "long"},
        "word": {
            "type": "text",
            "analyzer": "folding_analyzer",
            "search_analyzer": "folding_analyzer",
        },
        "definition": {
            "type": "text",
            "analyzer": "folding_analyzer",
            "search_analyzer": "folding_analyzer",
        },
        "media_ref": {"type": "keyword"},
        "content_version": {"type": "integer"},
    }
}


class SearchIndex:
    """Thin wrapper over an Elasticsearch client for the dictionary index."""

    def __init__(
        self,
        client: Elasticsearch,
        index_name: str = "dictionary",
        timeout_seconds: float = 5.0,
        endpoint: str = ""
    ):
        self._client = client
        self.index_name = index_name
        self.timeout_seconds = timeout_seconds
        self.endpoint = endpoint

    @contextmanager
    def _call(self, operation: str) -> Iterator[Elasticsearch]:
        try:
            with guarded_call(SERVICE_NAME, operation, self.endpoint, self.timeout_seconds):
                yield self._client.options(request_timeout=self.timeout_seconds)
        except ExternalCallError as e:
            raise ServiceError.of(ErrorKind.INDEX_UNAVAILABLE, str(e), cause=e) from e

    def ensure_index(self) -> bool:
        """
        Create the index with its analyzer and mapping if it does not exist.

        Returns:
            True if the index was created, False if it already existed
        """
        with self._call("ensure index") as es:
            if es.indices.exists(index=self.index_name):
                logger.info("search_index_exists", index=self.index_name)
                return False
            es.indices.create(
                index=self.index_name,
                settings=INDEX_SETTINGS,
                mappings=INDEX_MAPPINGS,
            )
        logger.info("search_index_created", index=self.index_name)
        return True

    def upsert(self, entry: DictionaryEntry) -> bool:
        """
        Write the document for ``entry`` using external versioning.

        The entry's ``content_version`` is the document version, so a write
        carrying an older version than the indexed copy is rejected by
        Elasticsearch instead of overwriting newer content.

        Returns:
            True if the document was written, False if a newer version is
            already indexed
        """
        if entry.id is None:
            raise ValueError("Cannot index an entry without an id")
        with self._call("index document") as es:
            try:
                es.index(
                    index=self.index_name,
                    id=str(entry.id),
                    document=entry.to_index_document(),
                    version=entry.content_version,
                    version_type="external_gte",
                )
            except ConflictError:
                logger.info(
                    "search_index_newer_version_present",
                    entry_id=entry.id,
                    content_version=entry.content_version,
                )
                return False
        return True

    def search(self, query: str, limit: int = 20) -> List[Tuple[int, float]]:
        """
        Fuzzy match over word and definition.

        Returns:
            (entry_id, score) pairs ordered by relevance
        """
        with self._call("search") as es:
            response = es.search(
                index=self.index_name,
                query={
                    "multi_match": {
                        "query": query,
                        "fields": ["word^2", "definition"],
                        "fuzziness": "AUTO",
                    }
                },
                size=limit,
            )
            hits = response["hits"]["hits"]

        results = []
        for hit in hits:
            source = hit.get("_source") or {}
            entry_id = source.get("id", hit.get("_id"))
            results.append((int(entry_id), float(hit.get("_score") or 0.0)))
        return results

    def ping(self) -> bool:
        try:
            with self._call("ping") as es:
                return bool(es.ping())
        except ServiceError:
            return False


def create_search_index(settings: Optional[Settings] = None) -> SearchIndex:
    """
    Build the search index adapter from configuration.

    The Elasticsearch client connects lazily, so this never blocks on the
    cluster being reachable.
    """
    settings = settings or default_settings
    client = Elasticsearch(
        settings.search_index_url,
        request_timeout=settings.search_index_timeout_seconds,
    )
    logger.info(
        "search_index_client_created",
        url=settings.search_index_url,
        index=settings.search_index_name
    )
    return SearchIndex(
        client=client,
        index_name=settings.search_index_name,
        timeout_seconds=settings.search_index_timeout_seconds,
        endpoint=settings.search_index_url,
    )
