"""
Eventually-consistent synchronization between the dictionary store and the
search index.

Write path: the store write (content + cleared synced flag + version bump) is
one transaction; a ``SyncTask`` is then offered to a bounded in-memory queue
and silently dropped when the queue is full. The write never waits on, and
never fails because of, the index.

Workers drain the queue, push the current record to the index and flip the
synced flag under a version check. Failed tasks are retried with capped
exponential backoff; exhausted or dropped tasks are recovered by the periodic
reconciliation sweep, which re-enqueues every entry whose flag is still false.

Search prefers the index and falls back to a substring match in the store
whenever the index is unavailable.
"""

import queue
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

import structlog
from pydantic import BaseModel

from vsl_platform.config import Settings, settings as default_settings
from vsl_platform.dictionary.search_index import SearchIndex
from vsl_platform.dictionary.store import DictionaryStore
from vsl_platform.errors import ErrorKind, Failure, ServiceError
from vsl_platform.models.dictionary import DictionaryEntry


logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass(frozen=True)
class SyncTask:
    """Request to push one entry's current content to the index."""
    entry_id: int
    attempt: int = 0
    enqueued_at: datetime = field(default_factory=_utcnow)

    def next_attempt(self) -> "SyncTask":
        return replace(self, attempt=self.attempt + 1, enqueued_at=_utcnow())


class SyncOutcome(str, Enum):
    """Result of processing one task."""
    SYNCED = "synced"
    ALREADY_SYNCED = "already_synced"
    STALE = "stale"  # a newer version was stored or indexed meanwhile; its own task will follow
    MISSING = "missing"
    RETRY_SCHEDULED = "retry_scheduled"
    EXHAUSTED = "exhausted"


class SyncStatus(BaseModel):
    """Snapshot of synchronizer health."""
    running: bool
    workers_alive: int
    queue_depth: int
    queue_capacity: int
    pending_retries: int
    unsynced_entries: int
    synced: int
    dropped: int
    retried: int
    exhausted: int
    stale: int
    last_sweep_at: Optional[datetime] = None


def backoff_delay(attempt: int, base_seconds: float, cap_seconds: float) -> float:
    """
    Delay before retry number ``attempt`` (1-based): base * 2^(attempt-1), capped.

    Examples:
        >>> backoff_delay(1, 1.0, 30.0)
        1.0
        >>> backoff_delay(6, 1.0, 30.0)
        30.0
    """
    return min(base_seconds * (2 ** (attempt - 1)), cap_seconds)


# ============================================================================
# SYNCHRONIZER
# ============================================================================

class IndexSynchronizer:
    """
    Owns the sync queue, the worker pool and the reconciliation sweep.

    Workers and the sweep thread run only between ``start()`` and ``stop()``;
    ``process_task``, ``drain`` and ``reconcile`` can also be driven
    synchronously (tests, CLI).
    """

    def __init__(
        self,
        store: DictionaryStore,
        index: SearchIndex,
        workers: int = 2,
        queue_capacity: int = 100,
        max_attempts: int = 5,
        backoff_base_seconds: float = 1.0,
        backoff_cap_seconds: float = 30.0,
        reconciliation_interval_seconds: float = 300.0,
        search_limit: int = 20,
        poll_interval_seconds: float = 0.5
    ):
        self._store = store
        self._index = index
        self.worker_count = workers
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_cap_seconds = backoff_cap_seconds
        self.reconciliation_interval_seconds = reconciliation_interval_seconds
        self.search_limit = search_limit
        self.poll_interval_seconds = poll_interval_seconds

        self._queue: "queue.Queue[SyncTask]" = queue.Queue(maxsize=queue_capacity)
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []
        self._timers: set = set()
        self._lock = threading.Lock()

        self._counters: Dict[str, int] = {
            "synced": 0, "dropped": 0, "retried": 0, "exhausted": 0, "stale": 0
        }
        self._last_sweep_at: Optional[datetime] = None
        # Last id enqueued by a sweep; the next sweep resumes after it
        self._sweep_cursor: Optional[int] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    @property
    def workers_alive(self) -> int:
        return sum(
            1 for t in self._threads if t.is_alive() and t.name != "index-sync-sweep"
        )

    def start(self) -> None:
        """Spawn the worker pool and the reconciliation sweep thread."""
        if self.running:
            return

        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._worker_loop, name=f"index-sync-{i}", daemon=True)
            for i in range(self.worker_count)
        ]
        self._threads.append(
            threading.Thread(target=self._sweep_loop, name="index-sync-sweep", daemon=True)
        )
        for thread in self._threads:
            thread.start()

        logger.info(
            "index_synchronizer_started",
            workers=self.worker_count,
            queue_capacity=self._queue.maxsize,
            reconciliation_interval_seconds=self.reconciliation_interval_seconds
        )

    def stop(self, timeout: float = 5.0) -> None:
        """Stop workers, cancel pending retries and join all threads."""
        self._stop.set()

        with self._lock:
            timers, self._timers = self._timers, set()
        for timer in timers:
            timer.cancel()

        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []

        logger.info(
            "index_synchronizer_stopped",
            queue_depth=self._queue.qsize(),
            cancelled_retries=len(timers)
        )

    def ensure_index(self) -> bool:
        """Create the search index if missing; see ``SearchIndex.ensure_index``."""
        return self._index.ensure_index()

    def index_reachable(self) -> bool:
        return self._index.ping()

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def write(self, entry: DictionaryEntry) -> DictionaryEntry:
        """
        Persist ``entry`` as unsynced and schedule it for indexing.

        Returns:
            The persisted entry (with id and content version)
        """
        saved = self._store.save(entry)
        self.enqueue(SyncTask(entry_id=saved.id))
        return saved

    def enqueue(self, task: SyncTask) -> bool:
        """
        Offer a task to the queue without blocking.

        Returns:
            False if the queue was full and the task was dropped
        """
        try:
            self._queue.put_nowait(task)
        except queue.Full:
            self._bump("dropped")
            logger.warning(
                "sync_task_dropped",
                entry_id=task.entry_id,
                attempt=task.attempt,
                queue_capacity=self._queue.maxsize
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Task processing
    # ------------------------------------------------------------------

    def process_task(self, task: SyncTask) -> SyncOutcome:
        """
        Run one sync attempt for ``task`` on the calling thread.

        Returns:
            SyncOutcome describing what happened
        """
        log = logger.bind(entry_id=task.entry_id, attempt=task.attempt)

        entry = self._store.get(task.entry_id)
        if entry is None:
            log.info("sync_task_entry_missing")
            return SyncOutcome.MISSING
        if entry.index_synced:
            return SyncOutcome.ALREADY_SYNCED

        try:
            written = self._index.upsert(entry)
        except ServiceError as e:
            return self._handle_failure(task, e.failure)

        if not written:
            self._bump("stale")
            log.info("sync_task_superseded", indexed_version=entry.content_version)
            return SyncOutcome.STALE

        if not self._store.mark_synced(entry.id, entry.content_version):
            self._bump("stale")
            log.info("sync_task_stale", indexed_version=entry.content_version)
            return SyncOutcome.STALE

        self._bump("synced")
        log.debug("sync_task_completed", content_version=entry.content_version)
        return SyncOutcome.SYNCED

    def _handle_failure(self, task: SyncTask, failure: Failure) -> SyncOutcome:
        retry = task.next_attempt()

        if retry.attempt < self.max_attempts:
            delay = backoff_delay(
                retry.attempt, self.backoff_base_seconds, self.backoff_cap_seconds
            )
            logger.warning(
                "sync_task_retry",
                entry_id=task.entry_id,
                attempt=retry.attempt,
                max_attempts=self.max_attempts,
                wait_seconds=delay,
                **failure.to_log_fields()
            )
            self._bump("retried")
            self._schedule_retry(retry, delay)
            return SyncOutcome.RETRY_SCHEDULED

        exhausted = Failure(
            kind=ErrorKind.SYNC_EXHAUSTED,
            message=f"Entry {task.entry_id} not indexed after {self.max_attempts} attempts",
            cause=failure.cause,
        )
        self._bump("exhausted")
        logger.error("sync_task_exhausted", entry_id=task.entry_id, **exhausted.to_log_fields())
        return SyncOutcome.EXHAUSTED

    def _schedule_retry(self, task: SyncTask, delay: float) -> None:
        if self._stop.is_set():
            return  # flag stays false; the next sweep after restart picks it up

        timer = threading.Timer(delay, self._retry_due, args=(task,))
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()

    def _retry_due(self, task: SyncTask) -> None:
        with self._lock:
            self._timers.discard(threading.current_thread())
        self.enqueue(task)

    def drain(self) -> Dict[SyncOutcome, int]:
        """Process every queued task on the calling thread."""
        outcomes: Dict[SyncOutcome, int] = {}
        while True:
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                return outcomes
            try:
                outcome = self.process_task(task)
                outcomes[outcome] = outcomes.get(outcome, 0) + 1
            finally:
                self._queue.task_done()

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            try:
                task = self._queue.get(timeout=self.poll_interval_seconds)
            except queue.Empty:
                continue
            try:
                self.process_task(task)
            except Exception as e:
                # Store errors leave the flag false; reconciliation retries later
                logger.error(
                    "sync_task_crashed",
                    entry_id=task.entry_id,
                    attempt=task.attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True
                )
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self) -> int:
        """
        Enqueue entries whose synced flag is false.

        Each sweep resumes after the last id the previous sweep enqueued and
        wraps around to the lowest ids, so entries that keep failing cannot
        hold every batch. Stops at the first dropped task; the rest wait for
        the next sweep.

        Returns:
            Number of tasks enqueued
        """
        batch_size = self._queue.maxsize
        unsynced = self._store.list_unsynced(limit=batch_size, after_id=self._sweep_cursor)
        if len(unsynced) < batch_size and self._sweep_cursor is not None:
            seen = set(unsynced)
            wrapped = self._store.list_unsynced(limit=batch_size - len(unsynced))
            unsynced.extend(entry_id for entry_id in wrapped if entry_id not in seen)

        enqueued = 0
        for entry_id in unsynced:
            if not self.enqueue(SyncTask(entry_id=entry_id)):
                break
            enqueued += 1
            self._sweep_cursor = entry_id

        self._last_sweep_at = _utcnow()
        logger.info(
            "reconciliation_sweep_completed",
            unsynced=len(unsynced),
            enqueued=enqueued,
            cursor=self._sweep_cursor,
        )
        return enqueued

    def reindex_all(self) -> int:
        """Mark every entry unsynced and run a sweep from the lowest id."""
        marked = self._store.mark_all_unsynced()
        logger.info("reindex_requested", entries=marked)
        self._sweep_cursor = None
        return self.reconcile()

    def _sweep_loop(self) -> None:
        while True:
            try:
                self.reconcile()
            except Exception as e:
                logger.error(
                    "reconciliation_sweep_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True
                )
            if self._stop.wait(self.reconciliation_interval_seconds):
                return

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str) -> List[DictionaryEntry]:
        """
        Search dictionary entries.

        Uses the index when reachable (relevance order), otherwise a
        case-insensitive substring match in the store (id order). Both paths
        return authoritative records.

        Raises:
            ServiceError: INVALID_INPUT for a blank query
        """
        if query is None or not query.strip():
            raise ServiceError.of(ErrorKind.INVALID_INPUT, "Search query cannot be empty")
        query = query.strip()

        try:
            hits = self._index.search(query, limit=self.search_limit)
        except ServiceError as e:
            if e.kind is not ErrorKind.INDEX_UNAVAILABLE:
                raise
            logger.warning("search_index_fallback", query=query, **e.failure.to_log_fields())
            return self._store.substring_search(query)

        entries = self._store.get_many(entry_id for entry_id, _ in hits)
        results = [entries[entry_id] for entry_id, _ in hits if entry_id in entries]
        logger.debug("search_completed", query=query, hits=len(hits), results=len(results))
        return results

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def _bump(self, counter: str) -> None:
        with self._lock:
            self._counters[counter] += 1

    def status(self) -> SyncStatus:
        with self._lock:
            counters = dict(self._counters)
            pending_retries = len(self._timers)
        return SyncStatus(
            running=self.running,
            workers_alive=self.workers_alive,
            queue_depth=self._queue.qsize(),
            queue_capacity=self._queue.maxsize,
            pending_retries=pending_retries,
            unsynced_entries=self._store.count_unsynced(),
            last_sweep_at=self._last_sweep_at,
            **counters,
        )


# ============================================================================
# FACTORY
# ============================================================================

def create_index_synchronizer(
    settings: Optional[Settings] = None,
    store: Optional[DictionaryStore] = None,
    index: Optional[SearchIndex] = None
) -> IndexSynchronizer:
    """
    Build a synchronizer from configuration.

    Args:
        settings: Optional settings override (defaults to global settings)
        store: Optional store (defaults to one bound to the configured database)
        index: Optional index adapter (defaults to the configured cluster)

    Returns:
        IndexSynchronizer (not started)
    """
    from vsl_platform.dictionary.database import get_session_factory
    from vsl_platform.dictionary.search_index import create_search_index

    settings = settings or default_settings

    return IndexSynchronizer(
        store=store or DictionaryStore(get_session_factory()),
        index=index or create_search_index(settings),
        workers=settings.sync_workers,
        queue_capacity=settings.sync_queue_capacity,
        max_attempts=settings.sync_max_attempts,
        backoff_base_seconds=settings.sync_backoff_base_seconds,
        backoff_cap_seconds=settings.sync_backoff_cap_seconds,
        reconciliation_interval_seconds=settings.reconciliation_interval_seconds,
        search_limit=settings.search_result_limit,
    )
