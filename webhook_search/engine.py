"""
Webhook search engine.

Owns the entry store, inverted index, JSONPath evaluator, query evaluator,
result cache and debounce scheduler. Ingestion indexes each entry exactly
once; filtering consults the result cache before evaluating against the
index. Everything runs on one thread, so no locking is needed.
"""

import logging
import time
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

from .cache import ResultCache
from .config import SearchConfig
from .index import InvertedIndex
from .jsonpath import JsonPathEvaluator
from .models import FilterSpec, SearchResult, WebhookEntry
from .query import QueryEvaluator
from .scheduler import DebounceScheduler
from .store import EntryInput, EntryStore
from .tokenizer import serialize


logger = logging.getLogger(__name__)

EntryListener = Callable[[int, WebhookEntry], None]
ResultListener = Callable[[SearchResult], None]


class WebhookSearchEngine:
    """In-memory multi-field search over captured webhook entries."""

    def __init__(self, config: Optional[SearchConfig] = None):
        """Initialize an empty engine.

        Args:
            config: Optional settings; defaults are used when omitted
        """
        self.config = config or SearchConfig()
        self._store = EntryStore()
        self._index = InvertedIndex()
        self._json_path = JsonPathEvaluator(
            cache_size=self.config.jsonpath_cache_size,
            key_length=self.config.jsonpath_key_length,
        )
        self._query = QueryEvaluator(self._store.entries, self._index, self._json_path)
        self._results = ResultCache(self.config.result_cache_size)
        self._scheduler = DebounceScheduler(self.config.debounce_window_ms)
        self._entry_listeners: List[EntryListener] = []
        self._result_listeners: List[ResultListener] = []
        self._payload_bytes = 0
        self.last_result: Optional[SearchResult] = None

    @property
    def entry_count(self) -> int:
        return len(self._store)

    @property
    def index(self) -> InvertedIndex:
        return self._index

    @property
    def query_evaluator(self) -> QueryEvaluator:
        return self._query

    @property
    def scheduler(self) -> DebounceScheduler:
        return self._scheduler

    def add_entry_listener(self, listener: EntryListener) -> None:
        """Register a callback invoked with (entry_id, entry) after ingestion."""
        self._entry_listeners.append(listener)

    def add_result_listener(self, listener: ResultListener) -> None:
        """Register a callback invoked with each completed SearchResult."""
        self._result_listeners.append(listener)

    def submit_entry(self, entry: EntryInput) -> int:
        """Ingest one entry and index it.

        Args:
            entry: A WebhookEntry or raw mapping; missing fields default to empty

        Returns:
            The assigned entry id (dense, starting at 0)
        """
        entry_id = len(self._store)
        stored = self._store.append(entry)
        self._index.index_entry(entry_id, stored)
        self._payload_bytes += self._payload_size(stored.payload)

        logger.debug(f"Indexed entry {entry_id}: {stored.method} {stored.path} from {stored.client_ip}")

        for listener in self._entry_listeners:
            try:
                listener(entry_id, stored)
            except Exception:
                logger.exception(f"Entry listener failed for entry {entry_id}")

        return entry_id

    def submit_entries(self, entries: Sequence[EntryInput]) -> List[int]:
        """Ingest entries in order, one at a time."""
        return [self.submit_entry(entry) for entry in entries]

    def get_entries(self) -> Sequence[WebhookEntry]:
        """All entries ordered by id."""
        return self._store.snapshot()

    def get_entry(self, entry_id: int) -> WebhookEntry:
        """Get one entry by id.

        Raises:
            KeyError: If the id is unknown
        """
        return self._store.get(entry_id)

    def evaluate(self, spec: Optional[FilterSpec] = None) -> FrozenSet[int]:
        """Matching entry ids for a filter, using the result cache."""
        return self._run(spec or FilterSpec())[0]

    def apply_filters(self, spec: Optional[FilterSpec] = None) -> SearchResult:
        """Evaluate a filter and notify result listeners.

        Args:
            spec: Filter to apply; None matches everything

        Returns:
            SearchResult with the matching ids and timing
        """
        start_time = time.perf_counter()
        ids, cached = self._run(spec or FilterSpec())
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        result = SearchResult(
            ids=ids,
            total_matches=len(ids),
            total_entries=len(self._store),
            execution_time_ms=elapsed_ms,
            cached=cached,
        )
        self.last_result = result
        logger.debug(
            f"Filter matched {result.total_matches}/{result.total_entries} entries "
            f"in {elapsed_ms:.2f}ms{' (cached)' if cached else ''}"
        )

        for listener in self._result_listeners:
            try:
                listener(result)
            except Exception:
                logger.exception("Result listener failed")

        return result

    def debounced_apply_filters(self, spec: Optional[FilterSpec] = None) -> None:
        """Apply a filter once filter changes have been quiet for the window.

        Must be called with an asyncio event loop running.
        """
        self._scheduler.schedule(self.apply_filters, spec)

    def evaluate_json_path(self, value: Any, expression: str) -> Any:
        """Evaluate a restricted JSONPath expression through the cache."""
        return self._json_path.evaluate(value, expression)

    def _run(self, spec: FilterSpec):
        entry_count = len(self._store)
        cached = self._results.get(spec, entry_count)
        if cached is not None:
            logger.debug("Using cached search results")
            return cached, True

        ids = self._query.evaluate(spec)
        self._results.put(spec, entry_count, ids)
        return ids, False

    @staticmethod
    def _payload_size(payload: Any) -> int:
        if payload is None:
            return 0
        try:
            return len(serialize(payload))
        except (TypeError, ValueError):
            return 0

    def stats(self) -> Dict[str, Any]:
        """Traffic and cache statistics."""
        count = len(self._store)
        return {
            'total_entries': count,
            'method_counts': self._index.method_counts(),
            'average_payload_size': (self._payload_bytes / count) if count else 0.0,
            'distinct_tokens': {
                dimension: self._index.term_count(dimension)
                for dimension in ('method', 'path', 'ip', 'term')
            },
            'query_evaluations': self._query.evaluations,
            'result_cache': self._results.stats(),
            'jsonpath_cache': self._json_path.stats(),
        }
