"""
Query evaluation over the inverted index.

A filter specification is evaluated by intersecting per-dimension match
sets into a running candidate set. Dimensions are a fixed sequence of
pure functions; their order only affects how quickly the candidate set
shrinks, never the result.
"""

from typing import Callable, FrozenSet, List, Optional, Sequence, Set, Tuple

from .index import InvertedIndex
from .jsonpath import JsonPathEvaluator
from .models import FilterSpec, WebhookEntry


def match_method(spec: FilterSpec, index: InvertedIndex) -> Optional[Set[int]]:
    method = spec.method_filter
    if method is None:
        return None
    return index.lookup_method(method)


def match_path(spec: FilterSpec, index: InvertedIndex) -> Optional[Set[int]]:
    if not spec.path_substring:
        return None
    return index.match_paths(spec.path_substring)


def match_ip(spec: FilterSpec, index: InvertedIndex) -> Optional[Set[int]]:
    if not spec.ip_substring:
        return None
    return index.match_ips(spec.ip_substring)


def match_text(spec: FilterSpec, index: InvertedIndex) -> Optional[Set[int]]:
    words = spec.search_text.split()
    if not words:
        return None
    return index.match_terms(words)


def match_time(spec: FilterSpec, index: InvertedIndex) -> Optional[Set[int]]:
    if spec.time_from is None and spec.time_to is None:
        return None
    return index.time_range(spec.time_from, spec.time_to)


# Index-backed dimensions. Each returns None when the filter does not
# constrain it, otherwise the set of entries matching that dimension.
DIMENSIONS: Sequence[Tuple[str, Callable[[FilterSpec, InvertedIndex], Optional[Set[int]]]]] = (
    ('method', match_method),
    ('ip', match_ip),
    ('time', match_time),
    ('path', match_path),
    ('text', match_text),
)


class QueryEvaluator:
    """Evaluates filter specifications to sets of entry ids."""

    def __init__(
        self,
        entries: List[WebhookEntry],
        index: InvertedIndex,
        json_path: JsonPathEvaluator,
    ):
        """Initialize the evaluator.

        Args:
            entries: The entry store's list, indexed by entry id (read only)
            index: Inverted index over the same entries
            json_path: Evaluator used for the payload predicate
        """
        self._entries = entries
        self._index = index
        self._json_path = json_path
        self.evaluations = 0

    def evaluate(self, spec: FilterSpec) -> FrozenSet[int]:
        """Evaluate a filter against all entries known at call time.

        Args:
            spec: Filter specification

        Returns:
            Frozen set of matching entry ids
        """
        self.evaluations += 1
        candidates: Set[int] = set(range(len(self._entries)))

        for _, matcher in DIMENSIONS:
            if not candidates:
                break
            matches = matcher(spec, self._index)
            if matches is not None:
                candidates &= matches

        if spec.json_path_expr and candidates:
            candidates = self._match_json_path(candidates, spec.json_path_expr)

        return frozenset(candidates)

    def _match_json_path(self, candidates: Set[int], expression: str) -> Set[int]:
        """Keep candidates whose payload projects to a truthy value."""
        kept = set()
        for entry_id in candidates:
            result = self._json_path.evaluate(self._entries[entry_id].payload, expression)
            if result:
                kept.add(entry_id)
        return kept
